"""Task service - the task registry timers are tracked against."""
from typing import Optional
from bson import ObjectId

from timetracker.errors import NotFoundError, ValidationError
from timetracker.models.task import Task, TaskCreate, TaskStatus, TaskUpdate
from timetracker.utils.clock import utcnow


class TaskService:
    """Service for handling task operations."""

    def __init__(self, db):
        """Initialize service with database connection."""
        self.db = db
        self.tasks = db["tasks"]

    def _doc_to_task(self, doc: dict) -> Task:
        """Convert database document to Task model."""
        return Task(
            _id=str(doc["_id"]),
            title=doc["title"],
            project_id=doc.get("project_id"),
            status=doc["status"],
            created_by=doc["created_by"],
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    def _object_id(self, task_id: str) -> ObjectId:
        try:
            return ObjectId(task_id)
        except Exception:
            raise ValidationError("Invalid task ID format")

    async def create_task(self, user_id: str, task_create: TaskCreate) -> Task:
        """
        Create a new task.

        Args:
            user_id: User creating the task
            task_create: Task creation data

        Returns:
            Created task object
        """
        now = utcnow()
        task_doc = {
            "title": task_create.title,
            "project_id": task_create.project_id,
            "status": task_create.status.value if task_create.status else TaskStatus.TODO.value,
            "created_by": user_id,
            "created_at": now,
            "updated_at": now,
        }

        result = await self.tasks.insert_one(task_doc)
        task_doc["_id"] = result.inserted_id

        return self._doc_to_task(task_doc)

    async def list_tasks(
        self,
        project_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[Task]:
        """List tasks with optional project and status filters."""
        query = {}
        if project_id:
            query["project_id"] = project_id
        if status:
            query["status"] = status

        cursor = self.tasks.find(query).sort("created_at", -1)
        task_docs = await cursor.to_list(length=None)

        return [self._doc_to_task(doc) for doc in task_docs]

    async def get_task(self, task_id: str) -> Task:
        """
        Get a task by ID.

        Raises:
            NotFoundError: If task not found
        """
        task_doc = await self.tasks.find_one({"_id": self._object_id(task_id)})
        if not task_doc:
            raise NotFoundError("Task not found")

        return self._doc_to_task(task_doc)

    async def update_task(self, task_id: str, task_update: TaskUpdate) -> Task:
        """
        Update a task's title, project or status.

        Raises:
            NotFoundError: If task not found
        """
        update_doc: dict[str, object] = {
            "updated_at": utcnow(),
        }

        if task_update.title is not None:
            update_doc["title"] = task_update.title
        if task_update.project_id is not None:
            update_doc["project_id"] = task_update.project_id
        if task_update.status is not None:
            update_doc["status"] = task_update.status.value

        updated_doc = await self.tasks.find_one_and_update(
            {"_id": self._object_id(task_id)},
            {"$set": update_doc},
            return_document=True,
        )
        if not updated_doc:
            raise NotFoundError("Task not found")

        return self._doc_to_task(updated_doc)
