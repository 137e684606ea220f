"""Task endpoints - the tasks timers are tracked against."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from timetracker.database import get_database
from timetracker.models.task import Task, TaskCreate, TaskStatus, TaskUpdate
from timetracker.routers.auth import get_current_user_id
from timetracker.services.task_service import TaskService


router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.post("", response_model=Task, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_create: TaskCreate,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """Create a task."""
    service = TaskService(db)
    return await service.create_task(user_id=user_id, task_create=task_create)


@router.get("", response_model=list[Task])
async def list_tasks(
    project_id: Optional[str] = Query(None),
    status: Optional[TaskStatus] = Query(None),
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """List tasks, optionally by project or status."""
    service = TaskService(db)
    return await service.list_tasks(
        project_id=project_id,
        status=status.value if status else None,
    )


@router.get("/{task_id}", response_model=Task)
async def get_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """Get a task by ID."""
    service = TaskService(db)
    return await service.get_task(task_id)


@router.patch("/{task_id}", response_model=Task)
async def update_task(
    task_id: str,
    task_update: TaskUpdate,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Update a task.

    - Moving a task to ``in_progress`` makes it eligible for timers
    """
    service = TaskService(db)
    return await service.update_task(task_id, task_update)
