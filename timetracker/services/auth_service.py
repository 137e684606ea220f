"""Authentication service - business logic for user auth."""
from bson import ObjectId

from timetracker.models.user import User, UserRole
from timetracker.utils.auth import create_access_token, hash_password, verify_password
from timetracker.utils.clock import utcnow


class AuthService:
    """Service for handling user authentication."""

    def __init__(self, db):
        """Initialize service with database connection."""
        self.db = db
        self.users = db["users"]

    def _doc_to_user(self, doc: dict) -> User:
        return User(
            _id=str(doc["_id"]),
            email=doc["email"],
            name=doc["name"],
            role=doc.get("role", UserRole.EMPLOYEE.value),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    async def register_user(
        self,
        email: str,
        password: str,
        name: str,
        role: UserRole = UserRole.EMPLOYEE,
    ) -> User:
        """
        Register a new user.

        Args:
            email: User email address
            password: Plain text password
            name: User's name
            role: User role (employees by default)

        Returns:
            User object (without password)

        Raises:
            ValueError: If email is already registered
        """
        existing = await self.users.find_one({"email": email})
        if existing:
            raise ValueError("Email already registered")

        now = utcnow()
        user_doc = {
            "email": email,
            "hashed_password": hash_password(password),
            "name": name,
            "role": role.value,
            "created_at": now,
            "updated_at": now,
        }

        result = await self.users.insert_one(user_doc)
        user_doc["_id"] = result.inserted_id

        return self._doc_to_user(user_doc)

    async def login(self, email: str, password: str) -> str:
        """
        Login user and return JWT token.

        Raises:
            ValueError: If credentials are invalid
        """
        user_doc = await self.users.find_one({"email": email})
        if not user_doc:
            raise ValueError("Invalid email or password")

        if not verify_password(password, user_doc["hashed_password"]):
            raise ValueError("Invalid email or password")

        return create_access_token(user_id=str(user_doc["_id"]))

    async def get_user_by_id(self, user_id: str) -> User:
        """
        Get user by ID.

        Raises:
            ValueError: If user not found
        """
        try:
            object_id = ObjectId(user_id)
        except Exception:
            raise ValueError("Invalid user ID format")

        user_doc = await self.users.find_one({"_id": object_id})
        if not user_doc:
            raise ValueError("User not found")

        return self._doc_to_user(user_doc)
