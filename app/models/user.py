from datetime import datetime

from sqlmodel import Field, SQLModel

from app.core.clock import utcnow

ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"


class User(SQLModel, table=True):
    """Authenticated subject. Registration and profile management live outside this service."""

    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    full_name: str = ""
    role: str = ROLE_CUSTOMER  # "customer" | "admin"
    created_at: datetime | None = Field(default_factory=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
