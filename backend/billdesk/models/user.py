import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from billdesk.models.base import Base, TimestampMixin, generate_uuid, utcnow


class UserRole(str, enum.Enum):
    admin = "admin"
    operations_manager = "operations_manager"
    user = "user"


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, native_enum=False),
        default=UserRole.user,
        nullable=False,
        index=True,
    )
    registration_number: Mapped[str | None] = mapped_column(
        String(100), unique=True, nullable=True
    )
    # {"phone", "department", "position"}
    profile_info: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class AdminSeat(Base):
    """Single-row holder of the admin role.

    The fixed primary key means a second concurrent claim fails at flush
    with an IntegrityError instead of producing two admins.
    """

    __tablename__ = "admin_seat"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    claimed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
