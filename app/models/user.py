from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin, generate_prefixed_id


def generate_user_id() -> str:
    return generate_prefixed_id("usr")


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(50),
        primary_key=True,
        default=generate_user_id,
    )
    email: Mapped[str] = mapped_column(String(255), index=True)
    identity_number: Mapped[str | None] = mapped_column(String(11), nullable=True)
