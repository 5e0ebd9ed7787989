"""User ORM model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from lokal.models.base import Base, CreatedAtMixin, IdMixin


class User(Base, IdMixin, CreatedAtMixin):
    """Account known to the auth collaborator."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
