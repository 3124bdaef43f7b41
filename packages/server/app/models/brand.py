"""Brand (tenant) model."""

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Brand(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "brands"

    name: str = Field(nullable=False, index=True)
    slug: str = Field(unique=True, nullable=False, index=True)
