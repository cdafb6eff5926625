"""Lesson category model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String, Table
from tutorhub.database import Base


teacher_categories = Table(
    "teacher_categories",
    Base.metadata,
    Column("teacher_id", Integer, ForeignKey("teachers.user_id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)


class Category(Base):
    """A subject area a teacher can offer lessons in."""
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True)
