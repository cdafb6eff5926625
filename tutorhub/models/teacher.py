"""Teacher profile model definitions."""

from zoneinfo import ZoneInfo

from sqlalchemy import Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship
from tutorhub.core import config
from tutorhub.database import Base
from tutorhub.models.category import Category, teacher_categories
from tutorhub.models.user import User


class Teacher(Base):
    """
    Teacher profile attached to a user.

    The booking engine reads ``hourly_rate`` and ``timezone`` but never
    writes them; profile editing belongs to the account screens.
    """
    __tablename__ = "teachers"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    hourly_rate = Column(Numeric(8, 2), nullable=False, default=0)
    timezone = Column(String, nullable=False, default=config.DEFAULT_TIMEZONE)

    user = relationship(User)
    categories = relationship(Category, secondary=teacher_categories, lazy="selectin")

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone or config.DEFAULT_TIMEZONE)

    def offers_category(self, category_id: int) -> bool:
        return any(category.id == category_id for category in self.categories)
