from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Iterable, List
import logging

from tuckshop.models.category import Category
from tuckshop.services.errors import StorageError

logger = logging.getLogger(__name__)


class CategoryService:
    """Read access to categories, plus start-up seeding."""

    def __init__(self, db: Session):
        self.db = db

    def list_all(self) -> List[Category]:
        """All categories ordered by name."""
        try:
            return self.db.query(Category).order_by(Category.name).all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing categories: {e}")
            raise StorageError() from e

    def exists(self, category_id: int) -> bool:
        return self.db.query(Category.id).filter(Category.id == category_id).first() is not None

    def seed_defaults(self, names: Iterable[str]) -> int:
        """
        Insert the default categories if the table is empty.

        Returns:
            Number of categories inserted
        """
        if self.db.query(Category.id).first() is not None:
            return 0

        categories = [Category(name=name) for name in names]
        self.db.add_all(categories)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"Seeded {len(categories)} default categories")
        return len(categories)
