from sqlalchemy import Column, Integer, String

from tuckshop.database import Base


class Category(Base):
    """
    Product category (Snacks, Beverages, ...).

    Categories are reference data: they are seeded at start-up and are
    never updated or deleted once products point at them.
    """
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True)

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"
