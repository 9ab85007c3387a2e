"""
Sport catalogue (basketball, soccer, ...). Seeded by migration, read-only at runtime.
"""

from sqlalchemy import Column, Integer, String

from pickup.db.base import Base


class Sport(Base):
    __tablename__ = "sports"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    icon = Column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<Sport(id={self.id}, slug={self.slug})>"
