"""
Base declarativa y mixin común de los modelos SQLAlchemy.

Las tablas mutables (saldos, notas, entregas, catálogo) heredan de
BaseModel. El kardex usa Base directamente: sus filas no se actualizan.
"""
from sqlalchemy import Column, DateTime, Integer
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class BaseModel(Base):
    """id autoincremental y marcas de creación/actualización"""
    __abstract__ = True

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id}>"
