"""Base repository with shared session helpers."""

from __future__ import annotations

from typing import Any, Generic, Optional, Type, TypeVar

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import Query

ModelType = TypeVar("ModelType")


class BaseRepository(Generic[ModelType]):
    """Generic repository wrapping the Flask-SQLAlchemy session for one model."""

    def __init__(self, db: SQLAlchemy, model: Type[ModelType]) -> None:
        """Initialize repository with database instance and model class.

        Args:
            db: SQLAlchemy database instance
            model: SQLAlchemy model class
        """
        self.db = db
        self.model = model

    def get_one_by_filter(self, **filters: Any) -> Optional[ModelType]:
        """Retrieve the first record matching the filter criteria.

        Args:
            **filters: Field-value pairs to filter by

        Returns:
            Model instance or None if not found
        """
        return self.query().filter_by(**filters).first()

    def add(self, instance: ModelType) -> ModelType:
        """Stage an instance for insertion in the current transaction."""
        self.db.session.add(instance)
        return instance

    def commit(self) -> None:
        """Commit the current transaction."""
        self.db.session.commit()

    def rollback(self) -> None:
        """Rollback the current transaction."""
        self.db.session.rollback()

    def query(self) -> Query:
        """Get a query object for advanced queries.

        Returns:
            SQLAlchemy Query object
        """
        return self.db.session.query(self.model)
