"""Tenant-scoping adapter for team-owned resources."""

from typing import Optional, Type, TypeVar

from sqlalchemy.orm import Query, Session

from fieldops.core.exceptions import ForbiddenError, ResourceNotFoundError
from fieldops.core.policy import AuthorizationContext

T = TypeVar("T")


class TenantScope:
    """Binds every read and write on a team-owned model to the caller's team.

    Models must expose a `team_id` column. Constructing a scope for a caller
    without a team fails with ForbiddenError, so no query can run unfiltered.
    """

    def __init__(self, context: Optional[AuthorizationContext]):
        if context is None or context.team_id is None:
            raise ForbiddenError("You must be a member of a team")
        self.context = context
        self.team_id = context.team_id

    def query(self, db: Session, model: Type[T]) -> Query:
        return db.query(model).filter(model.team_id == self.team_id)

    def get(self, db: Session, model: Type[T], obj_id: int, label: Optional[str] = None) -> T:
        obj = self.query(db, model).filter(model.id == obj_id).first()
        if obj is None:
            raise ResourceNotFoundError(f"{label or model.__name__} not found")
        return obj

    def get_many(self, db: Session, model: Type[T], ids: list, label: Optional[str] = None) -> list:
        """Fetch all ids inside the team, failing if any is missing."""
        if not ids:
            return []
        unique_ids = set(ids)
        rows = self.query(db, model).filter(model.id.in_(unique_ids)).all()
        if len(rows) != len(unique_ids):
            raise ResourceNotFoundError(f"One or more {(label or model.__name__).lower()}s not found")
        return rows

    def stamp(self, obj: T) -> T:
        """Attach a new object to the caller's team."""
        obj.team_id = self.team_id
        return obj

    def delete(self, db: Session, model: Type[T], obj_id: int, label: Optional[str] = None) -> None:
        obj = self.get(db, model, obj_id, label)
        db.delete(obj)
