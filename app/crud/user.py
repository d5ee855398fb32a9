from typing import List, Optional, Sequence
from sqlalchemy import func
from sqlalchemy.orm import Session, Query

from app.core.constants import RoleEnum
from app.crud.base import CRUDBase
from app.models.user import User
from app.schemas.user import UserCreate, UserUpdate

class CRUDUser(CRUDBase[User, UserCreate, UserUpdate]):
    def get_by_email(self, db: Session, *, email: str) -> Optional[User]:
        return self._query_active(db).filter(func.lower(User.email) == email.lower()).first()

    def email_taken(self, db: Session, *, email: str) -> bool:
        """Deleted accounts keep their address reserved."""
        return db.query(User.id).filter(func.lower(User.email) == email.lower()).first() is not None

    def query_filtered(self, db: Session, *, role: Optional[RoleEnum] = None) -> Query:
        query = self._query_active(db)
        if role:
            query = query.filter(User.role == role)
        return query.order_by(User.created_at.desc(), User.id.desc())

    def get_by_ids(self, db: Session, *, ids: Sequence[int]) -> List[User]:
        if not ids:
            return []
        return self._query_active(db).filter(User.id.in_(ids)).all()

    def get_by_roles(self, db: Session, *, roles: Sequence[RoleEnum]) -> List[User]:
        return (
            self._query_active(db)
            .filter(User.role.in_(roles), User.is_active.is_(True))
            .order_by(User.first_name, User.last_name)
            .all()
        )

    def count_by_role(self, db: Session, *, role: RoleEnum) -> int:
        return self._query_active(db).filter(User.role == role).count()


user = CRUDUser(User)
