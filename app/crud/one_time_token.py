from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.core.constants import TokenTypeEnum
from app.crud.base import CRUDBase
from app.models.one_time_token import OneTimeToken

class CRUDOneTimeToken(CRUDBase[OneTimeToken, object, object]):
    def get_by_token_value(self, db: Session, *, token: str, token_type: TokenTypeEnum) -> Optional[OneTimeToken]:
        return db.query(OneTimeToken).filter(
            OneTimeToken.token == token,
            OneTimeToken.token_type == token_type,
        ).first()

    def get_valid(self, db: Session, *, token: str, token_type: TokenTypeEnum) -> Optional[OneTimeToken]:
        return db.query(OneTimeToken).filter(
            OneTimeToken.token == token,
            OneTimeToken.token_type == token_type,
            OneTimeToken.expires_at > datetime.utcnow()
        ).first()

    def delete_by_user_id_and_type(
        self, db: Session, *, user_id: int, token_type: TokenTypeEnum, commit: bool = True
    ) -> None:
        db.query(OneTimeToken).filter(
            OneTimeToken.user_id == user_id,
            OneTimeToken.token_type == token_type
        ).delete()
        if commit:
            db.commit()

one_time_token = CRUDOneTimeToken(OneTimeToken)
