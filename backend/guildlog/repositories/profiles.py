"""Database-backed hunter profile repository."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from ..db.models import HunterProfileModel
from ..db.session import database_dialect
from ..models import HunterProfile, utcnow

_INSERT_IGNORING_CONFLICTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class ProfileRepository:
    """Point reads and writes against the ``hunter_profiles`` table."""

    def get(self, session: Session, account_key: str) -> Optional[HunterProfile]:
        model = session.get(HunterProfileModel, account_key)
        if model is None:
            return None
        return self._to_domain(model)

    def create_if_absent(
        self,
        session: Session,
        account_key: str,
        display_name: str,
        avatar_id: str,
        *,
        created_at: Optional[datetime] = None,
    ) -> tuple[HunterProfile, bool]:
        """Insert the profile unless the key is taken; return the stored row and whether it was created.

        On SQLite and PostgreSQL this is a single ``INSERT ... ON CONFLICT DO
        NOTHING`` so two registrations racing for one key create exactly one
        row. Other dialects fall back to a plain insert, where the primary key
        raises ``IntegrityError`` for the loser.
        """
        values = {
            "account_key": account_key,
            "display_name": display_name,
            "avatar_id": avatar_id,
            "created_at": created_at or utcnow(),
        }
        insert = _INSERT_IGNORING_CONFLICTS.get(database_dialect(session) or "")
        if insert is not None:
            stmt = insert(HunterProfileModel).values(**values).on_conflict_do_nothing(
                index_elements=[HunterProfileModel.account_key]
            )
            created = session.execute(stmt).rowcount == 1
        else:
            session.add(HunterProfileModel(**values))
            session.flush()
            created = True

        stored = self.get(session, account_key)
        if stored is None:
            raise LookupError(f"Hunter profile '{account_key}' vanished during creation.")
        return stored, created

    def lock(self, session: Session, account_key: str) -> bool:
        """Lock the profile row for the rest of the transaction; ``False`` when it does not exist."""
        return session.get(HunterProfileModel, account_key, with_for_update=True) is not None

    def update_avatar(self, session: Session, account_key: str, avatar_id: str) -> Optional[HunterProfile]:
        model = session.get(HunterProfileModel, account_key)
        if model is None:
            return None
        model.avatar_id = avatar_id
        session.flush()
        return self._to_domain(model)

    def delete(self, session: Session, account_key: str) -> bool:
        result = session.execute(delete(HunterProfileModel).where(HunterProfileModel.account_key == account_key))
        return result.rowcount > 0

    @staticmethod
    def _to_domain(model: HunterProfileModel) -> HunterProfile:
        return HunterProfile(
            account_key=model.account_key,
            display_name=model.display_name,
            avatar_id=model.avatar_id,
            created_at=model.created_at,
        )


hunter_profiles = ProfileRepository()

__all__ = ["ProfileRepository", "hunter_profiles"]
