"""Database-backed quest repository, one collection per account key."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..db.models import QuestModel
from ..models import Quest, QuestDraft, utcnow

EDITABLE_FIELDS = ("name", "details", "difficulty", "icon_id", "due_at")


class QuestRepository:
    def list_for_account(self, session: Session, account_key: str) -> List[Quest]:
        stmt = (
            select(QuestModel)
            .where(QuestModel.account_key == account_key)
            .order_by(QuestModel.created_at.desc(), QuestModel.id.desc())
        )
        return [self._to_domain(model) for model in session.execute(stmt).scalars().all()]

    def get(self, session: Session, account_key: str, quest_id: str) -> Optional[Quest]:
        model = self._get_model(session, account_key, quest_id)
        return self._to_domain(model) if model else None

    def add(
        self,
        session: Session,
        account_key: str,
        draft: QuestDraft,
        *,
        icon_id: str,
        created_at: Optional[datetime] = None,
    ) -> Quest:
        model = QuestModel(
            account_key=account_key,
            name=draft.name,
            details=draft.details,
            difficulty=draft.difficulty,
            icon_id=draft.icon_id or icon_id,
            due_at=draft.due_at,
            completed=False,
            created_at=created_at or utcnow(),
            completed_at=None,
            updated_at=None,
        )
        session.add(model)
        session.flush()
        return self._to_domain(model)

    def update(
        self,
        session: Session,
        account_key: str,
        quest_id: str,
        changes: Dict[str, Any],
        *,
        updated_at: Optional[datetime] = None,
    ) -> Optional[Quest]:
        model = self._get_model(session, account_key, quest_id)
        if model is None:
            return None
        for field, value in changes.items():
            if field not in EDITABLE_FIELDS:
                raise ValueError(f"Quest field '{field}' is not editable.")
            setattr(model, field, value)
        model.updated_at = updated_at or utcnow()
        session.flush()
        return self._to_domain(model)

    def toggle(
        self,
        session: Session,
        account_key: str,
        quest_id: str,
        *,
        now: Optional[datetime] = None,
    ) -> Optional[Quest]:
        model = self._get_model(session, account_key, quest_id)
        if model is None:
            return None
        completing = not model.completed
        model.completed = completing
        model.completed_at = (now or utcnow()) if completing else None
        session.flush()
        return self._to_domain(model)

    def delete(self, session: Session, account_key: str, quest_id: str) -> bool:
        stmt = delete(QuestModel).where(QuestModel.account_key == account_key, QuestModel.id == quest_id)
        return session.execute(stmt).rowcount > 0

    def delete_all(self, session: Session, account_key: str) -> int:
        result = session.execute(delete(QuestModel).where(QuestModel.account_key == account_key))
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_model(self, session: Session, account_key: str, quest_id: str) -> Optional[QuestModel]:
        stmt = select(QuestModel).where(QuestModel.account_key == account_key, QuestModel.id == quest_id)
        return session.execute(stmt).scalar_one_or_none()

    @staticmethod
    def _to_domain(model: QuestModel) -> Quest:
        return Quest(
            id=model.id,
            name=model.name,
            details=model.details,
            difficulty=model.difficulty,
            icon_id=model.icon_id,
            due_at=model.due_at,
            completed=model.completed,
            created_at=model.created_at,
            completed_at=model.completed_at,
            updated_at=model.updated_at,
        )


quest_log = QuestRepository()

__all__ = ["EDITABLE_FIELDS", "QuestRepository", "quest_log"]
