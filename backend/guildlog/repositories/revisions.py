"""Per-account revision watermarks that make the database the change source.

Writers bump the counter of the kind they touched inside their own
transaction; followers in any process compare counters to decide what to
re-read.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from ..changes import PROFILE, QUESTS
from ..db.models import AccountRevisionModel
from ..db.session import database_dialect
from ..models import utcnow

_UPSERT = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}

_COLUMNS = {
    PROFILE: "profile_revision",
    QUESTS: "quests_revision",
}


@dataclass(frozen=True)
class AccountRevision:
    profile: int = 0
    quests: int = 0

    def changed_kinds(self, previous: Optional["AccountRevision"]) -> tuple[str, ...]:
        if previous is None:
            return (PROFILE, QUESTS)
        kinds = []
        if self.profile != previous.profile:
            kinds.append(PROFILE)
        if self.quests != previous.quests:
            kinds.append(QUESTS)
        return tuple(kinds)


class RevisionRepository:
    def get(self, session: Session, account_key: str) -> AccountRevision:
        model = session.get(AccountRevisionModel, account_key)
        if model is None:
            return AccountRevision()
        return AccountRevision(profile=model.profile_revision, quests=model.quests_revision)

    def bump(self, session: Session, account_key: str, *kinds: str) -> None:
        columns = [_COLUMNS[kind] for kind in kinds]
        now = utcnow()
        upsert = _UPSERT.get(database_dialect(session) or "")
        if upsert is not None:
            values = {column: (1 if column in columns else 0) for column in _COLUMNS.values()}
            stmt = upsert(AccountRevisionModel).values(account_key=account_key, updated_at=now, **values)
            increments = {column: getattr(AccountRevisionModel, column) + 1 for column in columns}
            stmt = stmt.on_conflict_do_update(
                index_elements=[AccountRevisionModel.account_key],
                set_={**increments, "updated_at": now},
            )
            session.execute(stmt)
            return

        model = session.get(AccountRevisionModel, account_key, with_for_update=True)
        if model is None:
            model = AccountRevisionModel(account_key=account_key, profile_revision=0, quests_revision=0)
            session.add(model)
        for column in columns:
            setattr(model, column, getattr(model, column) + 1)
        model.updated_at = now
        session.flush()


account_revisions = RevisionRepository()

__all__ = ["AccountRevision", "RevisionRepository", "account_revisions"]
