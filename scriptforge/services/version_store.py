"""
Version store: append-only history of workflow and node snapshots.

Two implementations of the same protocol:

- ``InMemoryVersionStore`` for tests and throwaway runs.
- ``SqlVersionStore`` on SQLAlchemy (``script_versions`` table).

``list_versions`` always returns newest first.
"""

import itertools
from datetime import datetime, timezone
from typing import Optional, Protocol

from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import sessionmaker

from scriptforge.constants import DEFAULT_VERSION_LIST_LIMIT
from scriptforge.db.session import get_sync_db
from scriptforge.models import ScriptVersion


class VersionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    workflow_id: str
    content: str
    message: str
    tags: list[str] = []
    stats: Optional[dict] = None
    created_at: Optional[datetime] = None


class VersionStore(Protocol):
    def create_version(
        self,
        workflow_id: str,
        content: str,
        message: str,
        stats: Optional[dict] = None,
        tags: Optional[list[str]] = None,
    ) -> VersionRecord:
        ...

    def list_versions(self, workflow_id: str, limit: int = DEFAULT_VERSION_LIST_LIMIT) -> list[VersionRecord]:
        ...


class InMemoryVersionStore:
    def __init__(self):
        self._records: list[VersionRecord] = []
        self._ids = itertools.count(1)

    def create_version(
        self,
        workflow_id: str,
        content: str,
        message: str,
        stats: Optional[dict] = None,
        tags: Optional[list[str]] = None,
    ) -> VersionRecord:
        record = VersionRecord(
            id=next(self._ids),
            workflow_id=workflow_id,
            content=content,
            message=message,
            tags=list(tags or []),
            stats=stats,
            created_at=datetime.now(timezone.utc),
        )
        self._records.append(record)
        return record

    def list_versions(self, workflow_id: str, limit: int = DEFAULT_VERSION_LIST_LIMIT) -> list[VersionRecord]:
        matching = [r for r in reversed(self._records) if r.workflow_id == workflow_id]
        return matching[:limit]


class SqlVersionStore:
    """Version store backed by the ``script_versions`` table."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def create_version(
        self,
        workflow_id: str,
        content: str,
        message: str,
        stats: Optional[dict] = None,
        tags: Optional[list[str]] = None,
    ) -> VersionRecord:
        with get_sync_db(self.session_factory) as db:
            version = ScriptVersion(
                workflow_id=workflow_id,
                content=content,
                message=message,
                stats=stats,
                tags=list(tags or []),
            )
            db.add(version)
            db.commit()
            db.refresh(version)
            return VersionRecord.model_validate(version)

    def list_versions(self, workflow_id: str, limit: int = DEFAULT_VERSION_LIST_LIMIT) -> list[VersionRecord]:
        with get_sync_db(self.session_factory) as db:
            rows = (
                db.query(ScriptVersion)
                .filter(ScriptVersion.workflow_id == workflow_id)
                .order_by(ScriptVersion.id.desc())
                .limit(limit)
                .all()
            )
            return [VersionRecord.model_validate(row) for row in rows]
