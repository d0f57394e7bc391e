"""Persisted snapshot of a workflow or one of its nodes."""

from sqlalchemy import Column, String, Text, Integer, DateTime, JSON, Index
from sqlalchemy.sql import func

from scriptforge.db.session import Base


class ScriptVersion(Base):
    __tablename__ = "script_versions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    workflow_id = Column(String(64), nullable=False, index=True)
    content = Column(Text, nullable=False)                  # JSON document
    message = Column(String(500), nullable=False, default="Checkpoint save")
    tags = Column(JSON, nullable=False, default=list)       # e.g. ["node", "node-2"]
    stats = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_script_versions_workflow_created", "workflow_id", "created_at"),
    )
