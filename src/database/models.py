"""
Database models for the workflow catalog.

A workflow definition is stored as one row: scalar columns for the
identifying fields and a JSON document column for the step graph, so the
persisted shape matches the flat-file format exactly.

- String primary key (workflow ids are application generated)
- JSONB on PostgreSQL, generic JSON elsewhere (SQLite in tests)
"""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Index, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

StepsDocument = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all database models."""


class WorkflowRecord(Base):
    """
    Stored workflow definition.

    ``steps`` holds the list of step documents in their persisted camelCase
    form. ``position`` keeps catalog order stable across backends.
    """
    __tablename__ = "workflows"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    protected: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    steps: Mapped[list] = mapped_column(StepsDocument, nullable=False, default=list)
    position: Mapped[int] = mapped_column(nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("ix_workflows_name", "name"),
        Index("ix_workflows_position", "position"),
    )

    def to_document(self) -> dict:
        """Row as a workflow document in the persisted shape."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "protected": self.protected,
            "steps": self.steps,
        }

    def __repr__(self) -> str:
        return f"<WorkflowRecord(id={self.id}, name={self.name})>"
