from typing import Optional
from datetime import datetime
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field

from highlander.models.fields import AuditAction
from highlander.utils.clock import utcnow


class DeadlineAuditLog(SQLModel, table=True):  # type: ignore[call-arg]
    """Append-only trail of deadline changes and automatic round locks."""

    __tablename__ = "deadline_audit_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    game_id: int = Field(foreign_key="games.id", ondelete="CASCADE", index=True)
    action: AuditAction
    round_number: int
    deadline: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))

    # Only filled for auto_lock entries
    auto_assigned_count: Optional[int] = Field(default=None)
    manual_selection_count: Optional[int] = Field(default=None)
    total_active_tickets: Optional[int] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
