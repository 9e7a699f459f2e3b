from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Enum, String, func
from sqlalchemy.orm import Mapped, mapped_column

from tokenbot.src.storage.database import Base


# ── Enums ──────────────────────────────────────────────────────────────


class RecordState(str, enum.Enum):
    unregistered = "unregistered"
    active = "active"
    pending_deletion = "pending_deletion"
    pending_regeneration = "pending_regeneration"


PENDING_STATES: frozenset[RecordState] = frozenset(
    {RecordState.pending_deletion, RecordState.pending_regeneration}
)


# ── Models ─────────────────────────────────────────────────────────────


class Record(Base):
    """One account's token.

    The token is the primary key and never changes; rotating it replaces the row.
    A guest (no row) is represented by ``Record.unregistered()`` which is never persisted.
    """

    __tablename__ = "records"
    __table_args__ = (
        CheckConstraint("state != 'unregistered'", name="ck_records_state_persisted"),
    )

    token: Mapped[str] = mapped_column(String(64), primary_key=True)
    account_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False, index=True)
    state: Mapped[RecordState] = mapped_column(
        Enum(RecordState, name="record_state"), nullable=False, default=RecordState.active
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @classmethod
    def unregistered(cls, account_id: int) -> Record:
        """Build the transient record handed to commands for accounts with no row."""
        return cls(account_id=account_id, token=None, state=RecordState.unregistered)

    @property
    def is_registered(self) -> bool:
        return self.token is not None

    @property
    def is_pending(self) -> bool:
        return self.state in PENDING_STATES

    def __repr__(self) -> str:
        return f"Record(account_id={self.account_id}, state={self.state.value})"
