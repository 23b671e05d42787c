# src/irys_forum/models/used_transaction.py
"""Replay-protection ledger of accepted chain transactions."""

from datetime import datetime
from typing import Final

from sqlalchemy import BigInteger, CheckConstraint, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from irys_forum.db.session import Base
from irys_forum.db.time import utcnow

TX_KINDS: Final[tuple[str, ...]] = ("POST", "COMMENT", "USERNAME_REGISTER")


class UsedTransaction(Base):
    """A transaction hash that has authorized exactly one action.

    The primary key on ``tx_hash`` is the replay-protection invariant: a hash
    can never be claimed twice, whatever the content type.
    """

    __tablename__ = "used_transactions"
    __table_args__ = (
        CheckConstraint(
            "kind IN ('POST', 'COMMENT', 'USERNAME_REGISTER')",
            name="ck_used_transactions_kind",
        ),
    )

    tx_hash: Mapped[str] = mapped_column(String(66), primary_key=True)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    user_address: Mapped[str] = mapped_column(String(42), nullable=False)
    content_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    block_number: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    verified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
