from sqlalchemy import Column, ForeignKey, Integer, Numeric, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from splitledger.db.session import Base


class Balance(Base):
    """
    Running total between two users in one currency.

    amount > 0 means friend owes user. Every row has a mirror
    (friend_id, user_id, currency) holding -amount.
    """

    __tablename__ = "balances"
    __table_args__ = (
        UniqueConstraint("user_id", "friend_id", "currency", name="uq_balance_pair_currency"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    friend_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    currency = Column(String(3), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False, default=0)
    # last amount written by a Splitwise import, used to make re-imports a no-op
    imported_amount = Column(Numeric(18, 2), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class GroupBalance(Base):
    __tablename__ = "group_balances"
    __table_args__ = (
        UniqueConstraint(
            "group_id", "user_id", "friend_id", "currency", name="uq_group_balance_pair_currency"
        ),
    )

    id = Column(Integer, primary_key=True)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    friend_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    currency = Column(String(3), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
