from sqlalchemy import Column, ForeignKey, Integer, Numeric, String, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from splitledger.db.session import Base


class ExpenseStatus:
    ACTIVE = "active"
    DELETED = "deleted"


class AuditAction:
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=False, default="general")
    amount = Column(Numeric(18, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    split_type = Column(String, nullable=False)

    paid_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    added_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="SET NULL"), nullable=True, index=True)

    expense_date = Column(DateTime(timezone=True), server_default=func.now())
    status = Column(String, nullable=False, default=ExpenseStatus.ACTIVE, index=True)
    # bumped by every edit and delete; writers claim the row by the version they read
    version = Column(Integer, nullable=False, default=1, server_default="1")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    participants = relationship(
        "ExpenseParticipant",
        back_populates="expense",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def is_deleted(self) -> bool:
        return self.status == ExpenseStatus.DELETED


class ExpenseParticipant(Base):
    __tablename__ = "expense_participants"
    __table_args__ = (
        UniqueConstraint("expense_id", "user_id", name="uq_expense_participant"),
    )

    id = Column(Integer, primary_key=True)
    expense_id = Column(Integer, ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # paid minus owed; the rows of one expense sum to zero
    amount = Column(Numeric(18, 2), nullable=False)

    expense = relationship("Expense", back_populates="participants")


class ExpenseAudit(Base):
    __tablename__ = "expense_audit"

    id = Column(Integer, primary_key=True)
    expense_id = Column(Integer, ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(String, nullable=False)
    actor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
