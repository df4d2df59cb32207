"""SQLAlchemy ORM models for residents, monthly fees, subscriptions and the cash ledger"""

import uuid
from sqlalchemy import (
    Column, String, BigInteger, Boolean, DateTime, Date, Integer, ForeignKey, Text, UniqueConstraint, Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from rt_finance.domain.models import PaymentStatus

Base = declarative_base()


class Resident(Base):
    """Registered household"""

    __tablename__ = "resident"
    __table_args__ = (UniqueConstraint("block", "house_number", name="uq_resident_house"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    block = Column(String(16), nullable=False)
    house_number = Column(String(16), nullable=False)
    full_name = Column(Text, nullable=True)
    occupancy_type = Column(String(32), nullable=True)  # e.g. owner, tenant
    house_status = Column(String(32), nullable=True)  # e.g. occupied, vacant
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())


class RWSubmission(Base):
    """Batch of completed monthly fees reported to the RW"""

    __tablename__ = "rw_submission"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    period = Column(String(7), nullable=False, index=True)
    total_amount = Column(BigInteger, nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    notes = Column(Text, nullable=True)

    monthly_fees = relationship("MonthlyFee", back_populates="rw_submission")


class MonthlyFee(Base):
    """Monthly fee payment proof and its OCR/approval state"""

    __tablename__ = "monthly_fee"
    __table_args__ = (
        UniqueConstraint("block", "house_number", "period", name="uq_monthly_fee_house_period"),
        Index("ix_monthly_fee_status_created", "status", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    block = Column(String(16), nullable=False)
    house_number = Column(String(16), nullable=False)
    period = Column(String(7), nullable=False, index=True)
    full_name = Column(Text, nullable=True)
    amount = Column(BigInteger, nullable=True)
    status = Column(String(32), nullable=False, default=PaymentStatus.PENDING.value)
    raw_text = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    attempt = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    resident_id = Column(Integer, ForeignKey("resident.id", ondelete="SET NULL"), nullable=True)
    rw_submission_id = Column(UUID(as_uuid=True), ForeignKey("rw_submission.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    rw_submission = relationship("RWSubmission", back_populates="monthly_fees")


class DeferredSubscription(Base):
    """Prepaid multi-month fee consumed one month at a time"""

    __tablename__ = "deferred_subscription"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    block = Column(String(16), nullable=False)
    house_number = Column(String(16), nullable=False)
    total_amount = Column(BigInteger, nullable=False)
    monthly_amount = Column(BigInteger, nullable=False)
    remaining = Column(BigInteger, nullable=False)
    start_month = Column(String(7), nullable=False)
    end_month = Column(String(7), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    source_ref = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class CashLedger(Base):
    """Ledger entry; CASH rows carry the running balance, DEFERRED rows do not"""

    __tablename__ = "cash_ledger"
    __table_args__ = (Index("ix_cash_ledger_bucket_id", "bucket", "id"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(8), nullable=False)
    amount = Column(BigInteger, nullable=False)
    bucket = Column(String(16), nullable=False)
    balance = Column(BigInteger, nullable=True)
    date = Column(Date, nullable=False)
    description = Column(Text, nullable=False)
    source = Column(String(32), nullable=False)
    source_ref = Column(Text, nullable=True)
    created_by = Column(Text, nullable=False, default="system")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
