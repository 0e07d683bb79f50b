"""SQLAlchemy ORM models for the managed store tables the core reads and writes"""

import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Date, Integer, ForeignKey, Numeric, Text
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class Client(Base):
    """Customer an entry is sold to"""

    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=_uuid)
    account_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)


class Entry(Base):
    """Sale or service ledger entry"""

    __tablename__ = "entries"

    id = Column(String(36), primary_key=True, default=_uuid)
    account_id = Column(Text, nullable=False, index=True)
    user_id = Column(Text, nullable=False)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="SET NULL"), nullable=True)
    service_product_id = Column(String(36), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    value = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="pendente")
    date = Column(Date, nullable=False, index=True)
    due_date = Column(Date, nullable=True)
    payment_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    schedules = relationship("EntrySchedule", cascade="all, delete-orphan")


class EntrySchedule(Base):
    """Installment or monthly-package payment belonging to an entry"""

    __tablename__ = "entry_schedules"

    id = Column(String(36), primary_key=True, default=_uuid)
    account_id = Column(Text, nullable=False, index=True)
    user_id = Column(Text, nullable=False)
    entry_id = Column(String(36), ForeignKey("entries.id", ondelete="CASCADE"), nullable=False, index=True)
    schedule_type = Column(Text, nullable=False)
    installment_number = Column(Integer, nullable=False, default=1)
    installments_total = Column(Integer, nullable=False, default=1)
    due_date = Column(Date, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(Text, nullable=False, default="pendente")
    paid_at = Column(DateTime(timezone=True), nullable=True)
    previous_status = Column(Text, nullable=True)
    edited_by = Column(Text, nullable=True)
    edited_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ExpenseRecord(Base):
    """Fixed or variable expense"""

    __tablename__ = "expenses"

    id = Column(String(36), primary_key=True, default=_uuid)
    account_id = Column(Text, nullable=False, index=True)
    user_id = Column(Text, nullable=False)
    type = Column(Text, nullable=False)
    category = Column(Text, nullable=False, default="")
    value = Column(Numeric(12, 2), nullable=False)
    date = Column(Date, nullable=False, index=True)
    status = Column(Text, nullable=False, default="pendente")


class Profile(Base):
    """Subscription fields of a user profile, written by billing callbacks and admins"""

    __tablename__ = "profiles"

    user_id = Column(Text, primary_key=True)
    email = Column(Text, nullable=True, index=True)
    subscription_status = Column(Text, nullable=True)
    subscription_plan = Column(Text, nullable=True)
    selected_plan = Column(Text, nullable=True)
    plan_type = Column(Text, nullable=True)
    trial_days = Column(Integer, nullable=True)
    trial_start_date = Column(DateTime(timezone=True), nullable=True)
    trial_end_date = Column(DateTime(timezone=True), nullable=True)
    subscription_expiration_date = Column(DateTime(timezone=True), nullable=True)
    is_owner = Column(Boolean, nullable=False, default=False)
