import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


def generate_id():
    """Generate a UUID string primary key"""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Naive UTC timestamp, the storage convention for every DateTime column"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    industry = Column(String(255), nullable=True)
    employee_count = Column(String(50), nullable=True)
    estimated_extensions = Column(Integer, nullable=True)
    plan = Column(String(20), default="starter", nullable=False)  # starter, growth
    status = Column(String(20), default="inactive", nullable=False)  # active, inactive, suspended
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    users = relationship("User", back_populates="tenant")


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    username = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)  # bcrypt hash
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    role = Column(String(20), default="user", nullable=False)  # owner, admin, user
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=True, index=True)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    tenant = relationship("Tenant", back_populates="users")


class Extension(Base):
    __tablename__ = "extensions"
    __table_args__ = (UniqueConstraint("tenant_id", "number", name="uq_extensions_tenant_number"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    number = Column(String(20), nullable=False)
    user_name = Column(String(255), nullable=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    status = Column(String(20), default="ACTIVE", nullable=False)  # ACTIVE, INACTIVE
    sip_password = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)


class IvrMenu(Base):
    __tablename__ = "ivr_menus"

    id = Column(String(36), primary_key=True, default=generate_id)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    greeting_text = Column(Text, nullable=True)
    greeting_audio_url = Column(String(500), nullable=True)
    # [{key, action, target, description}]
    options = Column(JSON, default=list, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)


class Queue(Base):
    __tablename__ = "queues"

    id = Column(String(36), primary_key=True, default=generate_id)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    strategy = Column(String(20), default="ringall", nullable=False)
    max_wait_time = Column(Integer, default=300, nullable=False)  # seconds
    members = Column(JSON, default=list, nullable=False)  # extension numbers
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)


class Recording(Base):
    __tablename__ = "recordings"

    id = Column(String(36), primary_key=True, default=generate_id)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    call_id = Column(String(100), nullable=False)
    started_at = Column(DateTime, nullable=False, index=True)
    duration_sec = Column(Integer, default=0, nullable=False)
    size_bytes = Column(Integer, default=0, nullable=False)
    url = Column(String(500), nullable=False)
    created_at = Column(DateTime, default=utc_now)


class BankTransfer(Base):
    __tablename__ = "bank_transfers"

    id = Column(String(36), primary_key=True, default=generate_id)
    reference_number = Column(String(100), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    bank = Column(String(255), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    transfer_date = Column(DateTime, nullable=False)
    transfer_time = Column(String(10), nullable=False)
    purpose = Column(String(255), nullable=False)
    comments = Column(Text, nullable=True)
    receipt_url = Column(String(500), nullable=True)
    status = Column(String(20), default="pending", nullable=False)  # pending, approved, rejected
    admin_comments = Column(Text, nullable=True)
    processed_at = Column(DateTime, nullable=True)
    processed_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utc_now)


class CallRecord(Base):
    __tablename__ = "call_records"

    id = Column(String(36), primary_key=True, default=generate_id)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    extension_id = Column(String(36), ForeignKey("extensions.id", ondelete="SET NULL"), nullable=True)
    duration = Column(Integer, default=0)  # seconds
    call_type = Column(String(20), nullable=False)  # incoming, outgoing, internal
    ai_processed = Column(Boolean, default=False)
    ai_duration = Column(Integer, default=0)  # seconds handled by the AI agent
    cost = Column(Numeric(8, 4), default=0)
    created_at = Column(DateTime, default=utc_now, index=True)


class AiMetric(Base):
    __tablename__ = "ai_metrics"
    __table_args__ = (UniqueConstraint("tenant_id", "date", name="uq_ai_metrics_tenant_date"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    date = Column(DateTime, nullable=False)
    total_seconds = Column(Integer, default=0)
    total_calls = Column(Integer, default=0)
    total_cost = Column(Numeric(10, 2), default=0)
    language = Column(String(10), default="es")
    success_rate = Column(Numeric(5, 2), default=0)


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=generate_id)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    call_id = Column(String(100), nullable=False, index=True)
    phone_number = Column(String(50), nullable=False)
    status = Column(String(20), default="ringing", nullable=False)  # ringing, answered, ended
    notes = Column(Text, nullable=True)
    tags = Column(JSON, default=list, nullable=False)
    started_at = Column(DateTime, default=utc_now)
    answered_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    messages = relationship(
        "ConversationMessage",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ConversationMessage.created_at",
    )


class ConversationMessage(Base):
    __tablename__ = "conversation_messages"

    id = Column(String(36), primary_key=True, default=generate_id)
    conversation_id = Column(String(36), ForeignKey("conversations.id"), nullable=False, index=True)
    sender = Column(String(20), default="system", nullable=False)  # agent, customer, system
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utc_now)

    conversation = relationship("Conversation", back_populates="messages")
