from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text

from .database import Base
from .models import generate_id, utc_now


class Pipeline(Base):
    __tablename__ = "pipelines"

    id = Column(String(36), primary_key=True, default=generate_id)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)


class PipelineStage(Base):
    __tablename__ = "pipeline_stages"

    id = Column(String(36), primary_key=True, default=generate_id)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    pipeline_id = Column(String(36), ForeignKey("pipelines.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    order = Column(Integer, default=0, nullable=False)
    color = Column(String(20), default="#3b82f6", nullable=False)
    is_fixed = Column(Boolean, default=False, nullable=False)
    # open, won, lost - closing stages drive metrics and closed_at
    kind = Column(String(10), default="open", nullable=False)
    created_at = Column(DateTime, default=utc_now)


class Lead(Base):
    __tablename__ = "leads"

    id = Column(String(36), primary_key=True, default=generate_id)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    pipeline_id = Column(String(36), ForeignKey("pipelines.id"), nullable=False, index=True)
    stage_id = Column(String(36), ForeignKey("pipeline_stages.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    company = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    value = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(3), default="USD", nullable=False)
    probability = Column(Integer, default=50, nullable=False)
    expected_close_date = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    tags = Column(JSON, default=list, nullable=False)
    source = Column(String(100), nullable=True)
    assigned_to = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)


class LeadActivity(Base):
    __tablename__ = "lead_activities"

    id = Column(String(36), primary_key=True, default=generate_id)
    lead_id = Column(String(36), ForeignKey("leads.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    type = Column(String(20), nullable=False)  # note, call, email, meeting, stage_change, task
    description = Column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=utc_now)
