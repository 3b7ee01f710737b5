from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text, func

from database import Base
from models.enums import EditRequestStatus


class EditRequest(Base):
    __tablename__ = "edit_requests"

    id = Column(String(64), primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    customer_id = Column(String(64), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    branch_id = Column(String(64), nullable=True, index=True)
    region_id = Column(String(64), nullable=True, index=True)
    section_type = Column(String(32), nullable=False)
    current_values = Column(JSON, nullable=False, default=dict)
    new_values = Column(JSON, nullable=False)
    reason = Column(Text, nullable=True)
    document_urls = Column(JSON, nullable=False, default=dict)
    status = Column(String(32), nullable=False, default=EditRequestStatus.PENDING_BRANCH_MANAGER.value, index=True)

    created_by = Column(String(64), nullable=False)
    confirmed_by = Column(String(64), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(String(64), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by = Column(String(64), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
