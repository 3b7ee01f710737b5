from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    event,
    func,
)

from database import Base


class VerificationRecord(Base):
    """
    One reviewer pass over a customer. Committed passes form an append-only log keyed by
    (customer, role, attempt); each (customer, role) also owns at most one overwritable draft.
    """

    __tablename__ = "verification_records"
    __table_args__ = (
        UniqueConstraint("customer_id", "role", "attempt", name="uq_verification_attempt"),
    )

    id = Column(String(64), primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    customer_id = Column(String(64), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(32), nullable=False, index=True)
    attempt = Column(Integer, nullable=True)
    is_draft = Column(Boolean, nullable=False, default=False)
    # Section findings (customer, business, guarantors, security, ..., loan)
    data = Column(JSON, nullable=False)
    loan_scored_amount = Column(Numeric(14, 2), nullable=True)
    final_decision = Column(String(16), nullable=True)
    overall_comment = Column(Text, nullable=True)
    fields_to_amend = Column(JSON, nullable=False, default=list)
    verified_by = Column(String(64), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    sent_back_by = Column(String(64), nullable=True)
    sent_back_at = Column(DateTime(timezone=True), nullable=True)
    sent_back_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


@event.listens_for(VerificationRecord, "before_update")
def _refuse_committed_update(mapper, connection, target):
    if not target.is_draft:
        raise ValueError(f"Verification record {target.id} is committed and cannot be modified")


# Rows matched by the single-draft index; the draft upsert targets the same predicate
DRAFT_ONLY = VerificationRecord.is_draft.is_(True)

Index(
    "uq_verification_draft",
    VerificationRecord.customer_id,
    VerificationRecord.role,
    unique=True,
    sqlite_where=DRAFT_ONLY,
    postgresql_where=DRAFT_ONLY,
)
