"""
One reviewer's pass over one customer.

The same session type serves every reviewer role; the role's policy decides what gets
pre-filled and which peer passes are shown. Edits touch only the in-memory snapshot until
save_draft() (single overwritable draft per customer and role) or submit() (new immutable
verification record plus the status change, in one transaction).

Steps: 1 Customer, 2 Business, 3 Guarantors, 4 Security, 5 Next of kin, 6 Documents,
7 Loan, 8 Decision. Forward moves are gated by validate_step(); backward moves are free.
"""
from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import atomic
from models import Customer, Decision, VerificationRecord
from models.verification import DRAFT_ONLY
from schemas.actor import Actor
from schemas.verification import (
    GuarantorCheck,
    PeerReview,
    ReviewData,
    SessionSnapshot,
    SubmitResult,
    ValidationIssue,
)
from services.amendments import amendments_to_persist, detect_amendments, finalize_amendments
from services.customer_graph import load_customer, load_customer_graph, load_guarantors
from services.decision import apply_decision, sent_back_fields
from services.errors import AuthorizationError, OperationInProgressError, ValidationError
from services.field_copy import check_changes
from services.role_policy import RolePolicy, check_scope, policy_for
from utils.case import to_snake_key
from utils.rows import as_float

logger = logging.getLogger(__name__)

STEP_COUNT = 8
STEP_TITLES = {
    1: "Customer",
    2: "Business",
    3: "Guarantors",
    4: "Security",
    5: "Next of Kin",
    6: "Documents",
    7: "Loan",
    8: "Decision",
}

# Sections of ReviewData that mutate() may change, plus the decision fields
CHECK_SECTIONS = frozenset({
    "customer", "business", "security", "guarantor_security", "next_of_kin", "document", "loan",
})
DECISION_FIELDS = frozenset({"final_decision", "overall_comment"})
CHANGE_TARGETS = frozenset({"customer", "guarantor", "next_of_kin"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_blank(value: Optional[str]) -> bool:
    return not (value or "").strip()


class VerificationSession:
    def __init__(self, db: AsyncSession, actor: Actor, customer: Customer, snapshot: SessionSnapshot) -> None:
        self.db = db
        self.actor = actor
        self.customer = customer
        self.snapshot = snapshot
        self.policy: RolePolicy = policy_for(actor.role)
        self._in_progress = False

    # ------------------------------------------------------------------ loading

    @classmethod
    async def load(cls, db: AsyncSession, actor: Actor, customer_id: str) -> "VerificationSession":
        """
        Fetch the customer graph and build the starting snapshot.
        Resumes the role's draft when there is one; otherwise pre-fills from the role's last
        committed pass unless the policy forbids it. Peer passes are attached read-only.
        """
        policy = policy_for(actor.role)
        customer = await load_customer(db, customer_id, actor.tenant_id)
        check_scope(policy, actor, customer)
        graph = await load_customer_graph(db, customer)

        data = ReviewData()
        hydrated_from = None
        draft = await _latest_record(db, customer.id, policy.role.value, draft=True)
        if draft is not None:
            data = ReviewData.model_validate(draft.data)
            hydrated_from = "draft"
        elif policy.hydrate_own:
            own = await _latest_record(db, customer.id, policy.role.value, draft=False)
            if own is not None:
                data = ReviewData.model_validate(own.data)
                hydrated_from = "committed"
        data.guarantors = _sized_guarantors(data.guarantors, len(graph.guarantors))

        peers: list[PeerReview] = []
        for peer_role in policy.visible_peer_roles:
            record = await _latest_record(db, customer.id, peer_role.value, draft=False)
            if record is not None:
                peers.append(_peer_review(record))

        snapshot = SessionSnapshot(
            customer_id=customer.id,
            role=policy.role,
            step=1,
            data=data,
            fields_to_amend=detect_amendments(data),
            peer_reviews=peers,
            prequalified_amount=as_float(customer.prequalified_amount),
            hydrated_from=hydrated_from,
            graph=graph,
        )
        logger.info("Loaded %s session for customer %s (%s)", policy.role.value, customer.id, hydrated_from or "fresh")
        return cls(db, actor, customer, snapshot)

    @classmethod
    async def resume(cls, db: AsyncSession, actor: Actor, snapshot: SessionSnapshot) -> "VerificationSession":
        """Rebuild a session from a client-held snapshot; server-side values are re-read."""
        if snapshot.role != actor.role:
            raise AuthorizationError(
                f"Session belongs to {snapshot.role.value}, not {actor.role.value}",
                details={"customer_id": snapshot.customer_id},
            )
        policy = policy_for(actor.role)
        customer = await load_customer(db, snapshot.customer_id, actor.tenant_id)
        check_scope(policy, actor, customer)
        guarantors = await load_guarantors(db, customer.id)
        data = snapshot.data.model_copy(
            update={"guarantors": _sized_guarantors(snapshot.data.guarantors, len(guarantors))}
        )
        snapshot = snapshot.model_copy(
            update={
                "data": data,
                "prequalified_amount": as_float(customer.prequalified_amount),
                "fields_to_amend": detect_amendments(data),
                "warnings": [],
                "graph": None,
            }
        )
        return cls(db, actor, customer, snapshot)

    # ------------------------------------------------------------------ editing

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    def mutate(self, section: str, field: str, value: Any, index: Optional[int] = None) -> SessionSnapshot:
        """Change one field of the in-memory snapshot and recompute the amendment groups."""
        section = to_snake_key(section)
        field = to_snake_key(field)
        data = self.snapshot.data
        self.snapshot.warnings = []

        if section == "decision" or field in DECISION_FIELDS:
            if field not in DECISION_FIELDS:
                raise ValidationError(f"Unknown decision field: {field}")
            self.snapshot.data = _validated(ReviewData, {**data.model_dump(), field: value}, section, field)
        elif section == "guarantors":
            if index is None or not 0 <= index < len(data.guarantors):
                raise ValidationError(
                    f"Guarantor index {index} out of range", details={"guarantors": len(data.guarantors)}
                )
            current = data.guarantors[index]
            _require_field(current, section, field)
            data.guarantors[index] = _validated(GuarantorCheck, {**current.model_dump(), field: value}, section, field)
        elif section == "resolved_changes":
            if field not in CHANGE_TARGETS:
                raise ValidationError(f"Unknown change target: {field}")
            if not isinstance(value, dict):
                raise ValidationError(f"resolved_changes.{field} must be an object")
            changes = {to_snake_key(k): v for k, v in value.items()}
            setattr(data.resolved_changes, field, check_changes(field, changes) if changes else {})
        elif section in CHECK_SECTIONS:
            current = getattr(data, section)
            _require_field(current, section, field)
            updated = _validated(type(current), {**current.model_dump(), field: value}, section, field)
            setattr(data, section, updated)
            if section == "loan" and field == "scored_amount":
                self._enforce_amount_ceiling()
        else:
            raise ValidationError(f"Unknown section: {section}")

        self.snapshot.fields_to_amend = detect_amendments(self.snapshot.data)
        return self.snapshot

    def _enforce_amount_ceiling(self) -> bool:
        """Reset an above-ceiling scored amount to 0 with a warning; True when a reset happened."""
        loan = self.snapshot.data.loan
        ceiling = self.snapshot.prequalified_amount
        if loan.scored_amount > ceiling:
            warning = (
                f"Scored amount {loan.scored_amount:,.2f} exceeds the prequalified amount "
                f"{ceiling:,.2f} and was reset to 0"
            )
            loan.scored_amount = 0
            if warning not in self.snapshot.warnings:
                self.snapshot.warnings.append(warning)
            logger.warning("Customer %s: %s", self.customer.id, warning)
            return True
        return False

    # --------------------------------------------------------------- validation

    def validate_step(self, step: Optional[int] = None) -> list[ValidationIssue]:
        if step is None:
            step = self.snapshot.step
        if not 1 <= step <= STEP_COUNT:
            raise ValidationError(f"Step must be between 1 and {STEP_COUNT}")
        data = self.snapshot.data
        issues: list[ValidationIssue] = []

        def require_comment(section: str, comment: str, message: str) -> None:
            if _is_blank(comment):
                issues.append(ValidationIssue(step=step, section=section, field="comment", message=message))

        if step == 1:
            require_comment("customer", data.customer.comment, "Please add comments for customer verification")
        elif step == 2:
            require_comment("business", data.business.comment, "Please add business verification comments")
        elif step == 3:
            for i, guarantor in enumerate(data.guarantors):
                require_comment(f"guarantors[{i}]", guarantor.comment, f"Please add comments for Guarantor {i + 1}")
        elif step == 4:
            require_comment("security", data.security.comment, "Please add customer security comments")
            require_comment(
                "guarantor_security", data.guarantor_security.comment, "Please add guarantor security comments"
            )
        elif step == 5:
            require_comment("next_of_kin", data.next_of_kin.comment, "Please add next of kin verification comments")
        elif step == 6:
            require_comment("document", data.document.comment, "Please add document verification comments")
        elif step == 7:
            issues.extend(self._validate_loan())
        elif step == 8:
            if not data.final_decision:
                issues.append(
                    ValidationIssue(step=8, section="decision", field="final_decision", message="Please select a final decision")
                )
            if _is_blank(data.overall_comment):
                issues.append(
                    ValidationIssue(
                        step=8,
                        section="decision",
                        field="overall_comment",
                        message="Please add overall comments and recommendations",
                    )
                )
        return issues

    def _validate_loan(self) -> list[ValidationIssue]:
        loan = self.snapshot.data.loan
        ceiling = self.snapshot.prequalified_amount
        issues: list[ValidationIssue] = []
        if self._enforce_amount_ceiling():
            issues.append(
                ValidationIssue(
                    step=7,
                    section="loan",
                    field="scored_amount",
                    message=f"Scored amount cannot exceed the prequalified amount of {ceiling:,.2f}",
                )
            )
            self.snapshot.fields_to_amend = detect_amendments(self.snapshot.data)
        elif loan.scored_amount <= 0:
            issues.append(
                ValidationIssue(step=7, section="loan", field="scored_amount", message="Please enter a scored amount greater than 0")
            )

        words = len(loan.comment.split())
        min_words = settings.loan_comment_min_words
        max_words = settings.loan_comment_max_words
        if words < min_words:
            issues.append(
                ValidationIssue(
                    step=7, section="loan", field="comment",
                    message=f"Please enter at least {min_words} words in the recommendation",
                )
            )
        elif words > max_words:
            issues.append(
                ValidationIssue(
                    step=7, section="loan", field="comment",
                    message=f"Recommendation cannot exceed {max_words} words",
                )
            )
        return issues

    def next_step(self) -> SessionSnapshot:
        issues = self.validate_step(self.snapshot.step)
        if issues:
            raise ValidationError(f"{STEP_TITLES[self.snapshot.step]} step is incomplete", issues=issues)
        if self.snapshot.step < STEP_COUNT:
            self.snapshot.step += 1
        return self.snapshot

    def previous_step(self) -> SessionSnapshot:
        if self.snapshot.step > 1:
            self.snapshot.step -= 1
        return self.snapshot

    # -------------------------------------------------------------- persistence

    @asynccontextmanager
    async def _operation(self, name: str):
        if self._in_progress:
            raise OperationInProgressError(f"Cannot {name}: another operation is still running")
        self._in_progress = True
        try:
            yield
        finally:
            self._in_progress = False

    async def save_draft(self) -> VerificationRecord:
        """Upsert the single draft for (customer, role). Customer.status is left alone."""
        async with self._operation("save draft"):
            data = self.snapshot.data
            now = _utcnow()
            groups = finalize_amendments(
                detect_amendments(data),
                overall_comment=data.overall_comment,
                verified_by=self.actor.user_id,
                verified_at=now,
                customer_id=self.customer.id,
            )
            values = {
                "tenant_id": self.actor.tenant_id,
                "attempt": None,
                "data": data.model_dump(mode="json"),
                "loan_scored_amount": data.loan.scored_amount,
                "final_decision": data.final_decision.value if data.final_decision else None,
                "overall_comment": data.overall_comment or None,
                "fields_to_amend": [g.model_dump(mode="json") for g in amendments_to_persist(data.final_decision, groups)],
                "verified_by": self.actor.user_id,
                "sent_back_by": None,
                "sent_back_at": None,
                "sent_back_reason": None,
                **sent_back_fields(data.final_decision, self.actor.user_id, data.overall_comment, now),
                "updated_at": now,
            }
            async with atomic(self.db, "save draft"):
                stmt = _dialect_insert(self.db).values(
                    id=f"ver-{uuid.uuid4().hex[:12]}",
                    customer_id=self.customer.id,
                    role=self.policy.role.value,
                    is_draft=True,
                    created_at=now,
                    **values,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[VerificationRecord.customer_id, VerificationRecord.role],
                    index_where=DRAFT_ONLY,
                    set_=values,
                )
                await self.db.execute(stmt)
                self.customer.form_status = "draft"
                await self.db.flush()
                draft = await _latest_record(self.db, self.customer.id, self.policy.role.value, draft=True)
            logger.info("Saved %s draft for customer %s", self.policy.role.value, self.customer.id)
            return draft

    async def submit(self) -> SubmitResult:
        """
        Insert a new committed verification record and apply the decision.
        The insert, draft cleanup, status change and any approved field copy share one
        transaction; on failure nothing is visible.
        """
        async with self._operation("submit"):
            if self.snapshot.step != STEP_COUNT:
                raise ValidationError(
                    "Submit is only available from the decision step",
                    details={"step": self.snapshot.step},
                )
            # Every step must pass, not only the current one
            issues = [issue for step in range(1, STEP_COUNT + 1) for issue in self.validate_step(step)]
            if issues:
                raise ValidationError("Verification is incomplete", issues=issues)
            if self.customer.status not in self.policy.reviewable_statuses:
                raise AuthorizationError(
                    f"Customer is in status {self.customer.status}; "
                    f"{self.policy.role.value} can only review "
                    f"{', '.join(sorted(s.value for s in self.policy.reviewable_statuses))}",
                    details={"customer_id": self.customer.id, "status": self.customer.status},
                )

            data = self.snapshot.data
            decision = Decision(data.final_decision)
            now = _utcnow()
            groups = finalize_amendments(
                detect_amendments(data),
                overall_comment=data.overall_comment,
                verified_by=self.actor.user_id,
                verified_at=now,
                customer_id=self.customer.id,
            )
            persisted = amendments_to_persist(decision, groups)

            async with atomic(self.db, "submit verification"):
                attempt = await _next_attempt(self.db, self.customer.id, self.policy.role.value)
                record = VerificationRecord(
                    id=f"ver-{uuid.uuid4().hex[:12]}",
                    tenant_id=self.actor.tenant_id,
                    customer_id=self.customer.id,
                    role=self.policy.role.value,
                    attempt=attempt,
                    is_draft=False,
                    data=data.model_dump(mode="json"),
                    loan_scored_amount=data.loan.scored_amount,
                    final_decision=decision.value,
                    overall_comment=data.overall_comment,
                    fields_to_amend=[g.model_dump(mode="json") for g in persisted],
                    verified_by=self.actor.user_id,
                    verified_at=now,
                    created_at=now,
                    **sent_back_fields(decision, self.actor.user_id, data.overall_comment, now),
                )
                self.db.add(record)
                await self.db.flush()
                await self.db.execute(
                    delete(VerificationRecord).where(
                        VerificationRecord.customer_id == self.customer.id,
                        VerificationRecord.role == self.policy.role.value,
                        DRAFT_ONLY,
                    )
                )
                status = await apply_decision(self.db, self.customer, self.policy.role, decision, data.resolved_changes)

            logger.info(
                "Submitted %s pass %d for customer %s: %s -> %s",
                self.policy.role.value, attempt, self.customer.id, decision.value, status.value,
            )
            return SubmitResult(
                customer_id=self.customer.id,
                record_id=record.id,
                attempt=attempt,
                status=status.value,
                fields_to_amend=persisted,
            )


# ---------------------------------------------------------------------- helpers


async def _latest_record(
    db: AsyncSession, customer_id: str, role: str, *, draft: bool
) -> Optional[VerificationRecord]:
    stmt = (
        select(VerificationRecord)
        .where(
            VerificationRecord.customer_id == customer_id,
            VerificationRecord.role == role,
            VerificationRecord.is_draft.is_(draft),
        )
        .order_by(VerificationRecord.created_at.desc(), VerificationRecord.attempt.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def _next_attempt(db: AsyncSession, customer_id: str, role: str) -> int:
    result = await db.execute(
        select(func.max(VerificationRecord.attempt)).where(
            VerificationRecord.customer_id == customer_id,
            VerificationRecord.role == role,
            VerificationRecord.is_draft.is_(False),
        )
    )
    return (result.scalar() or 0) + 1


def _dialect_insert(db: AsyncSession):
    """INSERT construct that supports ON CONFLICT for the bound dialect."""
    if db.bind.dialect.name == "postgresql":
        return postgresql.insert(VerificationRecord)
    return sqlite.insert(VerificationRecord)


def _peer_review(record: VerificationRecord) -> PeerReview:
    loan = (record.data or {}).get("loan") or {}
    return PeerReview(
        role=record.role,
        attempt=record.attempt,
        scored_amount=as_float(record.loan_scored_amount) if record.loan_scored_amount is not None else None,
        final_decision=record.final_decision,
        overall_comment=record.overall_comment,
        loan_comment=loan.get("comment"),
        verified_by=record.verified_by,
        verified_at=record.verified_at,
    )


def _sized_guarantors(checks: list[GuarantorCheck], count: int) -> list[GuarantorCheck]:
    """One check per guarantor on file, keeping existing findings by position."""
    return [checks[i] if i < len(checks) else GuarantorCheck() for i in range(count)]


def _require_field(model: Any, section: str, field: str) -> None:
    if field not in type(model).model_fields:
        raise ValidationError(f"Unknown field {field} in section {section}")


def _validated(model_cls, payload: dict[str, Any], section: str, field: str):
    try:
        return model_cls.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid value for {section}.{field}",
            details={"errors": [err["msg"] for err in e.errors()]},
        ) from e
