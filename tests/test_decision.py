"""
Decision resolver: (role, decision) -> next customer status, and the approved copy-forward.
Run from project root: python -m pytest tests/test_decision.py -v
"""
import unittest

from sqlalchemy import select

from models import Customer, CustomerStatus, Decision, Guarantor, Role
from schemas.verification import ResolvedChanges
from services.decision import STATUS_TRANSITIONS, apply_decision, resolve
from services.errors import AuthorizationError, UnmappedDecisionError
from services.role_policy import ROLE_POLICIES, require_scope_id
from tests.support import DatabaseTestCase, actor

BM = Role.BRANCH_MANAGER
CSO = Role.CUSTOMER_SERVICE_OFFICER
CA = Role.CREDIT_ANALYST_OFFICER


class TestResolve(unittest.TestCase):
    def test_table(self):
        expected = {
            BM: {
                Decision.APPROVED: CustomerStatus.CSO_REVIEW,
                Decision.REFERRED: CustomerStatus.CSO_REVIEW,
                Decision.PENDING: CustomerStatus.SENT_BACK_BY_BM,
                Decision.EDIT: CustomerStatus.SENT_BACK_BY_BM,
                Decision.REJECTED: CustomerStatus.REJECTED,
            },
            CSO: {
                Decision.APPROVED: CustomerStatus.CA_REVIEW,
                Decision.REFERRED: CustomerStatus.CA_REVIEW,
                Decision.PENDING: CustomerStatus.SENT_BACK_BY_CSO,
                Decision.EDIT: CustomerStatus.SENT_BACK_BY_CSO,
                Decision.REJECTED: CustomerStatus.REJECTED,
            },
            CA: {
                Decision.APPROVED: CustomerStatus.APPROVED,
                Decision.REFERRED: CustomerStatus.APPROVED,
                Decision.PENDING: CustomerStatus.SENT_BACK_BY_CA,
                Decision.EDIT: CustomerStatus.SENT_BACK_BY_CA,
                Decision.REJECTED: CustomerStatus.REJECTED,
            },
        }
        for role, outcomes in expected.items():
            for decision, status in outcomes.items():
                with self.subTest(role=role.value, decision=decision.value):
                    self.assertEqual(resolve(role, decision), status)
        self.assertEqual(len(STATUS_TRANSITIONS), 15)

    def test_accepts_plain_strings(self):
        self.assertEqual(resolve("branch_manager", "pending"), CustomerStatus.SENT_BACK_BY_BM)

    def test_unmapped_role_fails_loudly(self):
        for role in (Role.RELATIONSHIP_OFFICER, Role.SUPERADMIN, Role.REGIONAL_MANAGER):
            with self.subTest(role=role.value):
                with self.assertRaises(UnmappedDecisionError):
                    resolve(role, Decision.APPROVED)

    def test_unknown_decision_fails_loudly(self):
        with self.assertRaises(UnmappedDecisionError) as ctx:
            resolve(BM, "escalate")
        self.assertIsInstance(ctx.exception, LookupError)
        with self.assertRaises(UnmappedDecisionError):
            resolve(BM, None)


class TestApplyDecision(DatabaseTestCase):
    async def test_approved_copies_resolved_changes(self):
        customer = await self.add_customer()
        changes = ResolvedChanges(customer={"mobile": "0799000000"}, guarantor={"mobile": "0788000000"})
        status = await apply_decision(self.db, customer, BM, Decision.APPROVED, changes)
        await self.db.commit()

        self.assertEqual(status, CustomerStatus.CSO_REVIEW)
        row = (await self.db.execute(select(Customer).where(Customer.id == customer.id))).scalar_one()
        self.assertEqual(row.status, "cso_review")
        self.assertEqual(row.mobile, "0799000000")
        first = (await self.db.execute(select(Guarantor).order_by(Guarantor.created_at))).scalars().first()
        self.assertEqual(first.mobile, "0788000000")

    async def test_send_back_does_not_copy(self):
        customer = await self.add_customer()
        changes = ResolvedChanges(customer={"mobile": "0799000000"})
        status = await apply_decision(self.db, customer, BM, Decision.PENDING, changes)
        await self.db.commit()

        self.assertEqual(status, CustomerStatus.SENT_BACK_BY_BM)
        row = (await self.db.execute(select(Customer).where(Customer.id == customer.id))).scalar_one()
        self.assertEqual(row.mobile, "0712345678")


class TestRoleScope(unittest.TestCase):
    def test_every_reviewer_is_branch_or_region_scoped(self):
        self.assertEqual({p.scope for p in ROLE_POLICIES.values()}, {"branch", "region"})
        self.assertEqual(ROLE_POLICIES[BM].scope, "branch")

    def test_scope_id_is_required(self):
        self.assertEqual(require_scope_id("branch", actor(BM, branch_id="br7")), "br7")
        self.assertEqual(require_scope_id("region", actor(CSO, region_id="rg7")), "rg7")
        for scope, reviewer in (("branch", actor(BM, branch_id=None)), ("region", actor(CA, region_id=""))):
            with self.subTest(scope=scope):
                with self.assertRaises(AuthorizationError):
                    require_scope_id(scope, reviewer)


if __name__ == "__main__":
    unittest.main()
