"""
Amendment queue: which customers are awaiting a role, and the RO resubmission.
Run from project root: python -m pytest tests/test_amendment_queue.py -v
"""
import unittest
from datetime import timedelta

from models import CustomerStatus, Role
from schemas.amendment import PendingFilters
from services.amendment_queue import classify, list_pending_for_role, resubmit_amendment
from services.errors import AuthorizationError, ValidationError
from tests.support import CREATED_AT, DatabaseTestCase, actor

BM = actor(Role.BRANCH_MANAGER, user_id="bm-1")
CSO = actor(Role.CUSTOMER_SERVICE_OFFICER, user_id="cso-1")
RO = actor(Role.RELATIONSHIP_OFFICER, user_id="ro-1")


class TestClassify(unittest.TestCase):
    def test_classification(self):
        for status in ("sent_back_by_bm", "sent_back_by_cso", "sent_back_by_ca"):
            self.assertEqual(classify(status), "ro_action_needed")
        for status in ("bm_review_amend", "cso_review_amend", "ca_review_amend"):
            self.assertEqual(classify(status), "manager_approval_needed")


class TestPendingForRole(DatabaseTestCase):
    async def test_unedited_customer_is_excluded(self):
        await self.add_customer("cus-1", status=CustomerStatus.SENT_BACK_BY_BM)
        await self.add_customer(
            "cus-2", status=CustomerStatus.SENT_BACK_BY_BM, edited_at=CREATED_AT + timedelta(hours=2)
        )
        rows = await list_pending_for_role(self.db, BM)
        self.assertEqual([r.id for r in rows], ["cus-2"])
        self.assertEqual(rows[0].action, "ro_action_needed")

    async def test_status_scope_and_order(self):
        await self.add_customer("cus-1", status=CustomerStatus.BM_REVIEW_AMEND, edited_at=CREATED_AT + timedelta(hours=1))
        await self.add_customer("cus-2", status=CustomerStatus.SENT_BACK_BY_BM, edited_at=CREATED_AT + timedelta(hours=3))
        await self.add_customer("cus-3", status=CustomerStatus.BM_REVIEW, edited_at=CREATED_AT + timedelta(hours=2))
        await self.add_customer(
            "cus-4", status=CustomerStatus.BM_REVIEW_AMEND, branch_id="br2", edited_at=CREATED_AT + timedelta(hours=4)
        )
        await self.add_customer("cus-5", status=CustomerStatus.CSO_REVIEW_AMEND, edited_at=CREATED_AT + timedelta(hours=5))

        rows = await list_pending_for_role(self.db, BM)
        self.assertEqual([r.id for r in rows], ["cus-2", "cus-1"])
        self.assertEqual([r.action for r in rows], ["ro_action_needed", "manager_approval_needed"])

        rows = await list_pending_for_role(self.db, CSO)
        self.assertEqual([r.id for r in rows], ["cus-5"])

    async def test_filters(self):
        later = CREATED_AT + timedelta(hours=1)
        await self.add_customer("cus-1", status=CustomerStatus.BM_REVIEW_AMEND, edited_at=later)
        await self.add_customer(
            "cus-2", status=CustomerStatus.SENT_BACK_BY_BM, edited_at=later, first_name="Brian", mobile="0798765432"
        )

        rows = await list_pending_for_role(self.db, BM, PendingFilters(search="brian"))
        self.assertEqual([r.id for r in rows], ["cus-2"])
        rows = await list_pending_for_role(self.db, BM, PendingFilters(search="0798"))
        self.assertEqual([r.id for r in rows], ["cus-2"])
        rows = await list_pending_for_role(self.db, BM, PendingFilters(status=CustomerStatus.BM_REVIEW_AMEND))
        self.assertEqual([r.id for r in rows], ["cus-1"])
        rows = await list_pending_for_role(self.db, BM, PendingFilters(status=CustomerStatus.CA_REVIEW_AMEND))
        self.assertEqual(rows, [])

    async def test_non_reviewer_has_no_queue(self):
        with self.assertRaises(AuthorizationError):
            await list_pending_for_role(self.db, RO)

    async def test_reviewer_without_scope_is_refused(self):
        await self.add_customer(
            status=CustomerStatus.BM_REVIEW_AMEND, branch_id=None, region_id=None, edited_at=CREATED_AT + timedelta(hours=1)
        )
        unbranched = actor(Role.BRANCH_MANAGER, user_id="bm-9", branch_id=None)
        unregioned = actor(Role.CUSTOMER_SERVICE_OFFICER, user_id="cso-9", region_id=None)
        with self.assertRaises(AuthorizationError):
            await list_pending_for_role(self.db, unbranched)
        with self.assertRaises(AuthorizationError):
            await list_pending_for_role(self.db, unregioned)


class TestResubmit(DatabaseTestCase):
    async def test_resubmit_moves_to_amend_status(self):
        await self.add_customer(status=CustomerStatus.SENT_BACK_BY_CSO)
        customer = await resubmit_amendment(self.db, RO, "cus-1", {"mobile": "0700999888"})
        self.assertEqual(customer.status, "cso_review_amend")
        self.assertEqual(customer.mobile, "0700999888")

        rows = await list_pending_for_role(self.db, CSO)
        self.assertEqual([(r.id, r.action) for r in rows], [("cus-1", "manager_approval_needed")])

    async def test_only_sent_back_customers(self):
        await self.add_customer(status=CustomerStatus.BM_REVIEW)
        with self.assertRaises(ValidationError):
            await resubmit_amendment(self.db, RO, "cus-1")

    async def test_only_relationship_officer(self):
        await self.add_customer(status=CustomerStatus.SENT_BACK_BY_BM)
        with self.assertRaises(AuthorizationError):
            await resubmit_amendment(self.db, BM, "cus-1")

    async def test_rejects_non_customer_fields(self):
        await self.add_customer(status=CustomerStatus.SENT_BACK_BY_BM)
        with self.assertRaises(ValidationError):
            await resubmit_amendment(self.db, RO, "cus-1", {"status": "approved"})

    async def test_rejects_mistyped_values(self):
        await self.add_customer(status=CustomerStatus.SENT_BACK_BY_BM)
        with self.assertRaises(ValidationError):
            await resubmit_amendment(self.db, RO, "cus-1", {"year_established": "last spring"})
        customer = await resubmit_amendment(self.db, RO, "cus-1", {"year_established": "2016"})
        self.assertEqual(customer.year_established, 2016)

    async def test_relationship_officer_without_branch_is_refused(self):
        await self.add_customer(status=CustomerStatus.SENT_BACK_BY_BM, branch_id=None)
        unbranched = actor(Role.RELATIONSHIP_OFFICER, user_id="ro-9", branch_id=None)
        with self.assertRaises(AuthorizationError):
            await resubmit_amendment(self.db, unbranched, "cus-1")


if __name__ == "__main__":
    unittest.main()
