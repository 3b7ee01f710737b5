"""
Edit request ledger: role and state guards, uploads before the ledger write, approval copy.
Run from project root: python -m pytest tests/test_edit_requests.py -v
"""
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from sqlalchemy import func, select

from models import Customer, EditRequest, EditSection, Guarantor, NextOfKin, Role
from schemas.edit_request import EditRequestCreate
from services import field_copy
from services.edit_requests import (
    SupportingDocument,
    approve_edit_request,
    confirm_edit_request,
    create_edit_request,
    get_edit_request,
    list_edit_requests,
    reject_edit_request,
)
from services.errors import AuthorizationError, PersistenceError, ValidationError
from services.storage import LocalObjectStorage
from tests.support import DatabaseTestCase, actor

RO = actor(Role.RELATIONSHIP_OFFICER, user_id="ro-1")
OTHER_RO = actor(Role.RELATIONSHIP_OFFICER, user_id="ro-2")
BM = actor(Role.BRANCH_MANAGER, user_id="bm-1")
OTHER_BM = actor(Role.BRANCH_MANAGER, user_id="bm-2", branch_id="br2")
ADMIN = actor(Role.SUPERADMIN, user_id="admin-1", branch_id=None, region_id=None)
CA = actor(Role.CREDIT_ANALYST_OFFICER, user_id="ca-1")


class RecordingStorage:
    def __init__(self):
        self.paths = []

    async def upload(self, path, data):
        self.paths.append(path)
        return f"https://files.example/{path}"


class FailingStorage:
    async def upload(self, path, data):
        raise PersistenceError("Upload failed")


def _mobile_change(**overrides) -> EditRequestCreate:
    values = {
        "customer_id": "cus-1",
        "section_type": EditSection.PHONE_ID,
        "new_values": {"mobile": "0700111222"},
        "reason": "Customer changed number",
    }
    values.update(overrides)
    return EditRequestCreate(**values)


class TestEditRequestLedger(DatabaseTestCase):
    async def _customer(self) -> Customer:
        stmt = select(Customer).where(Customer.id == "cus-1").execution_options(populate_existing=True)
        return (await self.db.execute(stmt)).scalar_one()

    async def _request_count(self) -> int:
        return (await self.db.execute(select(func.count()).select_from(EditRequest))).scalar()

    async def test_mobile_edit_full_flow(self):
        await self.add_customer()
        request = await create_edit_request(self.db, RO, _mobile_change())
        self.assertEqual(request.status, "pending_branch_manager")
        self.assertEqual(request.current_values, {"mobile": "0712345678"})
        self.assertEqual(request.branch_id, "br1")

        request = await confirm_edit_request(self.db, BM, request.id)
        self.assertEqual(request.status, "confirmed")
        self.assertEqual(request.confirmed_by, "bm-1")
        self.assertEqual((await self._customer()).mobile, "0712345678")

        request = await approve_edit_request(self.db, ADMIN, request.id)
        self.assertEqual(request.status, "approved")
        self.assertEqual(request.approved_by, "admin-1")
        self.assertEqual((await self._customer()).mobile, "0700111222")

    async def test_approve_requires_confirmation(self):
        await self.add_customer()
        request = await create_edit_request(self.db, RO, _mobile_change())
        with self.assertRaises(AuthorizationError):
            await approve_edit_request(self.db, ADMIN, request.id)
        self.assertEqual((await self._customer()).mobile, "0712345678")

    async def test_no_transition_out_of_approved(self):
        await self.add_customer()
        request = await create_edit_request(self.db, RO, _mobile_change())
        await confirm_edit_request(self.db, BM, request.id)
        await approve_edit_request(self.db, ADMIN, request.id)
        with self.assertRaises(AuthorizationError):
            await confirm_edit_request(self.db, BM, request.id)
        with self.assertRaises(AuthorizationError):
            await reject_edit_request(self.db, ADMIN, request.id, "too late")

    async def test_role_guards(self):
        await self.add_customer()
        with self.assertRaises(AuthorizationError):
            await create_edit_request(self.db, CA, _mobile_change())
        request = await create_edit_request(self.db, RO, _mobile_change())
        with self.assertRaises(AuthorizationError):
            await confirm_edit_request(self.db, RO, request.id)
        with self.assertRaises(AuthorizationError):
            await confirm_edit_request(self.db, ADMIN, request.id)
        with self.assertRaises(AuthorizationError):
            await confirm_edit_request(self.db, OTHER_BM, request.id)
        await confirm_edit_request(self.db, BM, request.id)
        with self.assertRaises(AuthorizationError):
            await approve_edit_request(self.db, BM, request.id)

    async def test_reject_from_either_open_state(self):
        await self.add_customer()
        pending = await create_edit_request(self.db, RO, _mobile_change())
        rejected = await reject_edit_request(self.db, BM, pending.id, "Wrong number")
        self.assertEqual(rejected.status, "rejected")
        self.assertEqual(rejected.rejection_reason, "Wrong number")

        confirmed = await create_edit_request(self.db, RO, _mobile_change())
        await confirm_edit_request(self.db, BM, confirmed.id)
        rejected = await reject_edit_request(self.db, ADMIN, confirmed.id, "Not supported by documents")
        self.assertEqual(rejected.status, "rejected")
        self.assertEqual(rejected.rejected_by, "admin-1")

    async def test_reject_needs_reason(self):
        await self.add_customer()
        request = await create_edit_request(self.db, RO, _mobile_change())
        with self.assertRaises(ValidationError):
            await reject_edit_request(self.db, BM, request.id, "   ")

    async def test_unknown_field_is_refused(self):
        await self.add_customer()
        with self.assertRaises(ValidationError):
            await create_edit_request(self.db, RO, _mobile_change(new_values={"first_name": "Amy"}))
        self.assertEqual(await self._request_count(), 0)

    async def test_documents_uploaded_before_ledger_write(self):
        await self.add_customer()
        storage = RecordingStorage()
        docs = (SupportingDocument(key="idFront", filename="id front.png", content=b"\x89PNG"),)
        request = await create_edit_request(self.db, RO, _mobile_change(), storage=storage, documents=docs)
        self.assertEqual(len(storage.paths), 1)
        self.assertTrue(storage.paths[0].startswith("edit_requests/"))
        self.assertTrue(storage.paths[0].endswith("_id_front.png"))
        self.assertEqual(request.document_urls["idFront"], f"https://files.example/{storage.paths[0]}")

    async def test_failed_upload_aborts(self):
        await self.add_customer()
        docs = (SupportingDocument(key="idFront", filename="id.png", content=b"data"),)
        with self.assertRaises(PersistenceError):
            await create_edit_request(self.db, RO, _mobile_change(), storage=FailingStorage(), documents=docs)
        self.assertEqual(await self._request_count(), 0)

    async def test_guarantor_edit_targets_primary_guarantor(self):
        await self.add_customer(guarantors=2)
        body = _mobile_change(section_type=EditSection.GUARANTOR, new_values={"mobile": "0788000000"})
        request = await create_edit_request(self.db, BM, body)
        self.assertEqual(request.current_values, {"mobile": "0722000100"})
        await confirm_edit_request(self.db, BM, request.id)
        await approve_edit_request(self.db, ADMIN, request.id)

        rows = (await self.db.execute(select(Guarantor).order_by(Guarantor.created_at))).scalars().all()
        self.assertEqual([g.mobile for g in rows], ["0788000000", "0722000101"])

    async def test_next_of_kin_edit_creates_missing_row(self):
        await self.add_customer(with_next_of_kin=False)
        body = _mobile_change(section_type=EditSection.NEXT_OF_KIN, new_values={"first_name": "Joy", "mobile": "0744"})
        request = await create_edit_request(self.db, RO, body)
        self.assertEqual(request.current_values, {"first_name": "", "mobile": ""})
        await confirm_edit_request(self.db, BM, request.id)
        await approve_edit_request(self.db, ADMIN, request.id)

        nok = (await self.db.execute(select(NextOfKin).where(NextOfKin.customer_id == "cus-1"))).scalar_one()
        self.assertEqual((nok.first_name, nok.mobile), ("Joy", "0744"))

    async def test_list_scoping(self):
        await self.add_customer()
        await create_edit_request(self.db, RO, _mobile_change())
        await create_edit_request(self.db, OTHER_RO, _mobile_change(new_values={"mobile": "0700"}))

        self.assertEqual(len(await list_edit_requests(self.db, RO)), 1)
        self.assertEqual(len(await list_edit_requests(self.db, BM)), 2)
        self.assertEqual(len(await list_edit_requests(self.db, OTHER_BM)), 0)
        self.assertEqual(len(await list_edit_requests(self.db, ADMIN)), 2)
        self.assertEqual(len(await list_edit_requests(self.db, ADMIN, status="confirmed")), 0)

    async def test_mistyped_value_is_refused_at_create(self):
        await self.add_customer()
        body = _mobile_change(section_type=EditSection.BUSINESS, new_values={"daily_sales": "lots"})
        with self.assertRaises(ValidationError) as ctx:
            await create_edit_request(self.db, RO, body)
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(await self._request_count(), 0)

    async def test_business_values_are_coerced_before_storage(self):
        await self.add_customer()
        body = _mobile_change(
            section_type=EditSection.BUSINESS, new_values={"daily_sales": "4500", "year_established": "2015"}
        )
        request = await create_edit_request(self.db, RO, body)
        self.assertEqual(request.new_values, {"daily_sales": 4500.0, "year_established": 2015})
        await confirm_edit_request(self.db, BM, request.id)
        await approve_edit_request(self.db, ADMIN, request.id)

        customer = await self._customer()
        self.assertEqual(customer.year_established, 2015)
        self.assertEqual(float(customer.daily_sales), 4500.0)

    async def test_failed_copy_leaves_request_confirmed(self):
        await self.add_customer()
        request = await create_edit_request(self.db, RO, _mobile_change())
        await confirm_edit_request(self.db, BM, request.id)

        async def copy_then_fail(*args, **kwargs):
            await field_copy.apply_field_values(*args, **kwargs)
            raise PersistenceError("connection lost")

        with mock.patch("services.edit_requests.apply_field_values", copy_then_fail):
            with self.assertRaises(PersistenceError):
                await approve_edit_request(self.db, ADMIN, request.id)

        request = await get_edit_request(self.db, ADMIN, request.id)
        self.assertEqual(request.status, "confirmed")
        self.assertIsNone(request.approved_by)
        self.assertEqual((await self._customer()).mobile, "0712345678")

    async def test_branch_manager_without_branch_is_refused(self):
        await self.add_customer(branch_id=None)
        unbranched_ro = actor(Role.RELATIONSHIP_OFFICER, user_id="ro-9", branch_id=None)
        unbranched_bm = actor(Role.BRANCH_MANAGER, user_id="bm-9", branch_id=None)
        request = await create_edit_request(self.db, unbranched_ro, _mobile_change())
        self.assertIsNone(request.branch_id)

        with self.assertRaises(AuthorizationError):
            await confirm_edit_request(self.db, unbranched_bm, request.id)
        with self.assertRaises(AuthorizationError):
            await list_edit_requests(self.db, unbranched_bm)
        request = await get_edit_request(self.db, ADMIN, request.id)
        self.assertEqual(request.status, "pending_branch_manager")


class TestLocalObjectStorage(unittest.IsolatedAsyncioTestCase):
    async def test_upload_writes_file_and_returns_url(self):
        with tempfile.TemporaryDirectory() as tmp:
            storage = LocalObjectStorage(tmp, "http://files.local/uploads/")
            url = await storage.upload("edit_requests/a.txt", b"hello")
            self.assertEqual(url, "http://files.local/uploads/edit_requests/a.txt")
            self.assertEqual((Path(tmp) / "edit_requests" / "a.txt").read_bytes(), b"hello")

    async def test_refuses_paths_outside_root(self):
        with tempfile.TemporaryDirectory() as tmp:
            storage = LocalObjectStorage(tmp, "http://files.local/uploads")
            with self.assertRaises(PersistenceError):
                await storage.upload("../escape.txt", b"x")


if __name__ == "__main__":
    unittest.main()
