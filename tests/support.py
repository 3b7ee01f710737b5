"""
Shared fixtures for the async service tests: an in-memory SQLite database per test and
small builders for customers and actors.
"""
import unittest
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  (register tables on Base.metadata)
from database import Base
from models import Customer, CustomerStatus, Guarantor, NextOfKin, Role
from schemas.actor import Actor

TENANT = "t1"
CREATED_AT = datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc)


def actor(
    role: Role, user_id: Optional[str] = None, branch_id: Optional[str] = "br1", region_id: Optional[str] = "rg1"
) -> Actor:
    return Actor(
        user_id=user_id or f"{role.value}-1",
        role=role,
        tenant_id=TENANT,
        branch_id=branch_id,
        region_id=region_id,
    )


class DatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine = create_async_engine(
            "sqlite+aiosqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.sessionmaker = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
        self.db = self.sessionmaker()

    async def asyncTearDown(self):
        await self.db.close()
        await self.engine.dispose()

    async def add_customer(
        self,
        customer_id: str = "cus-1",
        status: CustomerStatus = CustomerStatus.BM_REVIEW,
        prequalified_amount: float = 50_000,
        guarantors: int = 1,
        with_next_of_kin: bool = True,
        **fields,
    ) -> Customer:
        values = {
            "tenant_id": TENANT,
            "branch_id": "br1",
            "region_id": "rg1",
            "first_name": "Amina",
            "surname": "Otieno",
            "mobile": "0712345678",
            "id_number": "28765432",
            "business_name": "Amina Grocers",
            "created_at": CREATED_AT,
            "edited_at": CREATED_AT,
        }
        values.update(fields)
        customer = Customer(
            id=customer_id,
            status=status.value,
            prequalified_amount=prequalified_amount,
            **values,
        )
        self.db.add(customer)
        await self.db.flush()
        for i in range(guarantors):
            self.db.add(
                Guarantor(
                    id=f"{customer_id}-gua-{i + 1}",
                    customer_id=customer_id,
                    first_name=f"Guarantor{i + 1}",
                    surname="Kamau",
                    mobile=f"07220001{i:02d}",
                    created_at=CREATED_AT.replace(minute=i),
                )
            )
        if with_next_of_kin:
            self.db.add(
                NextOfKin(id=f"{customer_id}-nok", customer_id=customer_id, first_name="Grace", mobile="0733000222")
            )
        await self.db.commit()
        return customer
