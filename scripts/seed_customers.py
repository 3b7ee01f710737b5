"""
Seed demo customers (with guarantors, next of kin and security items) for the review workflow.
Run: python -m scripts.seed_customers (from the project root, with DB running).
"""
import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone

# Add parent so we can import from the project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from database import AsyncSessionLocal, init_db
from models import Customer, CustomerStatus, Guarantor, NextOfKin, SecurityItem, SecurityOwner

TENANT_ID = "demo"

CUSTOMERS_DATA = [
    {
        "id": "cus-amina",
        "branch_id": "br-central",
        "region_id": "rg-north",
        "first_name": "Amina",
        "surname": "Otieno",
        "mobile": "0712345678",
        "id_number": "28765432",
        "business_name": "Amina Grocers",
        "business_type": "Retail",
        "daily_sales": 4_500,
        "prequalified_amount": 50_000,
        "status": CustomerStatus.BM_REVIEW,
        "guarantors": [
            {"id": "gua-amina-1", "first_name": "Peter", "surname": "Kamau", "mobile": "0722000111", "relationship_type": "Brother"},
        ],
        "next_of_kin": {"id": "nok-amina", "first_name": "Grace", "surname": "Otieno", "mobile": "0733000222", "relationship_type": "Sister"},
        "security": [
            {"id": "sec-amina-1", "owner": SecurityOwner.BORROWER, "item": "Fridge", "estimated_value": 35_000},
            {"id": "sec-amina-2", "owner": SecurityOwner.GUARANTOR, "item": "Motorbike", "estimated_value": 80_000},
        ],
    },
    {
        "id": "cus-brian",
        "branch_id": "br-central",
        "region_id": "rg-north",
        "first_name": "Brian",
        "surname": "Mwangi",
        "mobile": "0798765432",
        "id_number": "31234567",
        "business_name": "Brian Hardware",
        "business_type": "Hardware",
        "daily_sales": 9_000,
        "prequalified_amount": 120_000,
        "status": CustomerStatus.BM_REVIEW_AMEND,
        # RO corrected the record after a BM send-back
        "edited_after": timedelta(days=1),
        "guarantors": [
            {"id": "gua-brian-1", "first_name": "Mary", "surname": "Wanjiru", "mobile": "0711222333", "relationship_type": "Spouse"},
            {"id": "gua-brian-2", "first_name": "John", "surname": "Njoroge", "mobile": "0700111222", "relationship_type": "Friend"},
        ],
        "next_of_kin": None,
        "security": [
            {"id": "sec-brian-1", "owner": SecurityOwner.BORROWER, "item": "Generator", "estimated_value": 60_000},
        ],
    },
]


async def seed():
    await init_db()
    now = datetime.now(timezone.utc)
    async with AsyncSessionLocal() as session:
        for data in CUSTOMERS_DATA:
            existing = await session.execute(select(Customer).where(Customer.id == data["id"]))
            if existing.scalar_one_or_none():
                print(f"Customer {data['id']} already exists, skipping")
                continue
            created_at = now - timedelta(days=7)
            customer = Customer(
                id=data["id"],
                tenant_id=TENANT_ID,
                branch_id=data["branch_id"],
                region_id=data["region_id"],
                first_name=data["first_name"],
                surname=data["surname"],
                mobile=data["mobile"],
                id_number=data["id_number"],
                business_name=data["business_name"],
                business_type=data["business_type"],
                daily_sales=data["daily_sales"],
                prequalified_amount=data["prequalified_amount"],
                status=data["status"].value,
                created_by="ro-demo",
                created_at=created_at,
                edited_at=created_at + data.get("edited_after", timedelta(0)),
            )
            session.add(customer)
            await session.flush()
            for g in data["guarantors"]:
                session.add(Guarantor(customer_id=customer.id, **g))
            if data["next_of_kin"]:
                session.add(NextOfKin(customer_id=customer.id, **data["next_of_kin"]))
            for s in data["security"]:
                session.add(
                    SecurityItem(
                        id=s["id"],
                        customer_id=customer.id,
                        owner=s["owner"].value,
                        item=s["item"],
                        estimated_value=s["estimated_value"],
                    )
                )
            print(f"Seeded customer: {customer.full_name}")
        await session.commit()
    print("Seed complete.")


if __name__ == "__main__":
    asyncio.run(seed())
