"""
Read side of the review: the customer and every record a reviewer inspects, keyed by
customer id within a tenant. Child image tables are flattened to plain URL lists.
"""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models import (
    BusinessImage,
    Customer,
    Document,
    Guarantor,
    NextOfKin,
    SecurityItem,
    SecurityOwner,
)
from schemas.customer import CustomerGraph, SecurityItemView
from services.errors import NotFoundError
from utils.rows import row_to_dict, to_plain


async def load_customer(session: AsyncSession, customer_id: str, tenant_id: str) -> Customer:
    result = await session.execute(
        select(Customer).where(Customer.id == customer_id, Customer.tenant_id == tenant_id)
    )
    customer = result.scalar_one_or_none()
    if not customer:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})
    return customer


async def load_guarantors(session: AsyncSession, customer_id: str) -> list[Guarantor]:
    result = await session.execute(
        select(Guarantor).where(Guarantor.customer_id == customer_id).order_by(Guarantor.created_at, Guarantor.id)
    )
    return list(result.scalars().all())


async def load_customer_graph(session: AsyncSession, customer: Customer) -> CustomerGraph:
    guarantors = await load_guarantors(session, customer.id)

    sec_result = await session.execute(
        select(SecurityItem)
        .options(selectinload(SecurityItem.images))
        .where(SecurityItem.customer_id == customer.id)
        .order_by(SecurityItem.created_at, SecurityItem.id)
    )
    security_items = sec_result.scalars().all()

    nok_result = await session.execute(select(NextOfKin).where(NextOfKin.customer_id == customer.id))
    next_of_kin = nok_result.scalar_one_or_none()

    doc_result = await session.execute(
        select(Document).where(Document.customer_id == customer.id).order_by(Document.created_at)
    )
    img_result = await session.execute(
        select(BusinessImage.image_url).where(BusinessImage.customer_id == customer.id).order_by(BusinessImage.id)
    )

    borrower_items = [_security_view(s) for s in security_items if s.owner == SecurityOwner.BORROWER]
    guarantor_items = [_security_view(s) for s in security_items if s.owner == SecurityOwner.GUARANTOR]

    return CustomerGraph(
        customer=row_to_dict(customer),
        guarantors=[row_to_dict(g) for g in guarantors],
        security_items=borrower_items,
        guarantor_security_items=guarantor_items,
        next_of_kin=row_to_dict(next_of_kin) if next_of_kin else None,
        documents=[row_to_dict(d) for d in doc_result.scalars().all()],
        business_images=list(img_result.scalars().all()),
    )


def _security_view(item: SecurityItem) -> SecurityItemView:
    return SecurityItemView(
        id=item.id,
        item=item.item,
        description=item.description,
        estimated_value=to_plain(item.estimated_value),
        images=[img.image_url for img in item.images],
    )
