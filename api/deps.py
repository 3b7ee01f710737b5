"""Request-scoped dependencies shared by the workflow routers."""
from typing import Optional

from fastapi import Header, HTTPException

from models.enums import Role
from schemas.actor import Actor
from services.errors import WorkflowError
from services.storage import ObjectStorage, get_storage


async def get_actor(
    user_id: str = Header(..., alias="X-User-Id"),
    role: str = Header(..., alias="X-User-Role"),
    tenant_id: str = Header(..., alias="X-Tenant-Id"),
    branch_id: Optional[str] = Header(None, alias="X-Branch-Id"),
    region_id: Optional[str] = Header(None, alias="X-Region-Id"),
) -> Actor:
    """Acting user from the identity headers set by the gateway."""
    try:
        parsed_role = Role(role)
    except ValueError:
        raise HTTPException(status_code=403, detail=f"Unknown role: {role}") from None
    return Actor(
        user_id=user_id,
        role=parsed_role,
        tenant_id=tenant_id,
        branch_id=branch_id or None,
        region_id=region_id or None,
    )


def get_object_storage() -> ObjectStorage:
    return get_storage()


def http_error(e: WorkflowError) -> HTTPException:
    """Domain error -> HTTPException carrying the error's status code and body."""
    return HTTPException(status_code=e.status_code, detail=e.to_dict())
