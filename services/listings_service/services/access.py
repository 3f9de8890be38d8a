"""Business-level authorization for listing and order management."""

import uuid
from typing import Iterable, Optional

from libs.auth.models import AuthUser
from libs.common.errors import BusinessNotFound, NotAuthorized
from services.listings_service.models import Business, BusinessStaff, StaffRole
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession


async def get_business(db: AsyncSession, business_id: uuid.UUID) -> Business:
    business = await db.get(Business, business_id)
    if not business:
        raise BusinessNotFound(business_id=business_id)
    return business


async def ensure_business_access(
    db: AsyncSession,
    business_id: uuid.UUID,
    user: AuthUser,
    roles: Optional[Iterable[StaffRole]] = None,
) -> Business:
    """Return the business if ``user`` may act for it, else raise NotAuthorized.

    Platform admins always pass; the owner always passes; staff pass when
    their role is in ``roles`` (any role when ``roles`` is None).
    """
    business = await get_business(db, business_id)
    if user.is_admin or business.owner_auth_id == user.user_id:
        return business

    result = await db.execute(
        select(BusinessStaff).where(
            BusinessStaff.business_id == business_id,
            BusinessStaff.user_id == user.user_id,
        )
    )
    membership = result.scalar_one_or_none()
    if membership and (roles is None or membership.role in set(roles)):
        return business

    raise NotAuthorized(business_id=business_id, user_id=user.user_id)
