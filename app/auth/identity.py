# app/auth/identity.py
"""
Request identity.

Authentication happens upstream; the gateway forwards the caller as
`X-User-Id` and the active organization as `X-Organization-Id`. The role is
looked up here from organization membership.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Awaitable
from fastapi import Depends, Header
from sqlalchemy import select
from app.db import DbManager, get_db_manager
from app.db.models import Member, OrgRole
from common import AuthError, ForbiddenError
from .permissions import ADMIN_ROLES, Action, Resource, can


@dataclass(frozen=True)
class Actor:
    user_id: str
    organization_id: str
    role: OrgRole
    doctor_id: Optional[str] = None
    patient_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def patient_filter(self) -> Optional[str]:
        """Patient accounts only ever see their own bookings."""
        if self.role == OrgRole.MEMBER:
            return self.patient_id or self.user_id
        return None


async def get_current_actor(
    x_user_id: Optional[str] = Header(default=None),
    x_organization_id: Optional[str] = Header(default=None),
    db_manager: DbManager = Depends(get_db_manager),
) -> Actor:
    if not x_user_id:
        raise AuthError()
    if not x_organization_id:
        raise ForbiddenError("No active organization selected", code="NO_ACTIVE_ORG")

    query = (
        select(Member)
        .where(Member.user_id == x_user_id)
        .where(Member.organization_id == x_organization_id)
        .execution_options(logging_token="identity.get_current_actor")
    )
    # Released before the route runs; SSE handlers hold no connection
    async with db_manager.session() as session:
        member = (await session.execute(query)).scalar_one_or_none()

    if member is None:
        raise ForbiddenError("Not a member of this organization", code="NOT_A_MEMBER")

    return Actor(
        user_id=member.user_id,
        organization_id=member.organization_id,
        role=member.role,
        doctor_id=member.doctor_id,
        patient_id=member.patient_id,
    )


def require_permission(
    resource: Resource, action: Action
) -> Callable[..., Awaitable[Actor]]:
    """
    Usage:
        actor: Actor = Depends(require_permission(Resource.BOOKING, Action.CREATE))
    """

    async def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if not can(actor.role, action, resource):
            raise ForbiddenError(
                f"Role '{actor.role.value}' cannot {action.value} {resource.value}",
                code="INSUFFICIENT_ROLE",
            )
        return actor

    return dependency


def assert_self_or_admin(actor: Actor, doctor_id: str) -> None:
    """Doctors may only write their own profile's schedule."""
    if actor.is_admin:
        return
    if actor.role == OrgRole.DOCTOR and actor.doctor_id == doctor_id:
        return
    raise ForbiddenError(
        "You can only modify your own doctor profile", code="NOT_SELF"
    )


__all__ = [
    "Actor",
    "get_current_actor",
    "require_permission",
    "assert_self_or_admin",
]
