# app/auth/permissions.py
"""
Role capabilities inside an organization.

A pure lookup: (role, resource) -> allowed actions. Nothing here touches the
database or the request.
"""

from enum import Enum
from app.db.models import OrgRole


class Resource(str, Enum):
    BOOKING = "booking"
    PATIENT = "patient"
    DOCTOR = "doctor"
    AVAILABILITY = "availability"
    CLINIC = "clinic"


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    CANCEL = "cancel"
    DELETE = "delete"


_CRUD = frozenset({Action.CREATE, Action.READ, Action.UPDATE, Action.DELETE})
_ALL = _CRUD | {Action.CANCEL}
_READ = frozenset({Action.READ})
_DAY_TO_DAY = frozenset({Action.CREATE, Action.READ, Action.UPDATE, Action.CANCEL})

_FULL_CONTROL: dict[Resource, frozenset[Action]] = {
    Resource.BOOKING: _ALL,
    Resource.PATIENT: _CRUD,
    Resource.DOCTOR: _CRUD,
    Resource.AVAILABILITY: _CRUD,
    Resource.CLINIC: _CRUD,
}

CAPABILITIES: dict[OrgRole, dict[Resource, frozenset[Action]]] = {
    OrgRole.OWNER: _FULL_CONTROL,
    OrgRole.ADMIN: _FULL_CONTROL,
    OrgRole.DOCTOR: {
        Resource.BOOKING: _DAY_TO_DAY,
        Resource.PATIENT: _READ,
        Resource.DOCTOR: _READ,
        Resource.AVAILABILITY: _CRUD,
        Resource.CLINIC: _READ,
    },
    OrgRole.STAFF: {
        Resource.BOOKING: _DAY_TO_DAY,
        Resource.PATIENT: frozenset({Action.CREATE, Action.READ, Action.UPDATE}),
        Resource.DOCTOR: _READ,
        Resource.AVAILABILITY: _READ,
        Resource.CLINIC: _READ,
    },
    OrgRole.MEMBER: {
        Resource.BOOKING: frozenset({Action.CREATE, Action.READ}),
        Resource.DOCTOR: _READ,
        Resource.AVAILABILITY: _READ,
    },
}

# Roles allowed to act on any doctor's profile, not just their own
ADMIN_ROLES = frozenset({OrgRole.OWNER, OrgRole.ADMIN})


def can(role: OrgRole, action: Action, resource: Resource) -> bool:
    return action in CAPABILITIES.get(role, {}).get(resource, frozenset())


__all__ = ["Resource", "Action", "CAPABILITIES", "ADMIN_ROLES", "can"]
