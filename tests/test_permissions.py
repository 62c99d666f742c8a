import pytest

from app.auth import Action, Actor, Resource, assert_self_or_admin, can
from app.db.models import OrgRole
from common import ForbiddenError


@pytest.mark.parametrize("role", [OrgRole.OWNER, OrgRole.ADMIN])
@pytest.mark.parametrize("resource", list(Resource))
def test_admins_can_do_everything_crud(role, resource):
    for action in (Action.CREATE, Action.READ, Action.UPDATE, Action.DELETE):
        assert can(role, action, resource)


def test_doctor_capabilities():
    assert can(OrgRole.DOCTOR, Action.CANCEL, Resource.BOOKING)
    assert can(OrgRole.DOCTOR, Action.CREATE, Resource.AVAILABILITY)
    assert can(OrgRole.DOCTOR, Action.READ, Resource.PATIENT)
    assert not can(OrgRole.DOCTOR, Action.DELETE, Resource.BOOKING)
    assert not can(OrgRole.DOCTOR, Action.UPDATE, Resource.PATIENT)


def test_staff_capabilities():
    assert can(OrgRole.STAFF, Action.CREATE, Resource.PATIENT)
    assert can(OrgRole.STAFF, Action.UPDATE, Resource.BOOKING)
    assert not can(OrgRole.STAFF, Action.CREATE, Resource.AVAILABILITY)
    assert not can(OrgRole.STAFF, Action.DELETE, Resource.PATIENT)


def test_member_capabilities():
    assert can(OrgRole.MEMBER, Action.CREATE, Resource.BOOKING)
    assert can(OrgRole.MEMBER, Action.READ, Resource.BOOKING)
    assert not can(OrgRole.MEMBER, Action.UPDATE, Resource.BOOKING)
    assert not can(OrgRole.MEMBER, Action.READ, Resource.PATIENT)


def test_doctor_may_only_edit_own_profile():
    actor = Actor(user_id="u1", organization_id="o1", role=OrgRole.DOCTOR, doctor_id="d1")
    assert_self_or_admin(actor, "d1")
    with pytest.raises(ForbiddenError) as exc_info:
        assert_self_or_admin(actor, "d2")
    assert exc_info.value.code == "NOT_SELF"


def test_admin_may_edit_any_profile():
    actor = Actor(user_id="u1", organization_id="o1", role=OrgRole.ADMIN)
    assert_self_or_admin(actor, "anyone")


def test_patient_filter():
    member = Actor(user_id="u1", organization_id="o1", role=OrgRole.MEMBER, patient_id="p1")
    assert member.patient_filter == "p1"
    unlinked = Actor(user_id="u2", organization_id="o1", role=OrgRole.MEMBER)
    assert unlinked.patient_filter == "u2"
    staff = Actor(user_id="u3", organization_id="o1", role=OrgRole.STAFF)
    assert staff.patient_filter is None
