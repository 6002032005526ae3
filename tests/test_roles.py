from __future__ import annotations

from entitlements.roles import TeamMember, can_perform_action, find_member, has_role

TEAM = [
    {"role": "OWNER", "account_id": "acct-1", "member": {"email": "owner@example.com"}},
    {"role": "manager", "account_id": "acct-1", "member_id": "mem-2", "member": {"email": "mgr@example.com"}},
    {"role": "VIEWER", "account_id": "acct-1", "member_id": "mem-3", "member": {"email": "viewer@example.com"}},
]


def test_owner_is_found_by_account_id():
    member = find_member(TEAM, email="someone-else@example.com", user_id="acct-1")
    assert member is not None
    assert member.role == "OWNER"


def test_members_are_found_by_email_and_role_is_uppercased():
    member = find_member(TEAM, email="mgr@example.com", user_id="mem-2")
    assert member == TeamMember(role="MANAGER", account_id="acct-1", email="mgr@example.com", member_id="mem-2")


def test_unknown_caller_has_no_role():
    assert has_role(TEAM, "stranger@example.com", "mem-99", ["OWNER", "VIEWER"]) is False


def test_has_role_is_case_insensitive():
    assert has_role(TEAM, "mgr@example.com", "mem-2", ["owner", "manager"]) is True
    assert has_role(TEAM, "viewer@example.com", "mem-3", ["OWNER", "ADMIN", "MANAGER"]) is False


def test_owner_can_do_anything():
    assert can_perform_action(TEAM, "", "acct-1", "delete_everything") is True


def test_viewer_permissions():
    assert can_perform_action(TEAM, "viewer@example.com", "mem-3", "view_analytics") is True
    assert can_perform_action(TEAM, "viewer@example.com", "mem-3", "manage_qr_codes") is False
