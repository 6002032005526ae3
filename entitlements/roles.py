from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence

OWNER = "OWNER"
ADMIN = "ADMIN"
MANAGER = "MANAGER"
VIEWER = "VIEWER"

ROLES = (OWNER, ADMIN, MANAGER, VIEWER)

ROLE_PERMISSIONS = {
    OWNER: frozenset({"*"}),
    ADMIN: frozenset(
        {
            "manage_team",
            "manage_organizations",
            "view_analytics",
            "manage_feedback",
            "manage_qr_codes",
        }
    ),
    MANAGER: frozenset(
        {
            "manage_organizations",
            "view_analytics",
            "manage_feedback",
            "manage_qr_codes",
        }
    ),
    VIEWER: frozenset(
        {
            "view_organizations",
            "view_analytics",
            "view_feedback",
        }
    ),
}


@dataclass(frozen=True)
class TeamMember:
    """A row of the account's team list as returned by the API."""

    role: str
    account_id: str = ""
    email: str = ""
    member_id: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", str(self.role or "").strip().upper())

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> "TeamMember":
        member = raw.get("member") or {}
        return cls(
            role=raw.get("role") or "",
            account_id=str(raw.get("account_id") or ""),
            email=str(member.get("email") or raw.get("email") or ""),
            member_id=str(raw.get("member_id") or member.get("id") or ""),
        )


def _coerce(members: Iterable[Any]) -> Iterable[TeamMember]:
    for member in members:
        if isinstance(member, TeamMember):
            yield member
        else:
            yield TeamMember.from_api(member)


def find_member(team_members: Iterable[Any], email: str, user_id: str) -> Optional[TeamMember]:
    """Locate the caller: the owner by account id, everyone else by email."""
    for member in _coerce(team_members):
        if member.role == OWNER and user_id and member.account_id == user_id:
            return member
        if email and member.email == email:
            return member
    return None


def has_role(
    team_members: Iterable[Any],
    email: str,
    user_id: str,
    allowed_roles: Sequence[str],
) -> bool:
    member = find_member(team_members, email, user_id)
    if member is None or not member.role:
        return False
    return member.role in {str(r).upper() for r in allowed_roles}


def can_perform_action(team_members: Iterable[Any], email: str, user_id: str, action: str) -> bool:
    member = find_member(team_members, email, user_id)
    if member is None or not member.role:
        return False
    permissions = ROLE_PERMISSIONS.get(member.role, frozenset())
    return "*" in permissions or action in permissions
