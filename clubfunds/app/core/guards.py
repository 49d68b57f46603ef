"""
Security guards for club-scoped access control.
"""

from typing import Any

from clubfunds.app.core.exceptions import InsufficientPermissionsError


def ensure_club_access(resource_club_id: Any, current_club: dict, resource_name: str = "resource") -> None:
    """
    Enforce that a resource belongs to the caller's club.

    Raises:
        InsufficientPermissionsError: when the club IDs differ
    """
    if resource_club_id is None or int(resource_club_id) != int(current_club["club_id"]):
        raise InsufficientPermissionsError(
            message=f"Access denied. This {resource_name} belongs to another club.",
            details={"resource": resource_name}
        )
