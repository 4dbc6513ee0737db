"""
Read interface over circle membership for the payments engine.

Key Components:
    MembershipService: Stateless lookups answering "who belongs to this
    circle" and "may this user administer it"

Usage:
    member_ids = MembershipService.list_members(circle_id)

    if not MembershipService.is_group_admin(circle_id, user):
        raise PermissionDeniedError(...)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.services import BaseService

from circles.models import Circle, Membership, WorkspaceMember, WorkspaceRole

if TYPE_CHECKING:
    import uuid

    from django.contrib.auth.models import AbstractBaseUser


class MembershipService(BaseService):
    """
    Stateless service providing membership checks.

    Results are not cached: contribution rows are created from the live
    member list every time an event is read.
    """

    @classmethod
    def list_members(cls, circle_id: uuid.UUID) -> list[int]:
        """Return the user ids of every current member of a circle."""
        return list(
            Membership.objects.filter(circle_id=circle_id)
            .order_by("created_at")
            .values_list("user_id", flat=True)
        )

    @classmethod
    def is_member(cls, circle_id: uuid.UUID, user: AbstractBaseUser) -> bool:
        if not user or not user.is_authenticated:
            return False
        return Membership.objects.filter(circle_id=circle_id, user=user).exists()

    @classmethod
    def is_group_admin(cls, circle_id: uuid.UUID, user: AbstractBaseUser) -> bool:
        """
        Check whether a user administers a circle.

        Admins are the ADMIN members of the workspace that owns the circle.
        """
        if not user or not user.is_authenticated:
            return False

        workspace_id = (
            Circle.objects.filter(id=circle_id)
            .values_list("workspace_id", flat=True)
            .first()
        )
        if workspace_id is None:
            return False

        return WorkspaceMember.objects.filter(
            workspace_id=workspace_id,
            user=user,
            role=WorkspaceRole.ADMIN,
        ).exists()
