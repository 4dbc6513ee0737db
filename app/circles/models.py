"""
Group structure consumed by the payments engine.

Models:
    Workspace: Top-level group owning circles, joinable by invite code
    WorkspaceMember: A user's membership in a workspace, with role
    Circle: A set of members that dues are collected from
    Membership: A user's membership in a circle

Role Model:
    Workspace ADMINs administer every circle of their workspace. Being a
    circle member is what makes a user liable for an event's dues.
"""

from __future__ import annotations

import secrets

from django.conf import settings
from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


def generate_invite_code() -> str:
    return secrets.token_urlsafe(6)


class WorkspaceRole(models.TextChoices):
    """Role within a workspace. ADMIN may record manual settlements."""

    ADMIN = "admin", "Admin"
    MEMBER = "member", "Member"


class Workspace(UUIDPrimaryKeyMixin, BaseModel):
    """A workspace groups circles and their administrators."""

    name = models.CharField(
        max_length=200,
        help_text="Display name of the workspace",
    )

    invite_code = models.CharField(
        max_length=32,
        unique=True,
        default=generate_invite_code,
        help_text="Code shared with people invited to join the workspace",
    )

    class Meta:
        ordering = ["name"]
        verbose_name = "Workspace"
        verbose_name_plural = "Workspaces"

    def __str__(self) -> str:
        return self.name


class WorkspaceMember(BaseModel):
    """
    A user's membership in a workspace.

    Constraints:
        - UniqueConstraint(workspace, user): one role per user per workspace
    """

    workspace = models.ForeignKey(
        Workspace,
        on_delete=models.CASCADE,
        related_name="members",
        help_text="Workspace this membership belongs to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="workspace_memberships",
        help_text="Member user",
    )

    role = models.CharField(
        max_length=10,
        choices=WorkspaceRole.choices,
        default=WorkspaceRole.MEMBER,
        db_index=True,
        help_text="Role of the user within the workspace",
    )

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Workspace Member"
        verbose_name_plural = "Workspace Members"
        constraints = [
            models.UniqueConstraint(
                fields=["workspace", "user"],
                name="unique_workspace_member",
            ),
        ]

    def __str__(self) -> str:
        return f"WorkspaceMember({self.workspace_id}, {self.user_id}, {self.role})"


class Circle(UUIDPrimaryKeyMixin, BaseModel):
    """A circle inside a workspace. Payment events belong to a circle."""

    workspace = models.ForeignKey(
        Workspace,
        on_delete=models.CASCADE,
        related_name="circles",
        help_text="Workspace owning this circle",
    )

    name = models.CharField(
        max_length=200,
        help_text="Display name of the circle",
    )

    description = models.TextField(
        blank=True,
        default="",
        help_text="Optional description",
    )

    class Meta:
        ordering = ["name"]
        verbose_name = "Circle"
        verbose_name_plural = "Circles"

    def __str__(self) -> str:
        return self.name


class Membership(BaseModel):
    """
    A user's membership in a circle.

    Constraints:
        - UniqueConstraint(circle, user): a user joins a circle once
    """

    circle = models.ForeignKey(
        Circle,
        on_delete=models.CASCADE,
        related_name="memberships",
        help_text="Circle the user belongs to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="circle_memberships",
        help_text="Member user",
    )

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Membership"
        verbose_name_plural = "Memberships"
        constraints = [
            models.UniqueConstraint(
                fields=["circle", "user"],
                name="unique_circle_membership",
            ),
        ]

    def __str__(self) -> str:
        return f"Membership({self.circle_id}, {self.user_id})"
