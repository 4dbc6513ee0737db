"""
Admin configuration for workspaces and circles.
"""

from django.contrib import admin

from circles.models import Circle, Membership, Workspace, WorkspaceMember


class WorkspaceMemberInline(admin.TabularInline):
    model = WorkspaceMember
    extra = 0
    raw_id_fields = ["user"]


class MembershipInline(admin.TabularInline):
    model = Membership
    extra = 0
    raw_id_fields = ["user"]


@admin.register(Workspace)
class WorkspaceAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "invite_code", "created_at"]
    search_fields = ["id", "name", "invite_code"]
    readonly_fields = ["id", "created_at", "updated_at"]
    inlines = [WorkspaceMemberInline]


@admin.register(Circle)
class CircleAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "workspace", "created_at"]
    list_filter = ["workspace"]
    search_fields = ["id", "name", "workspace__name"]
    readonly_fields = ["id", "created_at", "updated_at"]
    inlines = [MembershipInline]
