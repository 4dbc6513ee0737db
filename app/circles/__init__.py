"""
Circles app: workspaces, circles and their memberships.

This app is the group/membership collaborator of the payments engine.
Workspace and circle CRUD is handled elsewhere; the payments app only
consumes the read interface in circles.services.MembershipService.
"""
