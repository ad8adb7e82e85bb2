"""Workspace selection and store lifecycle."""

from .binder import WorkspaceLifecycleBinder
from .service import MAX_RECENT_WORKSPACES, RecentWorkspace, WorkspaceService

__all__ = ["WorkspaceLifecycleBinder", "WorkspaceService", "RecentWorkspace", "MAX_RECENT_WORKSPACES"]
