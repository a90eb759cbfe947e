"""Role- and tab-scoped views."""

from .workflow_view import counterpart_branch, is_actionable_by, is_visible, matches_filters, project, tab_for

__all__ = ["counterpart_branch", "is_actionable_by", "is_visible", "matches_filters", "project", "tab_for"]
