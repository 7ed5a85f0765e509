"""
Template services.

Fetching template trees into local workspaces and editing remote trees in place.
"""

from .remote_editor import MARKER_FILE, RemoteTreeEditor
from .source import (
    TemplateSourceError,
    TemplateSourceResolver,
    project_path_from_location,
    split_ref,
)

__all__ = [
    "MARKER_FILE",
    "RemoteTreeEditor",
    "TemplateSourceError",
    "TemplateSourceResolver",
    "project_path_from_location",
    "split_ref",
]
