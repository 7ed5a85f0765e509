"""
GitLab services.

Provides the REST client plus the find-or-create logic pipeseed builds on it.
"""

from .client import (
    GitLabAuthError,
    GitLabClient,
    GitLabConflictError,
    GitLabError,
    GitLabNotFoundError,
    GitLabServerError,
)
from .namespaces import NamespaceNotFoundError, NamespaceResolver
from .projects import ProjectProvisioner

__all__ = [
    "GitLabClient",
    "GitLabError",
    "GitLabAuthError",
    "GitLabConflictError",
    "GitLabNotFoundError",
    "GitLabServerError",
    "NamespaceNotFoundError",
    "NamespaceResolver",
    "ProjectProvisioner",
]
