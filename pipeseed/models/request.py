"""Provisioning request models."""
import re
from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

APP_NAME_TOKEN = "{{VALUE_APP_NAME}}"
TEAM_NAME_TOKEN = "{{VALUE_TEAM_NAME}}"

_PATH_SAFE = re.compile(r"^[^/\s]+$")


class Kind(str, Enum):
    """Provisioning lane."""

    CI = "ci"
    CD = "cd"


class NamespacePath(tuple):
    """Ordered group path segments, e.g. ("devops", "pipeline-template", "ci")."""

    def __new__(cls, segments):
        if isinstance(segments, str):
            segments = segments.strip("/").split("/") if segments.strip("/") else []
        segments = tuple(str(s).strip() for s in segments)
        if not segments or any(not s for s in segments):
            raise ValueError(f"Invalid namespace path: {'/'.join(segments) or '<empty>'}")
        return super().__new__(cls, segments)

    @property
    def full_path(self) -> str:
        return "/".join(self)

    @property
    def leaf(self) -> str:
        return self[-1]

    @property
    def parent(self) -> Optional["NamespacePath"]:
        if len(self) == 1:
            return None
        return NamespacePath(self[:-1])

    def __str__(self) -> str:
        return self.full_path


def build_replacement_table(
    application: str,
    team: str,
    extra: Dict[str, str] = None,
) -> Dict[str, str]:
    """Build the ordered placeholder table for one record.

    Well-known tokens come first; row-supplied pairs follow in their own order.
    A row pair reusing a well-known token overrides its value in place.
    """
    table = {APP_NAME_TOKEN: application, TEAM_NAME_TOKEN: team}
    for key, value in (extra or {}).items():
        table[key] = value
    return table


class ProvisioningRequest(BaseModel):
    """One unit of work: a single CI or CD lane for one record."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    application_name: str
    team_name: str
    kind: Kind
    template_location: str
    replacement_table: Dict[str, str] = Field(default_factory=dict)
    project_name: str
    namespace_path: Optional[Tuple[str, ...]] = None
    namespace_id: Optional[int] = None
    delete_existing: bool = False

    @field_validator('application_name', 'team_name')
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        """Names end up in group and project paths: no slashes, no whitespace."""
        if not v or not _PATH_SAFE.match(v):
            raise ValueError(
                f"'{v}' is not a path-safe identifier (must be non-empty, no '/' or whitespace)"
            )
        return v

    @field_validator('template_location')
    @classmethod
    def validate_template_location(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("template_location must not be empty")
        return v.strip()

    @field_validator('namespace_path', mode='before')
    @classmethod
    def validate_namespace_path(cls, v):
        if v is None:
            return None
        return tuple(NamespacePath(v))

    @field_validator('replacement_table')
    @classmethod
    def validate_replacement_table(cls, v: Dict[str, str]) -> Dict[str, str]:
        for key in v:
            if not key:
                raise ValueError("Placeholder tokens must not be empty")
        return v

    @model_validator(mode='after')
    def require_namespace(self) -> 'ProvisioningRequest':
        if self.namespace_path is None and self.namespace_id is None:
            raise ValueError("Either namespace_path or namespace_id is required")
        return self

    @property
    def namespace(self) -> Optional[NamespacePath]:
        """Group path to resolve, or None when a numeric namespace id was given."""
        if self.namespace_path is None:
            return None
        return NamespacePath(self.namespace_path)

    @property
    def label(self) -> str:
        """Context tag used in log lines: application/team/kind."""
        return f"{self.application_name}/{self.team_name}/{self.kind.value}"
