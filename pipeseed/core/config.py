"""pipeseed runtime configuration and settings."""
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

# Config search paths (ordered by proximity to current run)
CONFIG_PATHS = [
    "./pipeseed.yml",
    str(Path.home() / ".config" / "pipeseed" / "pipeseed.yml"),
    "/etc/pipeseed/pipeseed.yml",
]

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigurationError(Exception):
    """Raised when pipeseed cannot run with the configuration it was given."""


@dataclass(frozen=True)
class PipeseedConfig:
    """Runtime configuration for a pipeseed run.

    One instance is built at startup and handed to every component; nothing
    reads settings from module globals.

    Attributes:
        gitlab_url: Base URL of the GitLab instance (without /api/v4)
        gitlab_token: Personal access token (takes precedence over the token file)
        gitlab_token_file: File holding the token when gitlab_token is unset
        verify_ssl: Verify TLS certificates for GitLab and git traffic
        ca_bundle: Custom CA bundle used instead of the system store
        ci_folder: Group path under which CI team groups live
        cd_folder: Group path under which CD team groups live
        ci_template: Default CI template repository URL
        cd_template: Default CD template repository URL
        project_name_format: Format for project names ({kind}, {application}, {team})
        default_branch: Branch that published templates are pushed to
        template_strategy: "auto", "clone" or "api"
        prefer_ssh: Push over SSH when GitLab reports an SSH URL
        allow_root_groups: Permit creating top-level groups
        workspace_dir: Parent directory for temporary workspaces
        request_timeout: HTTP timeout in seconds
        retry_attempts: Attempts for transient GitLab failures (1 = no retry)
        delete_wait_attempts: Attempts to recreate a project still being deleted
    """

    gitlab_url: str = "https://gitlab.com"
    gitlab_token: Optional[str] = None
    gitlab_token_file: str = "gitlab_token.txt"
    verify_ssl: bool = True
    ca_bundle: Optional[str] = None

    ci_folder: str = "devops/pipeline-template/ci"
    cd_folder: str = "devops/pipeline-template/cd"
    ci_template: str = ""
    cd_template: str = ""
    project_name_format: str = "{kind}-{application}"

    default_branch: str = "main"
    commit_message: str = "Initial commit"
    commit_author_name: str = "pipeseed"
    commit_author_email: str = "pipeseed@localhost"

    template_strategy: str = "auto"
    prefer_ssh: bool = True
    allow_root_groups: bool = False
    workspace_dir: Optional[str] = None

    request_timeout: int = 30
    retry_attempts: int = 1
    retry_delay: float = 2.0
    delete_wait_attempts: int = 5
    delete_wait_delay: float = 3.0

    @property
    def ssl_verify(self) -> Union[bool, str]:
        """Transport trust policy: CA bundle path, True (strict) or False."""
        if not self.verify_ssl:
            return False
        return self.ca_bundle or True

    def require_token(self) -> str:
        """Return the GitLab token, reading the token file when needed.

        Raises:
            ConfigurationError: If no token is configured anywhere
        """
        if self.gitlab_token and self.gitlab_token.strip():
            return self.gitlab_token.strip()

        token_path = Path(self.gitlab_token_file).expanduser()
        if token_path.is_file():
            token = token_path.read_text().strip()
            if token:
                return token

        raise ConfigurationError(
            "No GitLab token configured. Set PIPESEED_GITLAB_TOKEN, "
            f"gitlab_token in pipeseed.yml, or create {token_path}"
        )

    def folder_for(self, kind: str) -> str:
        """Return the group folder configured for a lane kind ("ci"/"cd")."""
        return self.ci_folder if kind == "ci" else self.cd_folder

    def template_for(self, kind: str) -> str:
        """Return the default template URL configured for a lane kind."""
        return self.ci_template if kind == "ci" else self.cd_template

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipeseedConfig":
        """Create config from a mapping, ignoring nothing silently.

        Raises:
            ConfigurationError: On unknown keys or values of the wrong type
        """
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")

        values = {}
        for key, raw in data.items():
            values[key] = _coerce(key, raw, known[key].type)
        config = cls(**values)
        config.validate()
        return config

    @classmethod
    def from_file(cls, path: str) -> "PipeseedConfig":
        """Load configuration from a YAML file."""
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        try:
            raw = yaml.safe_load(config_path.read_text()) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Failed to parse {config_path}: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping")

        section = raw.get("pipeseed", raw)
        if not isinstance(section, dict):
            raise ConfigurationError(f"'pipeseed' section in {config_path} must be a mapping")
        return cls.from_dict(section)

    def with_env(self, environ: Optional[Dict[str, str]] = None) -> "PipeseedConfig":
        """Return a copy with PIPESEED_* environment variables applied.

        Environment variables:
            PIPESEED_GITLAB_URL, PIPESEED_GITLAB_TOKEN, PIPESEED_GITLAB_TOKEN_FILE,
            PIPESEED_VERIFY_SSL, PIPESEED_CA_BUNDLE, PIPESEED_CI_TEMPLATE,
            PIPESEED_CD_TEMPLATE, PIPESEED_DEFAULT_BRANCH,
            PIPESEED_TEMPLATE_STRATEGY, PIPESEED_WORKSPACE_DIR,
            PIPESEED_REQUEST_TIMEOUT, PIPESEED_RETRY_ATTEMPTS
        """
        environ = os.environ if environ is None else environ
        overrides = {}
        for key in _ENV_KEYS:
            env_name = f"PIPESEED_{key.upper()}"
            if env_name in environ and environ[env_name] != "":
                overrides[key] = environ[env_name]

        if not overrides:
            return self

        known = {f.name: f for f in fields(self)}
        values = {key: _coerce(key, raw, known[key].type) for key, raw in overrides.items()}
        config = replace(self, **values)
        config.validate()
        return config

    @classmethod
    def from_env(cls) -> "PipeseedConfig":
        """Create config from environment variables on top of the defaults."""
        return cls().with_env()

    def validate(self) -> None:
        """Check cross-field constraints."""
        if self.template_strategy not in ("auto", "clone", "api"):
            raise ConfigurationError(
                f"template_strategy must be auto, clone or api (got {self.template_strategy!r})"
            )
        if not self.gitlab_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"gitlab_url must be an http(s) URL (got {self.gitlab_url!r})")
        if not self.default_branch:
            raise ConfigurationError("default_branch must not be empty")
        try:
            self.project_name_format.format(kind="ci", application="app", team="team")
        except (KeyError, IndexError, ValueError) as exc:
            raise ConfigurationError(
                f"project_name_format is invalid: {self.project_name_format!r}"
            ) from exc


_ENV_KEYS = (
    "gitlab_url",
    "gitlab_token",
    "gitlab_token_file",
    "verify_ssl",
    "ca_bundle",
    "ci_template",
    "cd_template",
    "default_branch",
    "template_strategy",
    "workspace_dir",
    "request_timeout",
    "retry_attempts",
)


def _coerce(key: str, value: Any, annotation: Any) -> Any:
    """Convert a YAML/env value to the type declared on the dataclass field."""
    type_name = annotation if isinstance(annotation, str) else getattr(annotation, "__name__", str(annotation))

    if value is None:
        return None

    if "bool" in type_name:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
        raise ConfigurationError(f"{key} must be a boolean (got {value!r})")

    if "int" in type_name:
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"{key} must be an integer (got {value!r})") from exc

    if "float" in type_name:
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"{key} must be a number (got {value!r})") from exc

    return str(value)


def find_config(config_path: Optional[str] = None) -> Optional[str]:
    """Locate the active pipeseed configuration file, if any."""
    if config_path:
        return config_path

    if env_config := os.environ.get("PIPESEED_CONFIG"):
        return env_config

    for path in CONFIG_PATHS:
        if Path(path).exists():
            return path

    return None


def load_config(config_path: Optional[str] = None) -> PipeseedConfig:
    """Build the run configuration: config file first, then environment."""
    path = find_config(config_path)
    base = PipeseedConfig.from_file(path) if path else PipeseedConfig()
    return base.with_env()
