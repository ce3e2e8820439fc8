# ticketflow/config.py
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field

from ticketflow.common.task import TaskConfig

DEFAULT_CONFIG_PATH = Path("config.yaml")

ENV_CONFIG = "TICKETFLOW_CONFIG"
ENV_JIRA_API_TOKEN = "TICKETFLOW_JIRA_API_TOKEN"
ENV_CONFLUENCE_API_TOKEN = "TICKETFLOW_CONFLUENCE_API_TOKEN"
ENV_VALIDATE_ON_STARTUP = "TICKETFLOW_VALIDATE_ON_STARTUP"
ENV_APP_ENV = "TICKETFLOW_APP_ENV"
ENV_DATA_DIR = "TICKETFLOW_DATA_DIR"
ENV_REDIS_URL = "TICKETFLOW_REDIS_URL"

PRODUCTION_ENVS = ("production", "prod")


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class JiraSettings(_Section):
    base_url: str
    base_project: str
    username: str = ""
    api_token: str = ""
    # Wins over api_token when non-blank
    api_token_override: Optional[str] = None
    connection_timeout_ms: int = Field(default=5000, ge=1)
    read_timeout_ms: int = Field(default=30000, ge=1)
    validate_on_startup: bool = False
    sample_issue_number: int = 123

    @property
    def effective_api_token(self) -> str:
        if self.api_token_override and self.api_token_override.strip():
            return self.api_token_override
        return self.api_token


class ConfluenceSettings(_Section):
    base_url: str
    username: str = ""
    api_token: str = ""
    default_space_key: str = ""
    connection_timeout_ms: int = Field(default=5000, ge=1)
    read_timeout_ms: int = Field(default=30000, ge=1)


class IssueSyncConfig(TaskConfig):
    interval_minutes: int = Field(default=30, ge=1)
    batch_size: int = Field(default=100, ge=1)
    excluded_labels: List[str] = Field(
        default_factory=lambda: ["anchore", "SecurityCentral"]
    )
    min_ticket_number: int = Field(default=0, ge=0)
    jql_filter: Optional[str] = None


class StaleIssueCleanupConfig(TaskConfig):
    enabled: bool = False
    interval_minutes: int = Field(default=1440, ge=1)
    stale_days: int = Field(default=30, ge=1)
    target_status: str = "Closed"
    dry_run: bool = True
    batch_size: int = Field(default=50, ge=1)


class CommentWatchConfig(TaskConfig):
    interval_minutes: int = Field(default=15, ge=1)
    max_comment_length: int = Field(default=500, ge=1)
    filter_automated_comments: bool = True
    automated_author_patterns: List[str] = Field(
        default_factory=lambda: ["*bot*", "jira*automation*"]
    )


class WikiTestPageConfig(TaskConfig):
    interval_minutes: int = Field(default=10080, ge=1)
    initial_delay_minutes: int = Field(default=60, ge=0)


class TasksSettings(_Section):
    scheduler_pool_size: int = Field(default=4, ge=1)
    on_demand_pool_size: int = Field(default=2, ge=1)
    shutdown_grace_seconds: float = Field(default=30.0, ge=0)
    issue_sync: IssueSyncConfig = Field(default_factory=IssueSyncConfig)
    stale_issue_cleanup: StaleIssueCleanupConfig = Field(
        default_factory=StaleIssueCleanupConfig
    )
    comment_watch: CommentWatchConfig = Field(default_factory=CommentWatchConfig)
    wiki_test_page: WikiTestPageConfig = Field(default_factory=WikiTestPageConfig)


class StorageSettings(_Section):
    backend: Literal["file", "memory", "redis"] = "file"
    data_dir: str = "data"
    redis_url: Optional[str] = None


class Settings(_Section):
    app_env: str = "development"
    jira: JiraSettings
    confluence: Optional[ConfluenceSettings] = None
    tasks: TasksSettings = Field(default_factory=TasksSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    @property
    def is_production(self) -> bool:
        return self.app_env.strip().lower() in PRODUCTION_ENVS


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _resolve_config_path(
    config_path: Union[str, Path, None], environ: Mapping[str, str]
) -> Path:
    if config_path is not None:
        return Path(config_path)
    env_path = environ.get(ENV_CONFIG)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def _apply_env_overrides(data: Dict[str, Any], environ: Mapping[str, str]) -> None:
    def section(name: str) -> Dict[str, Any]:
        value = data.get(name)
        if value is None:
            value = data[name] = {}
        return value

    if environ.get(ENV_JIRA_API_TOKEN):
        section("jira")["api_token"] = environ[ENV_JIRA_API_TOKEN]
    if environ.get(ENV_VALIDATE_ON_STARTUP):
        section("jira")["validate_on_startup"] = environ[ENV_VALIDATE_ON_STARTUP]
    if environ.get(ENV_CONFLUENCE_API_TOKEN) and data.get("confluence"):
        data["confluence"]["api_token"] = environ[ENV_CONFLUENCE_API_TOKEN]
    if environ.get(ENV_APP_ENV):
        data["app_env"] = environ[ENV_APP_ENV]
    if environ.get(ENV_DATA_DIR):
        section("storage")["data_dir"] = environ[ENV_DATA_DIR]
    if environ.get(ENV_REDIS_URL):
        section("storage")["redis_url"] = environ[ENV_REDIS_URL]


def load_settings(
    config_path: Union[str, Path, None] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """
    Build settings from defaults, then the YAML file, then environment variables.

    The file is taken from ``config_path``, else ``$TICKETFLOW_CONFIG``, else
    ``config.yaml`` in the working directory. A missing file is not an error, but
    the ``jira`` section's required fields must come from somewhere.
    """
    environ = os.environ if environ is None else environ
    data = _load_yaml(_resolve_config_path(config_path, environ))
    _apply_env_overrides(data, environ)
    return Settings.model_validate(data)


class _GlobalConfig:
    def __init__(self):
        self.settings: Optional[Settings] = None


_GLOBAL_CONFIG = _GlobalConfig()


def configure(settings: Settings) -> None:
    _GLOBAL_CONFIG.settings = settings


def get_settings() -> Settings:
    if not _GLOBAL_CONFIG.settings:
        raise RuntimeError(
            "TicketFlow has not been configured. Call ticketflow.configure() first."
        )
    return _GLOBAL_CONFIG.settings
