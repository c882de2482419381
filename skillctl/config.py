"""Configuration management for skillctl.

Two layers live here:

* ``Settings``: tool behaviour (logging, network limits, resolver branches),
  read from YAML with ``SKILLCTL_`` environment overrides.
* ``ProjectConfig``: the per-project ``skills.json`` manifest mapping skill
  names to their store entries, plus the active editors and store root.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from skillctl.editors import EditorType
from skillctl.exceptions import ConfigurationError

# Paths
DEFAULT_CONFIG_PATH = Path("~/.skillctl/config.yaml").expanduser()
LOCAL_CONFIG_FILENAME = "skillctl.yaml"
PROJECT_CONFIG_FILENAME = "skills.json"
DEFAULT_STORE_PATH = ".skillctl/store"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "WARNING"
    format: str = "console"


class NetworkConfig(BaseModel):
    """HTTP client limits."""

    timeout: float = 30.0
    max_redirects: int = 5
    max_content_bytes: int = 1_000_000


class ResolverConfig(BaseModel):
    """Remote skill path resolution."""

    branches: list[str] = Field(default_factory=lambda: ["main"])


class Settings(BaseSettings):
    """Main settings for skillctl."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)

    model_config = SettingsConfigDict(
        env_prefix="SKILLCTL_",
        env_nested_delimiter="__",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Environment first so SKILLCTL_* wins over values loaded from YAML.
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @classmethod
    def resolve_default_config_path(cls) -> Path:
        """Resolve default settings path with local-first precedence."""
        local_path = Path.cwd() / LOCAL_CONFIG_FILENAME
        if local_path.exists():
            return local_path
        return DEFAULT_CONFIG_PATH

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> "Settings":
        """Load settings from a YAML file; missing file means defaults."""
        config_path = Path(path).expanduser() if path else cls.resolve_default_config_path()

        if not config_path.exists():
            return cls()

        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            return cls(**data)
        except (yaml.YAMLError, PydanticValidationError, TypeError) as exc:
            raise ConfigurationError(f"Failed to parse settings file {config_path}: {exc}") from exc

    @classmethod
    def load(cls, path: Path | str | None = None) -> "Settings":
        """Load settings, environment variables override YAML values."""
        return cls.from_yaml(path)

    def save(self, path: Path | str | None = None) -> None:
        """Save settings to a YAML file."""
        config_path = Path(path) if path else DEFAULT_CONFIG_PATH
        config_path.parent.mkdir(parents=True, exist_ok=True)
        data = self.model_dump(exclude_none=True)
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


class SkillEntry(BaseModel):
    """Installed skill record."""

    url: str
    local_path: str
    hash: str
    last_updated: str


def utc_timestamp() -> str:
    """RFC 3339 timestamp for ``last_updated`` fields."""
    return datetime.now(UTC).isoformat()


class ProjectConfig(BaseModel):
    """Contents of ``skills.json``."""

    active_editors: list[EditorType] = Field(default_factory=list)
    store_path: str = DEFAULT_STORE_PATH
    skills: dict[str, SkillEntry] = Field(default_factory=dict)

    @staticmethod
    def path_for(project_dir: Path | str) -> Path:
        return Path(project_dir).expanduser() / PROJECT_CONFIG_FILENAME

    @classmethod
    def exists(cls, project_dir: Path | str) -> bool:
        return cls.path_for(project_dir).is_file()

    @classmethod
    def load(cls, project_dir: Path | str) -> "ProjectConfig":
        """Read ``skills.json`` from ``project_dir``."""
        path = cls.path_for(project_dir)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise ConfigurationError(
                "Configuration file not found. Please run 'skillctl init' first."
            ) from exc
        except OSError as exc:
            raise ConfigurationError(f"Failed to read {path}: {exc}") from exc
        try:
            return cls.model_validate_json(raw)
        except PydanticValidationError as exc:
            raise ConfigurationError(
                f"Failed to parse {PROJECT_CONFIG_FILENAME}. The file may be corrupted: {exc}"
            ) from exc

    def save(self, project_dir: Path | str) -> None:
        path = self.path_for(project_dir)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(self.model_dump_json(indent=2) + "\n", encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"Failed to write {path}: {exc}") from exc

    def resolved_store_path(self, project_dir: Path | str) -> Path:
        """Resolve the store root, anchoring relative paths to the project directory."""
        raw = Path(self.store_path).expanduser()
        if raw.is_absolute():
            return raw
        return Path(project_dir).expanduser().resolve() / raw


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def set_settings(settings: Settings | None) -> None:
    """Set (or reset with ``None``) the global settings instance."""
    global _settings
    _settings = settings
