"""Configuration settings for appbuild.

Two layers of configuration exist:

- ``Settings``: process-level settings parsed with pydantic-settings from
  environment variables (``APPBUILD_`` prefix) and defaults.
  Precedence: CLI flags > env vars > defaults.
- ``ConfigurationResolver``: the user-facing build configuration keys
  (artifact pattern, module, arguments, ...). Each key is declared with a
  default; the resolver is constructed with an explicit snapshot of the
  environment so lookups never reach for ambient state.
"""

import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Default user-facing configuration keys
ARGUMENTS_KEY = "BP_BUILD_ARGUMENTS"
ARTIFACT_KEY = "BP_BUILT_ARTIFACT"
MODULE_KEY = "BP_BUILT_MODULE"
INCLUDE_FILES_KEY = "BP_INCLUDE_FILES"
EXCLUDE_FILES_KEY = "BP_EXCLUDE_FILES"


def _default_cache_dir() -> Path:
    """Return the default application cache directory."""
    return Path.home() / ".cache" / "appbuild" / "application"


def _default_dependency_cache_layer() -> Path:
    """Return the default persistent dependency cache directory."""
    return Path.home() / ".cache" / "appbuild" / "cache"


def _default_sbom_dir() -> Path:
    """Return the default SBOM output directory."""
    return Path.home() / ".cache" / "appbuild" / "sbom"


def _default_db_url() -> str:
    """Return the default database URL (SQLite)."""
    db_path = Path.home() / ".local" / "share" / "appbuild" / "db.sqlite"
    return f"sqlite:///{db_path}"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the APPBUILD_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="APPBUILD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    workspace_dir: Path = Field(
        default_factory=Path.cwd,
        description="Application workspace the build runs in",
    )
    cache_dir: Path = Field(
        default_factory=_default_cache_dir,
        description="Persistent directory holding captured build output",
    )
    dependency_cache_dir: Path | None = Field(
        default=None,
        description="Build tool cache to link into the persistent cache (e.g. ~/.m2)",
    )
    dependency_cache_layer: Path = Field(
        default_factory=_default_dependency_cache_layer,
        description="Persistent directory backing the build tool cache",
    )
    sbom_dir: Path = Field(
        default_factory=_default_sbom_dir,
        description="Directory SBOM documents are written to",
    )
    db_url: str = Field(
        default_factory=_default_db_url,
        description="Database connection URL for run history",
    )

    # Operational modes
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    provenance_disabled: bool = Field(
        default=False,
        description="Skip recording the build-dependencies provenance entry",
    )
    tool_version_command: list[str] = Field(
        default_factory=list,
        description="Command printing the build tool version (part of the fingerprint)",
    )

    # User-facing configuration keys and their defaults
    arguments_key: str = Field(default=ARGUMENTS_KEY)
    artifact_key: str = Field(default=ARTIFACT_KEY)
    module_key: str = Field(default=MODULE_KEY)
    default_arguments: str = Field(
        default="",
        description="Arguments passed to the build command when not configured",
    )
    default_artifact: str = Field(
        default="*",
        description="Artifact pattern used when neither artifact nor module is configured",
    )


class BuildConfiguration(BaseModel):
    """Declaration of a user-facing configuration key.

    Attributes:
        name: Environment key, e.g. ``BP_BUILT_ARTIFACT``.
        default: Value used when the key is not set.
        description: Human-readable purpose of the key.
    """

    model_config = ConfigDict(frozen=True)

    name: str = ""
    default: str = ""
    description: str = ""


@dataclass
class ConfigurationResolver:
    """Resolves declared configuration keys against an environment snapshot.

    Attributes:
        configurations: Declared keys with their defaults.
        environment: Snapshot of the environment to resolve against.
    """

    configurations: list[BuildConfiguration] = field(default_factory=list)
    environment: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_environ(
        cls,
        configurations: Iterable[BuildConfiguration],
        environ: Mapping[str, str] | None = None,
    ) -> "ConfigurationResolver":
        """Create a resolver from a copy of the process environment.

        Args:
            configurations: Declared keys with their defaults.
            environ: Environment mapping; defaults to ``os.environ``.

        Returns:
            ConfigurationResolver with a frozen environment snapshot.
        """
        if environ is None:
            environ = os.environ
        return cls(configurations=list(configurations), environment=dict(environ))

    def resolve(self, name: str) -> tuple[str, bool]:
        """Resolve a key.

        Args:
            name: Configuration key.

        Returns:
            Tuple of (value, is_set). ``is_set`` is True only when the key is
            present in the environment; otherwise the declared default (or an
            empty string) is returned.
        """
        if name and name in self.environment:
            return self.environment[name], True

        for configuration in self.configurations:
            if configuration.name == name:
                return configuration.default, False

        return "", False

    def log_configurations(self) -> None:
        """Log every declared key with its purpose and default."""
        for configuration in self.configurations:
            if not configuration.name:
                continue
            default = configuration.default or "<none>"
            logger.info(
                "Set $%s to configure %s. Default %s.",
                configuration.name,
                configuration.description or "the build",
                default,
            )


def build_configurations(settings: Settings) -> list[BuildConfiguration]:
    """Declare the standard build configuration keys.

    Args:
        settings: Settings providing key names and defaults.

    Returns:
        List of BuildConfiguration declarations.
    """
    return [
        BuildConfiguration(
            name=settings.arguments_key,
            default=settings.default_arguments,
            description="the arguments passed to the build system",
        ),
        BuildConfiguration(
            name=settings.artifact_key,
            default=settings.default_artifact,
            description="the built application artifact",
        ),
        BuildConfiguration(
            name=settings.module_key,
            description="the module to find application artifact in",
        ),
        BuildConfiguration(
            name=INCLUDE_FILES_KEY,
            description="colon separated globs of source files to keep",
        ),
        BuildConfiguration(
            name=EXCLUDE_FILES_KEY,
            description="colon separated globs of source files to remove",
        ),
    ]


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def get_configuration_resolver(
    settings: Settings | None = None,
    environ: Mapping[str, str] | None = None,
) -> ConfigurationResolver:
    """Create the configuration resolver for the standard keys.

    Args:
        settings: Optional settings instance; uses default if not provided.
        environ: Optional environment mapping; uses ``os.environ`` if not provided.

    Returns:
        ConfigurationResolver instance.
    """
    if settings is None:
        settings = get_settings()
    return ConfigurationResolver.from_environ(build_configurations(settings), environ)


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = [
    "ARGUMENTS_KEY",
    "ARTIFACT_KEY",
    "EXCLUDE_FILES_KEY",
    "INCLUDE_FILES_KEY",
    "MODULE_KEY",
    "BuildConfiguration",
    "ConfigurationResolver",
    "Settings",
    "build_configurations",
    "get_configuration_resolver",
    "get_settings",
    "print_settings_json",
]
