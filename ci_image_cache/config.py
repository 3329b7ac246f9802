"""Configuration settings for ci_image_cache.

Uses pydantic-settings for config parsing from the plugin's environment
variables. Scalar options map one-to-one onto variables with the
BUILDKITE_PLUGIN_DOCKER_ECR_CACHE_ prefix. List and mapping options are
flattened by the pipeline agent (``NAME``, ``NAME_0``, ``NAME_1``, ... and
``NAME_<KEY>``) and are gathered back by a dedicated settings source.

All values are resolved once, before any remote call, and the resulting
Settings object is frozen.
"""

import os
import platform
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import AliasChoices, Field, computed_field, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from ci_image_cache.properties import read_list, read_mapping

ENV_PREFIX = "BUILDKITE_PLUGIN_DOCKER_ECR_CACHE_"
DEFAULT_EXPORT_VARIABLE = "BUILDKITE_PLUGIN_DOCKER_IMAGE"

# Options flattened with an index suffix
LIST_FIELDS = ("build_args", "cache_on")
# Options flattened with a key suffix
MAPPING_FIELDS = ("ecr_tags",)


class IndexedEnvSettingsSource(PydanticBaseSettingsSource):
    """Settings source for index-suffixed lists and key-suffixed mappings."""

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        key = f"{ENV_PREFIX}{field_name.upper()}"
        if field_name in LIST_FIELDS:
            values = read_list(os.environ, key)
            return (values or None), key, False
        if field_name in MAPPING_FIELDS:
            mapping = read_mapping(os.environ, key)
            return (mapping or None), key, False
        return None, key, False

    def __call__(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for field_name, field in self.settings_cls.model_fields.items():
            value, _, _ = self.get_field_value(field, field_name)
            if value is not None:
                data[field_name] = value
        return data


class Settings(BaseSettings):
    """Plugin settings.

    Settings are loaded from environment variables with the
    BUILDKITE_PLUGIN_DOCKER_ECR_CACHE_ prefix. Pipeline identity values use
    the agent's own variable names.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    # Registry repository
    ecr_name: str | None = Field(
        default=None,
        description="Repository name (defaults to build-cache/<org>/<pipeline>)",
    )
    max_age_days: int = Field(
        default=30,
        gt=0,
        description="Expire images this many days after they were pushed",
    )
    ecr_tags: dict[str, str] = Field(
        default_factory=dict,
        description="Resource tags attached to the repository",
    )
    region: str | None = Field(
        default=None,
        description="AWS region for registry calls (uses the CLI default if unset)",
    )

    # Build definition
    dockerfile: str = Field(
        default="Dockerfile",
        description="Path to the Dockerfile",
    )
    context: str | None = Field(
        default=None,
        description="Build context directory (defaults to the Dockerfile's directory)",
    )
    target: str | None = Field(
        default=None,
        description="Target build stage",
    )
    build_args: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Build arguments as KEY or KEY=VALUE",
    )
    cache_on: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Globs whose matched files participate in the fingerprint",
    )
    additional_build_args: str = Field(
        default="",
        description="Extra arguments passed verbatim to docker build",
    )
    architecture: str | None = Field(
        default=None,
        description="Host architecture (defaults to the machine type)",
    )

    # Output
    export_env_variable: str = Field(
        default=DEFAULT_EXPORT_VARIABLE,
        description="Variable that receives the resulting image reference",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Pipeline identity
    organization_slug: str = Field(
        default="",
        validation_alias=AliasChoices("BUILDKITE_ORGANIZATION_SLUG"),
        description="Organization identifier",
    )
    pipeline_slug: str = Field(
        default="",
        validation_alias=AliasChoices("BUILDKITE_PIPELINE_SLUG"),
        description="Pipeline identifier",
    )
    buildkite_env_file: Path | None = Field(
        default=None,
        validation_alias=AliasChoices("BUILDKITE_ENV_FILE"),
        description="File the agent reads exported variables from",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            IndexedEnvSettingsSource(settings_cls),
            env_settings,
            file_secret_settings,
        )

    @field_validator("build_args", "cache_on", mode="before")
    @classmethod
    def _wrap_single_value(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value

    @field_validator("buildkite_env_file", mode="before")
    @classmethod
    def _empty_path_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @computed_field  # type: ignore[prop-decorator]
    @property
    def repository_name(self) -> str:
        """Effective registry repository name."""
        if self.ecr_name:
            return self.ecr_name
        return f"build-cache/{self.organization_slug}/{self.pipeline_slug}"

    @property
    def build_context(self) -> str:
        """Effective build context directory."""
        if self.context:
            return self.context
        return os.path.dirname(self.dockerfile) or "."

    @property
    def host_architecture(self) -> str:
        """Effective host architecture identifier."""
        return self.architecture or platform.machine()


def get_settings() -> Settings:
    """Get the plugin settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


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
    "DEFAULT_EXPORT_VARIABLE",
    "ENV_PREFIX",
    "IndexedEnvSettingsSource",
    "Settings",
    "get_settings",
    "print_settings_json",
]
