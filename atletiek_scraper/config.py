"""Settings loaded from an optional YAML file and ATNU_* environment variables.

Environment variables win over the file, the file wins over the defaults.
Example ``atletiek.yaml``::

    retries: 5
    ttl_results_hours: 48
    snapshot_path: cache/requests.json
"""

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from atletiek_scraper.cache_keys import (
    HOUR,
    GetAthleteProfile,
    GetRegistrations,
    GetResults,
    SearchAthletes,
    SearchCompetitions,
)
from atletiek_scraper.exceptions import ConfigurationError
from atletiek_scraper.scraper import USER_AGENT
from atletiek_scraper.sources.atletiek_source import BASE_URL

ENV_PREFIX = "ATNU_"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Runtime settings of the client and the CLI."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        extra="forbid",
        frozen=True,
    )

    base_url: str = BASE_URL
    user_agent: str = USER_AGENT
    request_timeout: float = Field(30.0, gt=0)
    retries: int = Field(3, gt=0)

    # Cache lifetimes per request kind
    ttl_search_competitions_hours: float = Field(12.0, gt=0)
    ttl_registrations_hours: float = Field(12.0, gt=0)
    ttl_results_hours: float = Field(24.0, gt=0)
    ttl_search_athletes_hours: float = Field(12.0, gt=0)
    ttl_athlete_profile_hours: float = Field(12.0, gt=0)

    gate_capacity: int = Field(2, gt=0)
    gate_refill_amount: int = Field(1, gt=0)
    gate_refill_interval: float = Field(1.0, gt=0)
    sweep_interval: float = Field(60.0, gt=0)

    snapshot_path: str | None = None
    """Cache snapshot file, restored on start and written on exit."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @field_validator("*", mode="before")
    @classmethod
    def _reject_booleans(cls, value: Any) -> Any:
        # YAML booleans would otherwise pass as 0 and 1
        if isinstance(value, bool):
            raise ValueError("booleans are not accepted")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Values from the settings file arrive as init arguments
        return env_settings, init_settings

    def ttls(self) -> dict[str, float]:
        """Time to live in seconds per request kind."""
        return {
            SearchCompetitions.kind: self.ttl_search_competitions_hours * HOUR,
            GetRegistrations.kind: self.ttl_registrations_hours * HOUR,
            GetResults.kind: self.ttl_results_hours * HOUR,
            SearchAthletes.kind: self.ttl_search_athletes_hours * HOUR,
            GetAthleteProfile.kind: self.ttl_athlete_profile_hours * HOUR,
        }


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read settings file {path}: {e}", parameter="config"
        ) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Settings file {path} is not valid YAML: {e}", parameter="config"
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Settings file {path} must contain a mapping", parameter="config"
        )
    return {str(key): value for key, value in data.items()}


def _to_configuration_error(error: ValidationError) -> ConfigurationError:
    errors = error.errors()
    unknown = [str(e["loc"][0]) for e in errors if e["type"] == "extra_forbidden"]
    if unknown:
        return ConfigurationError(
            f"Unknown settings: {', '.join(unknown)}",
            parameter=unknown[0],
            suggestion=f"Known settings: {', '.join(Settings.model_fields)}",
        )

    first = errors[0]
    name = str(first["loc"][0]) if first["loc"] else "settings"
    expected_format: str | None = None
    example: str | None = None
    field = Settings.model_fields.get(name)
    if field is not None:
        expected_format = getattr(field.annotation, "__name__", str(field.annotation))
        example = str(field.default)
    return ConfigurationError(
        f"Invalid value for '{name}': {first['msg']}",
        parameter=name,
        expected_format=expected_format,
        example=example,
    )


def load_settings(path: str | Path | None = None) -> Settings:
    """Loads settings from defaults, an optional YAML file and the environment.

    Args:
        path: Optional YAML settings file.

    Returns:
        Validated settings.

    Raises:
        ConfigurationError: On unreadable files, unknown keys or bad values.
    """
    values = _read_yaml(Path(path)) if path is not None else {}
    try:
        return Settings(**values)
    except ValidationError as e:
        raise _to_configuration_error(e) from e
