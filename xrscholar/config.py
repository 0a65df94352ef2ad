"""Configuration loader for the XR Scholar graph core."""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

LOGGER = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_ENV_FILE = REPO_ROOT / ".env"

API_KEY_ENV_VARS = (
    "XRSCHOLAR_SEMANTIC_SCHOLAR_API_KEY",
    "SEMANTIC_SCHOLAR_API_KEY",
)


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded."""


class _FrozenModel(BaseModel):
    """Base model enforcing immutability for config sections."""

    model_config = ConfigDict(frozen=True)


class SemanticScholarConfig(_FrozenModel):
    """Connection and retry settings for the paper-data source."""

    base_url: str = Field(..., min_length=1)
    graph_path: str = Field("/graph/v1", min_length=1)
    recommendations_path: str = Field("/recommendations/v1", min_length=1)
    detail_fields: List[str] = Field(..., min_length=1)
    timeout_seconds: float = Field(..., gt=0)
    max_attempts: int = Field(20, ge=1)
    retry_delay_seconds: float = Field(1.0, ge=0.0)
    api_key: Optional[str] = Field(default=None)

    @field_validator("detail_fields")
    @classmethod
    def _normalize_fields(cls, values: List[str]) -> List[str]:
        normalized: List[str] = []
        for value in values:
            cleaned = value.strip()
            if cleaned and cleaned not in normalized:
                normalized.append(cleaned)
        if "paperId" not in normalized:
            normalized.insert(0, "paperId")
        return normalized

    @property
    def graph_url(self) -> str:
        """Return the absolute base URL of the graph API."""

        return f"{self.base_url.rstrip('/')}/{self.graph_path.strip('/')}"

    @property
    def recommendations_url(self) -> str:
        """Return the absolute base URL of the recommendations API."""

        return f"{self.base_url.rstrip('/')}/{self.recommendations_path.strip('/')}"


class EnrichmentConfig(_FrozenModel):
    """Parameters bounding how the graph grows per enrichment request."""

    seed_paper_ids: List[str] = Field(default_factory=list)
    max_new_papers: int = Field(5, ge=1)
    citation_limit: int = Field(100, ge=1)
    reference_limit: int = Field(100, ge=1)
    author_paper_limit: int = Field(100, ge=1)
    recommendation_limit: int = Field(5, ge=1)
    highlight_seconds: float = Field(3.0, ge=0.0)
    seed_radius: float = Field(0.1, gt=0.0)
    new_paper_radius: float = Field(0.2, gt=0.0)
    empty_result_notice: str = Field("No available papers to add", min_length=1)


class ClusteringConfig(_FrozenModel):
    """Two-level lattice radii and animation timing for cluster layouts."""

    major_radius: float = Field(0.25, gt=0.0)
    minor_radius: float = Field(0.08, gt=0.0)
    animation_ms: int = Field(1000, ge=0)

    @model_validator(mode="after")
    def _validate_radii(self) -> "ClusteringConfig":
        if self.minor_radius >= self.major_radius:
            msg = "clustering.minor_radius must be smaller than clustering.major_radius"
            raise ValueError(msg)
        return self


class SimulationConfig(_FrozenModel):
    """Heat, link force and tick rate of the external force solver."""

    insert_alpha: float = Field(0.1, ge=0.0, le=1.0)
    settle_alpha: float = Field(0.2, ge=0.0, le=1.0)
    drag_alpha: float = Field(0.1, ge=0.0, le=1.0)
    link_distance: float = Field(0.1, gt=0.0)
    link_strength: float = Field(2.0, ge=0.0)
    tick_interval_ms: int = Field(16, ge=0)


class GestureConfig(_FrozenModel):
    """Thresholds used to interpret pick and drag input from the host."""

    click_delay_ms: int = Field(400, ge=1)
    drag_threshold: float = Field(0.02, ge=0.0)
    proximity_threshold: float = Field(0.05, gt=0.0)


class ServerConfig(_FrozenModel):
    """HTTP surface settings."""

    title: str = Field("XR Scholar Graph", min_length=1)
    version: str = Field(..., min_length=1)
    allowed_origins: List[str] = Field(default_factory=list)


class AppConfig(_FrozenModel):
    """Top-level application configuration composed from config.yaml."""

    semantic_scholar: SemanticScholarConfig
    enrichment: EnrichmentConfig
    clustering: ClusteringConfig
    simulation: SimulationConfig
    gestures: GestureConfig
    server: ServerConfig

    @staticmethod
    def default_path() -> Path:
        """Return the default location of the configuration file.

        Returns:
            Path: Absolute path to config.yaml at the repository root.
        """
        return REPO_ROOT / "config.yaml"


def _determine_env_file_path() -> Optional[Path]:
    """Return the path to the environment file if one should be loaded."""

    override = os.getenv("XRSCHOLAR_ENV_FILE")
    if override:
        candidate = Path(override).expanduser()
        if candidate.exists():
            return candidate
        LOGGER.warning("Configured environment file override does not exist: %s", candidate)
        return None
    if DEFAULT_ENV_FILE.exists():
        return DEFAULT_ENV_FILE
    return None


def _strip_inline_comment(value: str) -> str:
    """Remove inline comments from an environment value when unquoted."""

    comment_index = value.find("#")
    if comment_index == -1:
        return value
    return value[:comment_index].rstrip()


def _load_env_file(path: Path) -> None:
    """Populate ``os.environ`` with values read from a ``.env`` file."""

    try:
        with path.open("r", encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if not line or line.startswith("#"):
                    continue
                if line.lower().startswith("export "):
                    line = line[7:].lstrip()
                if "=" not in line:
                    continue
                key, raw_value = line.split("=", 1)
                key = key.strip()
                if not key:
                    continue
                existing_value = os.environ.get(key)
                if existing_value is not None and existing_value.strip() != "":
                    continue
                value = raw_value.strip()
                if not value:
                    os.environ[key] = ""
                    continue
                if value[0] in {'"', "'"} and value[-1] == value[0]:
                    os.environ[key] = value[1:-1]
                    continue
                os.environ[key] = _strip_inline_comment(value)
    except OSError:
        LOGGER.warning("Unable to read environment file at %s", path)


def _api_key_from_env() -> Optional[str]:
    """Return the first non-empty API key found in supported variables."""

    for key in API_KEY_ENV_VARS:
        raw = os.getenv(key)
        if raw and raw.strip():
            return raw.strip()
    return None


def _apply_environment_overrides(raw_content: Dict[str, Any]) -> Dict[str, Any]:
    """Merge environment-based overrides into the raw configuration mapping.

    Args:
        raw_content: Parsed YAML configuration prior to Pydantic validation.

    Returns:
        Dict[str, Any]: Configuration mapping with environment overrides applied.
    """

    env_file_path = _determine_env_file_path()
    if env_file_path is not None:
        _load_env_file(env_file_path)

    api_key = _api_key_from_env()
    if api_key:
        section = raw_content.setdefault("semantic_scholar", {})
        section["api_key"] = api_key
        LOGGER.info("Semantic Scholar API key overridden from environment")
    return raw_content


def _read_yaml(path: Path) -> Dict[str, Any]:
    """Read YAML content from disk.

    Args:
        path: Location of the YAML file.

    Returns:
        Dict[str, Any]: Parsed YAML content.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except FileNotFoundError as exc:
        LOGGER.error("Configuration file missing at %s", path)
        raise ConfigError("Configuration file not found") from exc
    except yaml.YAMLError as exc:
        LOGGER.error("Invalid YAML syntax in %s", path)
        raise ConfigError("Invalid YAML syntax") from exc
    if not isinstance(data, dict):
        LOGGER.error("Configuration root must be a mapping: %s", path)
        raise ConfigError("Configuration root must be a mapping")
    return data


@lru_cache(maxsize=1)
def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load application configuration from YAML.

    Args:
        path: Optional override path to the YAML file.

    Returns:
        AppConfig: Parsed configuration object.

    Raises:
        ConfigError: If the configuration cannot be loaded or validated.
    """
    config_path = path or AppConfig.default_path()
    raw_content = _read_yaml(config_path)
    raw_content = _apply_environment_overrides(raw_content)
    try:
        return AppConfig(**raw_content)
    except ValidationError as exc:
        LOGGER.error("Invalid configuration values: %s", exc)
        raise ConfigError("Configuration validation failed") from exc
