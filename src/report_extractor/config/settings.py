"""Pydantic settings models for inspection report extraction.

Four settings classes load from separate YAML config files with environment
variable override support. Source priority (highest to lowest):

    1. Environment variables (with prefix, e.g., EXTRACTION_CHUNK_SIZE)
    2. .env file (for secrets, e.g., VISION_API_KEY)
    3. YAML config file (e.g., config/extraction.yaml)
    4. Default values defined here

Config paths are resolved relative to PROJECT_ROOT so the application works
regardless of the current working directory.
"""

from pathlib import Path
from typing import Literal

from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

# Resolve project root: settings.py -> config/ -> report_extractor/ -> src/ -> repo root
PROJECT_ROOT = Path(__file__).resolve().parents[3]

_CONFIG_DIR = PROJECT_ROOT / "config"
_ENV_FILE = PROJECT_ROOT / ".env"


class _YamlSettings(BaseSettings):
    """Base class wiring the YAML source below env and .env sources."""

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
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


class ExtractionSettings(_YamlSettings):
    """Pipeline behaviour: size bounds, chunking limits, timeouts, fallback."""

    min_file_size_bytes: int = 100
    max_file_size_bytes: int = 50 * 1024 * 1024  # 50MB

    # OCR service hard limit and the chunk size used to stay under it
    ocr_page_limit: int = 30
    chunk_size_pages: int = 15
    inter_chunk_delay_seconds: float = 1.0

    timeout_ms: int = 180_000
    fallback_enabled: bool = True

    # Vision payload ceiling; compression targets a fraction of it
    vision_payload_limit_bytes: int = 5 * 1024 * 1024  # 5MB
    vision_target_ratio: float = 0.8

    model_config = SettingsConfigDict(
        yaml_file=str(_CONFIG_DIR / "extraction.yaml"),
        env_prefix="EXTRACTION_",
    )


class OcrSettings(_YamlSettings):
    """OCR backend selection and per-attempt tuning.

    Document AI credentials (service-account JSON) and the processor id
    come from .env or environment variables only.
    """

    backend: Literal["tesseract", "documentai"] = "tesseract"
    timeout_ms: int = 30_000
    retries: int = 2

    # Tesseract (local)
    tesseract_cmd: str = "tesseract"
    tesseract_lang: str = "eng"
    render_dpi: int = 300

    # Google Document AI
    documentai_location: str = "us"
    documentai_processor_id: str = ""
    documentai_credentials_json: str = ""

    model_config = SettingsConfigDict(
        yaml_file=str(_CONFIG_DIR / "ocr.yaml"),
        env_file=str(_ENV_FILE),
        env_prefix="OCR_",
        extra="ignore",
    )


class VisionSettings(_YamlSettings):
    """Vision model selection and per-attempt tuning.

    The API key comes from .env or environment variables only -- it must
    NEVER appear in YAML files.
    """

    model: str = "claude-sonnet-4-5"
    max_tokens: int = 8192
    timeout_ms: int = 90_000
    retries: int = 1
    api_key: str = ""

    model_config = SettingsConfigDict(
        yaml_file=str(_CONFIG_DIR / "vision.yaml"),
        env_file=str(_ENV_FILE),
        env_prefix="VISION_",
        extra="ignore",
    )


class PipelineSettings(_YamlSettings):
    """Process-level operations: logging paths and rotation."""

    log_dir: str = "logs"
    log_max_bytes: int = 10_485_760  # 10MB
    log_backup_count: int = 5

    model_config = SettingsConfigDict(
        yaml_file=str(_CONFIG_DIR / "pipeline.yaml"),
        env_prefix="PIPELINE_",
    )
