"""Configuration package -- typed, validated settings from YAML + .env."""

from .settings import ExtractionSettings, OcrSettings, PipelineSettings, VisionSettings

__all__ = [
    "ExtractionSettings",
    "OcrSettings",
    "PipelineSettings",
    "VisionSettings",
    "load_all_settings",
]


def load_all_settings() -> (
    tuple[ExtractionSettings, OcrSettings, VisionSettings, PipelineSettings]
):
    """Load and return all configuration objects.

    Returns a tuple of (ExtractionSettings, OcrSettings, VisionSettings,
    PipelineSettings), each populated from its own YAML file with environment
    variable overrides.
    """
    return ExtractionSettings(), OcrSettings(), VisionSettings(), PipelineSettings()
