"""
Configuration loader with YAML support and Pydantic validation
"""

import logging

from pydantic import BaseModel, Field, ValidationError, field_validator

from config.settings import get_settings
from core.models.indicators import IndicatorKind
from domain.indicators.classifier import Thresholds

logger = logging.getLogger(__name__)

SUPPORTED_SOURCES = {"fred", "cboe", "yahoo", "yahoo_vix"}


class ThresholdsConfig(BaseModel):
    """Classifier thresholds (all optional, classifier defaults apply)"""

    spread_danger: float | None = None
    spread_warning: float | None = None
    average_warning_band: float | None = Field(default=None, ge=0)
    average_danger_band: float | None = Field(default=None, ge=0)
    ratio_warning: float | None = None
    ratio_danger: float | None = None
    vix_warning: float | None = None
    vix_danger: float | None = None

    def to_domain(self) -> Thresholds:
        """Merge configured values over classifier defaults"""
        overrides = {k: v for k, v in self.model_dump().items() if v is not None}
        return Thresholds(**overrides)


class IndicatorConfig(BaseModel):
    """Single indicator configuration"""

    kind: IndicatorKind
    enabled: bool = True
    source: str
    fallback_source: str | None = None
    series_id: str | None = None
    fetch_limit: int | None = Field(default=None, gt=0)
    min_observations: int = Field(default=1, ge=1)
    trailing_window: int = Field(default=20, ge=1)
    history_length: int = Field(default=30, ge=1)
    record_eod: bool = True
    thresholds: ThresholdsConfig = Field(default_factory=ThresholdsConfig)

    @field_validator("source", "fallback_source")
    @classmethod
    def source_supported(cls, v):
        if v is not None and v not in SUPPORTED_SOURCES:
            raise ValueError(f"Unsupported source '{v}'. Supported: {sorted(SUPPORTED_SOURCES)}")
        return v

    @property
    def source_chain(self) -> list[str]:
        """Sources in the order the service should try them"""
        return [s for s in (self.source, self.fallback_source) if s]

    @property
    def fetch_options(self) -> dict:
        """Adapter options derived from config"""
        options = {}
        if self.series_id:
            options["series_id"] = self.series_id
        if self.fetch_limit:
            options["limit"] = self.fetch_limit
        return options


def load_indicators_config(raw: dict | None = None) -> dict[IndicatorKind, IndicatorConfig]:
    """
    Load and validate indicator configuration

    Args:
        raw: Mapping of indicator id → config dict (default: settings.INDICATORS,
             i.e. config/providers/indicators.yaml)

    Returns:
        Dict[IndicatorKind, IndicatorConfig]: Validated indicator configurations

    Raises:
        ValidationError: If config is invalid

    Example:
        >>> configs = load_indicators_config()
        >>> configs[IndicatorKind.YIELD_CURVE_SPREAD].series_id
        'T10Y2Y'
    """
    if raw is None:
        raw = get_settings().INDICATORS

    configs = {}
    try:
        for indicator_id, data in raw.items():
            config = IndicatorConfig(kind=indicator_id, **(data or {}))
            configs[config.kind] = config
    except (ValidationError, ValueError) as e:
        logger.error(f"Failed to load indicator config: {e}")
        raise

    logger.info(f"✓ Loaded {len(configs)} indicator configurations")
    return configs


def get_enabled_indicators(raw: dict | None = None) -> dict[IndicatorKind, IndicatorConfig]:
    """
    Get only enabled indicators from configuration

    Raises:
        ValueError: If no indicator is enabled
    """
    all_indicators = load_indicators_config(raw)
    enabled = {kind: config for kind, config in all_indicators.items() if config.enabled}

    if not enabled:
        raise ValueError("No indicators are enabled in configuration")

    logger.info(f"✓ Enabled indicators: {', '.join(k.value for k in enabled)}")
    return enabled


__all__ = [
    "IndicatorConfig",
    "ThresholdsConfig",
    "load_indicators_config",
    "get_enabled_indicators",
]
