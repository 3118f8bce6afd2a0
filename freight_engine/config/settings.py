"""
Dimension & Freight Resolution Engine
Centralized Configuration Management

Every rate, percentage and clamp the engine uses lives here. Settings are
loaded once from the environment (and an optional ``.env`` file), frozen,
and handed to the components by reference.
"""

from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_list(raw: str) -> List[str]:
    return [item.strip().lower() for item in (raw or "").split(",") if item.strip()]


class DatabaseSettings(BaseSettings):
    """Relational store configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_", frozen=True)

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="freight_engine", alias="database", description="Database name")
    user: str = Field(default="freight", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(
        default=None,
        alias="DATABASE_URL",
        description="Full async database URL (overrides host/port)",
    )
    create_tables: bool = Field(default=False, description="Create schema on startup")

    @property
    def async_url(self) -> str:
        """Async database URL - uses DATABASE_URL if set, otherwise asyncpg"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class FreightSettings(BaseSettings):
    """Freight pricing rates and surcharges"""

    model_config = SettingsConfigDict(env_prefix="FREIGHT_", frozen=True)

    rate_per_ft3: float = Field(default=9.0, description="Freight rate per cubic foot")
    default_buffer_pct: float = Field(default=0.15, description="Uniform buffer on every volume/weight quote")
    fragile_pct: float = Field(default=0.20, description="Glass/mirror/crystal surcharge")
    oversize_pct: float = Field(default=0.10, description="Oversize surcharge")
    multi_carton_pct: float = Field(default=0.08, description="Bulk multi-carton surcharge")
    high_end_crate_pct: float = Field(default=0.25, description="High-end retailer crating surcharge")
    rate_per_lb: float = Field(default=1.2, description="Weight-based rate per pound")
    percent_of_price: float = Field(default=0.60, description="Last-resort freight as a share of price")
    multi_carton_threshold_cuft: float = Field(default=25.0, description="Volume at which bulk surcharge applies")
    oversize_threshold_in: float = Field(default=80.0, description="Assembled dimension that triggers oversize")
    high_end_list: str = Field(default="", description="Comma-separated high-end retailer domains/brands")
    value_list: str = Field(default="", description="Comma-separated value retailer domains/brands")

    @property
    def high_end_retailers(self) -> List[str]:
        return _split_list(self.high_end_list)

    @property
    def value_retailers(self) -> List[str]:
        return _split_list(self.value_list)


class CartonSettings(BaseSettings):
    """Carton volume resolution and vendor-tier estimation"""

    model_config = SettingsConfigDict(env_prefix="CARTON_", frozen=True)

    safety_factor: float = Field(default=1.15, description="Applied once after the minimum-charge floor")
    min_charge_cuft: float = Field(default=2.2, description="Small-parcel minimum charge floor")
    min_cuft: float = Field(default=0.8, description="Lower clamp on resolved volume")
    max_cuft: float = Field(default=180.0, description="Upper clamp on resolved volume")
    category_fallback_cuft: Dict[str, float] = Field(
        default={
            "chair": 3.0,
            "sofa": 56.0,
            "table": 8.0,
            "desk": 8.0,
            "bed": 40.0,
            "dresser": 25.0,
            "decor": 2.0,
            "other": 11.33,
        },
        description="Per-category carton volume when nothing is measured",
    )
    flatpack_vendors: str = Field(default="ikea,wayfair,zinus,sauder,south shore", description="Comma-separated flat-pack vendors")
    assembled_vendors: str = Field(
        default="restoration hardware,rh,pottery barn,crate & barrel,crate and barrel,arhaus,ethan allen",
        description="Comma-separated vendors that ship assembled",
    )
    vendor_tier_multipliers: Dict[str, float] = Field(
        default={"flatpack": 1.0, "neutral": 1.2, "assembled": 1.45},
        description="Volume multiplier per vendor tier",
    )
    calibration_min: float = Field(default=0.75, description="Lower bound on calibration multipliers")
    calibration_max: float = Field(default=1.25, description="Upper bound on calibration multipliers")
    calibration_alpha: float = Field(default=0.2, description="EMA smoothing for calibration updates")

    @property
    def flatpack_vendor_list(self) -> List[str]:
        return _split_list(self.flatpack_vendors)

    @property
    def assembled_vendor_list(self) -> List[str]:
        return _split_list(self.assembled_vendors)

    def fallback_key(self, category: Optional[str]) -> Optional[str]:
        """Normalized fallback-table key for a category, None when not in the table"""
        key = (category or "").strip().lower().replace(" ", "_").replace("-", "_")
        return key if key in self.category_fallback_cuft else None

    def fallback_for(self, category: Optional[str]) -> float:
        """Fallback volume for a category key, ``other`` when unknown"""
        return self.category_fallback_cuft[self.fallback_key(category) or "other"]


class ReconciliationSettings(BaseSettings):
    """Observation scoring and packaging reconciliation"""

    model_config = SettingsConfigDict(env_prefix="RECONCILE_", frozen=True)

    observation_window: int = Field(default=10, description="Most recent observations considered")
    recency_horizon_days: float = Field(default=180.0, description="Linear recency decay horizon")
    recency_floor: float = Field(default=0.5, description="Minimum recency weight")
    conf_min: float = Field(default=0.5, description="Lower clamp on reconciled confidence")
    conf_max: float = Field(default=0.99, description="Upper clamp on reconciled confidence")
    default_confidence: float = Field(default=0.80, description="Confidence when none is reported")
    default_weight_lb: float = Field(default=10.0, description="Weight when no observation supplies one")
    weight_match_tolerance: float = Field(default=0.10, description="Volume tolerance for borrowing weight")
    source_weights: Dict[str, float] = Field(
        default={
            "manual": 1.20,
            "override": 1.20,
            "amazon": 1.05,
            "zyte": 1.00,
            "other": 0.95,
        },
        description="Trust weight per observation source",
    )
    max_dimension_in: float = Field(default=200.0, description="Largest plausible carton side")
    max_weight_lb: float = Field(default=500.0, description="Largest plausible carton weight")


class ResolutionSettings(BaseSettings):
    """Read-time dimension fallback chain"""

    model_config = SettingsConfigDict(env_prefix="RESOLVE_", frozen=True)

    min_observation_conf: float = Field(default=0.8, description="Minimum confidence for the observation tier")
    category_conf: float = Field(default=0.50, description="Confidence reported for category patterns")
    default_conf: float = Field(default=0.30, description="Confidence reported for safe defaults")
    default_length_in: float = Field(default=24.0)
    default_width_in: float = Field(default=18.0)
    default_height_in: float = Field(default=12.0)
    default_weight_lb: float = Field(default=10.0)


class MonitoringSettings(BaseSettings):
    """Logging configuration"""

    model_config = SettingsConfigDict(env_prefix="", frozen=True)

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or console")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Application
    app_name: str = Field(default="freight-engine", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    freight: FreightSettings = Field(default_factory=FreightSettings)
    carton: CartonSettings = Field(default_factory=CartonSettings)
    reconciliation: ReconciliationSettings = Field(default_factory=ReconciliationSettings)
    resolution: ResolutionSettings = Field(default_factory=ResolutionSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
