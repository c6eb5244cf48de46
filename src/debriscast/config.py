"""Engine configuration.

All tunable thresholds live here as validated pydantic models so that a
cycle always runs against one consistent, immutable set of settings.
Values can be supplied as keyword arguments, environment variables
(``DEBRISCAST_SCREENING__SCREENING_DISTANCE_KM=2.5``) or a TOML file.
"""

from __future__ import annotations

import logging
import threading
import tomllib
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from debriscast.errors import ConfigError
from debriscast.utils import constants as C

logger = logging.getLogger(__name__)


class Regime(str, Enum):
    """Coarse orbital classification."""

    LEO = "LEO"
    MEO = "MEO"
    GEO = "GEO"
    OTHER = "other"


class PcMethod(str, Enum):
    """Collision probability calculation methods."""

    FOSTER_1992 = "foster_1992"
    MONTE_CARLO = "monte_carlo"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class RegimeBands(_Frozen):
    """Altitude bands used by the orbit classifier (km above the equator)."""

    leo_min_km: float = Field(C.LEO_MIN_ALT_KM, ge=0)
    leo_max_km: float = Field(C.LEO_MAX_ALT_KM, gt=0)
    geo_altitude_km: float = Field(C.GEO_ALT_KM, gt=0)
    geo_tolerance_km: float = Field(C.GEO_TOLERANCE_KM, ge=0)
    highly_elliptical_eccentricity: float = Field(0.25, gt=0, le=1)

    @model_validator(mode="after")
    def _check_order(self) -> RegimeBands:
        if not self.leo_min_km < self.leo_max_km:
            raise ValueError("leo_min_km must be below leo_max_km")
        if not self.leo_max_km <= self.geo_altitude_km - self.geo_tolerance_km:
            raise ValueError("GEO band must lie above the LEO upper bound")
        return self

    @property
    def meo_max_km(self) -> float:
        return self.geo_altitude_km - self.geo_tolerance_km

    @property
    def geo_max_km(self) -> float:
        return self.geo_altitude_km + self.geo_tolerance_km


class RiskThresholds(_Frozen):
    """Probability cutoffs for the display risk levels."""

    critical: float = Field(1e-3, gt=0, le=1)
    high: float = Field(1e-4, gt=0, le=1)
    moderate: float = Field(1e-5, gt=0, le=1)

    @model_validator(mode="after")
    def _check_descending(self) -> RiskThresholds:
        if not self.critical > self.high > self.moderate:
            raise ValueError("risk cutoffs must satisfy critical > high > moderate")
        return self


class ScreeningSettings(_Frozen):
    screening_distance_km: float = Field(C.DEFAULT_SCREENING_DISTANCE_KM, gt=0)
    window_days: float = Field(C.DEFAULT_SCREENING_WINDOW_DAYS, gt=0)
    step_seconds: float = Field(C.DEFAULT_STEP_SECONDS, gt=0)
    band_width_km: float = Field(50.0, gt=0)
    detection_pad_km: float = Field(1.0, ge=0)
    tca_tolerance_s: float = Field(1e-6, gt=0)
    max_pairs_per_chunk: int = Field(500, gt=0)


class ProbabilitySettings(_Frozen):
    pc_method: PcMethod = PcMethod.FOSTER_1992
    covariance_model: Literal["isotropic", "diagonal"] = "diagonal"
    default_position_sigma_km: float | None = Field(None, gt=0)
    maneuver_threshold: float = Field(C.DEFAULT_MANEUVER_THRESHOLD, gt=0, le=1)
    mc_samples: int = Field(100_000, gt=0)
    mc_seed: int = 42


def _per_regime(leo: float, meo: float, geo: float, other: float) -> dict[Regime, float]:
    return {Regime.LEO: leo, Regime.MEO: meo, Regime.GEO: geo, Regime.OTHER: other}


class KesslerSettings(_Frozen):
    """Weights and reference scales for the Kessler Risk Index."""

    scale_max: float = Field(10.0, gt=0)
    density_weight: float = Field(0.5, ge=0)
    probability_weight: float = Field(0.3, ge=0)
    growth_weight: float = Field(0.2, ge=0)
    reference_density_per_km3: dict[Regime, float] = Field(
        default_factory=lambda: _per_regime(2e-8, 5e-12, 8e-10, 1e-11)
    )
    reference_probability_per_object: float = Field(1e-6, gt=0)
    reference_growth_rate: float = Field(0.05, gt=0)
    rate_probability_floor: float = Field(0.0, ge=0, le=1)

    @model_validator(mode="after")
    def _check_weights(self) -> KesslerSettings:
        if self.density_weight + self.probability_weight + self.growth_weight <= 0:
            raise ValueError("at least one Kessler weight must be positive")
        if any(v <= 0 for v in self.reference_density_per_km3.values()):
            raise ValueError("reference densities must be positive")
        return self


class ComplianceSettings(_Frozen):
    threshold_years: float = Field(C.DEORBIT_RULE_YEARS, gt=0)
    indefinite_altitude_km: float = Field(2000.0, gt=0)
    reentry_altitude_km: float = Field(C.REENTRY_ALTITUDE_KM, ge=0)
    default_ballistic_coeff_m2_kg: float = Field(C.DEFAULT_BALLISTIC_COEFF_M2_KG, gt=0)
    object_types: tuple[str, ...] = ("payload", "rocket_body")

    @model_validator(mode="after")
    def _check_altitudes(self) -> ComplianceSettings:
        if self.reentry_altitude_km >= self.indefinite_altitude_km:
            raise ValueError("reentry_altitude_km must be below indefinite_altitude_km")
        return self


class ForecastSettings(_Frozen):
    """Annual launch and decay assumptions per regime."""

    launch_rate_per_year: dict[Regime, float] = Field(
        default_factory=lambda: _per_regime(2500.0, 30.0, 20.0, 10.0)
    )
    decay_rate_per_year: dict[Regime, float] = Field(
        default_factory=lambda: _per_regime(0.05, 0.0, 0.0, 0.01)
    )
    retirement_rate_per_year: dict[Regime, float] = Field(
        default_factory=lambda: _per_regime(0.15, 0.08, 0.067, 0.1)
    )
    debris_generation_per_year: dict[Regime, float] = Field(
        default_factory=lambda: _per_regime(250.0, 5.0, 5.0, 5.0)
    )

    @model_validator(mode="after")
    def _check_rates(self) -> ForecastSettings:
        for name in ("launch_rate_per_year", "debris_generation_per_year"):
            if any(v < 0 for v in getattr(self, name).values()):
                raise ValueError(f"{name} values must be non-negative")
        for name in ("decay_rate_per_year", "retirement_rate_per_year"):
            if any(not 0 <= v <= 1 for v in getattr(self, name).values()):
                raise ValueError(f"{name} values must be fractions in [0, 1]")
        return self


class EngineConfig(BaseSettings):
    """Complete, validated configuration for one computation cycle."""

    model_config = SettingsConfigDict(
        env_prefix="DEBRISCAST_",
        env_nested_delimiter="__",
        env_file=".env",
        # a shared .env may hold keys for other programs
        extra="ignore",
        frozen=True,
    )

    bands: RegimeBands = RegimeBands()
    thresholds: RiskThresholds = RiskThresholds()
    screening: ScreeningSettings = ScreeningSettings()
    probability: ProbabilitySettings = ProbabilitySettings()
    kessler: KesslerSettings = KesslerSettings()
    compliance: ComplianceSettings = ComplianceSettings()
    forecast: ForecastSettings = ForecastSettings()

    cycle_period_hours: float = Field(24.0, gt=0)
    max_workers: int = Field(1, ge=1)
    parallel_backend: Literal["thread", "process"] = "process"
    notable_object_count: int = Field(10, ge=0)


def load_config(**overrides: Any) -> EngineConfig:
    """Build a validated configuration.

    Keyword overrides must name known settings; unrelated keys in a
    ``.env`` file are ignored.

    Raises:
        ConfigError: If any value fails validation.
    """
    unknown = sorted(set(overrides) - set(EngineConfig.model_fields))
    if unknown:
        logger.error("Rejected configuration: unknown keys %s", unknown)
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
    try:
        return EngineConfig(**overrides)
    except ValidationError as e:
        logger.error("Rejected configuration: %s", e)
        raise ConfigError(str(e)) from e


def load_config_file(path: str | Path) -> EngineConfig:
    """Load a configuration from a TOML file.

    Top-level tables map to the nested settings groups, e.g.
    ``[screening] screening_distance_km = 2.0``.
    """
    path = Path(path)
    try:
        with path.open("rb") as fh:
            data = tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.error("Cannot read configuration file %s: %s", path, e)
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
    return load_config(**data)


class ConfigManager:
    """Holds the last-known-good configuration.

    A cycle takes ``manager.current`` once at start; ``update`` swaps in a
    new configuration only if it validates.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._lock = threading.Lock()
        self._current = config if config is not None else load_config()
        self.last_error: ConfigError | None = None

    @property
    def current(self) -> EngineConfig:
        with self._lock:
            return self._current

    def update(self, source: str | Path | dict[str, Any]) -> bool:
        """Try to replace the active configuration.

        Returns:
            True if the new configuration was accepted, False if it was
            rejected and the previous configuration remains active.
        """
        try:
            if isinstance(source, dict):
                config = load_config(**source)
            else:
                config = load_config_file(source)
        except ConfigError as e:
            logger.warning("Keeping last-known-good configuration: %s", e)
            self.last_error = e
            return False

        with self._lock:
            self._current = config
        self.last_error = None
        logger.info("Configuration updated")
        return True
