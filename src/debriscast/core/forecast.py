"""Population forecasting under launch, retirement and decay assumptions."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from debriscast.config import ForecastSettings, Regime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegimePopulation:
    """Object counts in one regime. Projected values may be fractional."""

    active: float = 0.0
    inactive: float = 0.0
    debris: float = 0.0
    unknown: float = 0.0

    @property
    def total(self) -> float:
        return self.active + self.inactive + self.debris + self.unknown


@dataclass(frozen=True)
class RegimeForecast:
    current: RegimePopulation
    one_year: RegimePopulation
    five_year: RegimePopulation


def step_year(pop: RegimePopulation, regime: Regime, settings: ForecastSettings) -> RegimePopulation:
    """Advance one regime's population by a single year.

    Launches join the active population, a fraction of active objects
    retires, and a fraction of inactive, debris and unknown objects
    re-enters. Fragmentation adds new debris. Nothing goes below zero.
    """
    launches = settings.launch_rate_per_year.get(regime, 0.0)
    retire = settings.retirement_rate_per_year.get(regime, 0.0)
    decay = settings.decay_rate_per_year.get(regime, 0.0)
    fragments = settings.debris_generation_per_year.get(regime, 0.0)

    retired = pop.active * retire
    return RegimePopulation(
        active=max(pop.active + launches - retired, 0.0),
        inactive=max(pop.inactive + retired - pop.inactive * decay, 0.0),
        debris=max(pop.debris + fragments - pop.debris * decay, 0.0),
        unknown=max(pop.unknown - pop.unknown * decay, 0.0),
    )


def project(pop: RegimePopulation, regime: Regime, settings: ForecastSettings, years: int) -> RegimePopulation:
    """Apply ``step_year`` ``years`` times."""
    if years < 0:
        raise ValueError(f"years must be non-negative, got {years}")
    for _ in range(years):
        pop = step_year(pop, regime, settings)
    return pop


def forecast_population(
    counts: dict[Regime, RegimePopulation],
    settings: ForecastSettings,
    years: tuple[int, int] = (1, 5),
) -> dict[Regime, RegimeForecast]:
    """Project each regime forward by the short and long horizons.

    Args:
        counts: Current population per regime.
        settings: Annual rate assumptions.
        years: Short and long horizons in years.

    Returns:
        Mapping of regime to its current, short and long horizon populations.
    """
    short, long = years
    if not 0 <= short <= long:
        raise ValueError(f"horizons must satisfy 0 <= short <= long, got {years}")

    result: dict[Regime, RegimeForecast] = {}
    for regime, pop in counts.items():
        one = project(pop, regime, settings, short)
        five = project(one, regime, settings, long - short)
        result[regime] = RegimeForecast(current=pop, one_year=one, five_year=five)
        logger.debug("%s forecast: %.0f -> %.0f (1y) -> %.0f (5y)",
                     regime.value, pop.total, one.total, five.total)
    return result


def growth_percent(current_total: float, projected_total: float) -> float | None:
    """Percentage growth, or None (N/A) when there is nothing to grow from."""
    if current_total <= 0:
        return None
    return (projected_total / current_total - 1.0) * 100.0
