"""Conjunction screening: find close approaches between catalog objects."""
from __future__ import annotations

import logging
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Literal

import numpy as np
from numpy.typing import NDArray

from debriscast.config import ScreeningSettings
from debriscast.core.objects import ObjectType, TrackedObject
from debriscast.core.propagation import propagate_batch, propagate_elements
from debriscast.utils.constants import SECONDS_PER_DAY

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScreeningCandidate:
    """A refined close approach between two objects.

    Attributes:
        primary: The protected object (the active payload when there is one).
        secondary: The other object.
        tca: Time of closest approach (UTC).
        miss_distance_km: Separation at TCA in km.
        relative_velocity_km_s: Relative speed at TCA in km/s.
        primary_state: Primary [x,y,z,vx,vy,vz] at TCA.
        secondary_state: Secondary [x,y,z,vx,vy,vz] at TCA.
    """

    primary: TrackedObject
    secondary: TrackedObject
    tca: datetime
    miss_distance_km: float
    relative_velocity_km_s: float
    primary_state: NDArray[np.float64] = field(compare=False, repr=False)
    secondary_state: NDArray[np.float64] = field(compare=False, repr=False)


@dataclass
class ScreeningStats:
    """Pair counts after each screening stage."""

    objects: int = 0
    screenable: int = 0
    naive_pairs: int = 0
    coarse_pairs: int = 0
    apsis_pairs: int = 0
    flagged: int = 0
    candidates: int = 0

    @property
    def reduction_factor(self) -> float | None:
        """How many naive pairs each fine-filtered pair stands for."""
        if self.apsis_pairs == 0:
            return None
        return self.naive_pairs / self.apsis_pairs


@dataclass
class ScreeningResult:
    candidates: list[ScreeningCandidate]
    stats: ScreeningStats
    excluded_ids: list[str]


@dataclass
class _WorkUnit:
    band: int
    objects: list[TrackedObject]
    pairs: NDArray[np.int64]  # (k, 2) indices into objects
    start: datetime
    settings: ScreeningSettings


def _apogee_perigee(objects: list[TrackedObject]) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Perigee and apogee altitudes in km for objects with valid elements."""
    perigee = np.array([o.elements.perigee_altitude_km for o in objects], dtype=np.float64)
    apogee = np.array([o.elements.apogee_altitude_km for o in objects], dtype=np.float64)
    return perigee, apogee


def _band_ranges(
    perigee: NDArray[np.float64], apogee: NDArray[np.float64], settings: ScreeningSettings
) -> tuple[NDArray[np.int64], NDArray[np.int64]]:
    """Lowest and highest altitude band touched by each padded orbit."""
    pad = settings.screening_distance_km
    lo = np.floor((perigee - pad) / settings.band_width_km).astype(np.int64)
    hi = np.floor((apogee + pad) / settings.band_width_km).astype(np.int64)
    return lo, hi


def _pairs_for_band(
    band: int,
    lo: NDArray[np.int64],
    hi: NDArray[np.int64],
    perigee: NDArray[np.float64],
    apogee: NDArray[np.float64],
    distance_km: float,
) -> tuple[NDArray[np.int64], int]:
    """Pairs owned by ``band`` that pass the band and apsis filters.

    A pair belongs to the band holding the higher of the two objects' lowest
    bands, so every pair is produced by exactly one band. Band ranges must be
    the same or adjacent for the pair to survive the coarse filter.

    Returns:
        (pairs of global indices, number of pairs surviving the coarse filter)
    """
    starters = np.flatnonzero(lo == band)
    pool = np.flatnonzero((lo <= band) & (hi >= band - 1))
    if starters.size == 0 or pool.size == 0:
        return np.empty((0, 2), dtype=np.int64), 0

    s = starters[:, None]
    p = pool[None, :]
    coarse = (lo[p] < band) | (p > s)
    apsis = (perigee[s] - distance_km <= apogee[p]) & (perigee[p] - distance_km <= apogee[s])
    keep = coarse & apsis

    si, pi = np.nonzero(keep)
    pairs = np.stack([starters[si], pool[pi]], axis=1).astype(np.int64)
    return pairs, int(coarse.sum())


def _order_pair(a: TrackedObject, b: TrackedObject) -> tuple[TrackedObject, TrackedObject]:
    """Put the active payload first, otherwise order by identifier."""
    def key(o: TrackedObject) -> tuple[bool, int, str]:
        protected = o.is_active and o.object_type == ObjectType.PAYLOAD
        return (not protected, len(o.object_id), o.object_id)

    return (a, b) if key(a) <= key(b) else (b, a)


def _relative(states_a: NDArray[np.float64], states_b: NDArray[np.float64]) -> tuple[NDArray, NDArray]:
    rel = states_b - states_a
    return rel[..., 0:3], rel[..., 3:6]


def _find_brackets(
    rel_pos: NDArray[np.float64],
    rel_vel: NDArray[np.float64],
    step_s: float,
    limit_km: float,
) -> tuple[NDArray[np.int64], NDArray[np.int64]]:
    """Locate sampled intervals holding a local minimum of separation.

    A minimum lies between samples k and k+1 when the range-rate goes from
    negative to non-negative. The minimum inside the interval is estimated by
    straight-line motion from both ends and the interval is kept when the
    estimate is within ``limit_km``.

    Returns:
        (pair indices, interval start indices)
    """
    range_rate = np.einsum("pkj,pkj->pk", rel_pos, rel_vel)
    sign_change = (range_rate[:, :-1] < 0) & (range_rate[:, 1:] >= 0)
    pair_idx, k = np.nonzero(sign_change)
    if pair_idx.size == 0:
        return pair_idx, k

    r0, v0 = rel_pos[pair_idx, k], rel_vel[pair_idx, k]
    r1, v1 = rel_pos[pair_idx, k + 1], rel_vel[pair_idx, k + 1]
    v0_sq = np.maximum(np.einsum("ij,ij->i", v0, v0), 1e-30)
    v1_sq = np.maximum(np.einsum("ij,ij->i", v1, v1), 1e-30)
    t0 = np.clip(-range_rate[pair_idx, k] / v0_sq, 0.0, step_s)
    t1 = np.clip(-range_rate[pair_idx, k + 1] / v1_sq, -step_s, 0.0)
    est = np.minimum(
        np.linalg.norm(r0 + v0 * t0[:, None], axis=1),
        np.linalg.norm(r1 + v1 * t1[:, None], axis=1),
    )
    flagged = est <= limit_km
    return pair_idx[flagged], k[flagged]


def _refine_tca(
    primary: TrackedObject,
    secondary: TrackedObject,
    start: datetime,
    t_lo: float,
    t_hi: float,
    tolerance_s: float,
) -> tuple[float, NDArray[np.float64], NDArray[np.float64]]:
    """Refine time of closest approach by bisection on the range-rate.

    Args:
        primary: Primary object.
        secondary: Secondary object.
        start: Reference time the offsets are measured from.
        t_lo: Bracket start (seconds from ``start``), range-rate < 0.
        t_hi: Bracket end (seconds from ``start``), range-rate >= 0.
        tolerance_s: Bracket width at which to stop.

    Returns:
        Tuple of (tca offset seconds, primary state, secondary state).
    """
    shift_p = (start - primary.epoch).total_seconds()
    shift_s = (start - secondary.epoch).total_seconds()

    def states(t: float) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        return (
            propagate_elements(primary.elements, shift_p + t),
            propagate_elements(secondary.elements, shift_s + t),
        )

    while t_hi - t_lo > tolerance_s:
        mid = 0.5 * (t_lo + t_hi)
        sp, ss = states(mid)
        rel = ss - sp
        if float(np.dot(rel[0:3], rel[3:6])) < 0:
            t_lo = mid
        else:
            t_hi = mid

    # Pick the closer endpoint of the final bracket.
    best_t, best_sp, best_ss, best_d = t_lo, None, None, np.inf
    for t in (t_lo, t_hi):
        sp, ss = states(t)
        d = float(np.linalg.norm(ss[0:3] - sp[0:3]))
        if d < best_d:
            best_t, best_sp, best_ss, best_d = t, sp, ss, d
    return best_t, best_sp, best_ss


def _screen_unit(unit: _WorkUnit) -> tuple[list[ScreeningCandidate], int]:
    """Fine filter and refinement for the pairs of one altitude band."""
    settings = unit.settings
    step = settings.step_seconds
    window_s = settings.window_days * SECONDS_PER_DAY
    offsets = np.arange(0.0, window_s + step / 2.0, step)
    limit = settings.screening_distance_km + settings.detection_pad_km

    states, _ = propagate_batch(unit.objects, unit.start, offsets)

    candidates: list[ScreeningCandidate] = []
    flagged_total = 0
    chunk = settings.max_pairs_per_chunk
    for first in range(0, len(unit.pairs), chunk):
        pairs = unit.pairs[first:first + chunk]
        rel_pos, rel_vel = _relative(states[pairs[:, 0]], states[pairs[:, 1]])
        pair_idx, k = _find_brackets(rel_pos, rel_vel, step, limit)
        flagged_total += int(pair_idx.size)

        for p, ki in zip(pair_idx.tolist(), k.tolist()):
            a = unit.objects[int(pairs[p, 0])]
            b = unit.objects[int(pairs[p, 1])]
            primary, secondary = _order_pair(a, b)
            t, sp, ss = _refine_tca(
                primary, secondary, unit.start,
                float(offsets[ki]), float(offsets[ki + 1]),
                settings.tca_tolerance_s,
            )
            miss = float(np.linalg.norm(ss[0:3] - sp[0:3]))
            if miss > settings.screening_distance_km:
                continue
            candidates.append(
                ScreeningCandidate(
                    primary=primary,
                    secondary=secondary,
                    tca=unit.start + timedelta(seconds=t),
                    miss_distance_km=miss,
                    relative_velocity_km_s=float(np.linalg.norm(ss[3:6] - sp[3:6])),
                    primary_state=sp,
                    secondary_state=ss,
                )
            )

    logger.debug("Band %d: %d pairs, %d flagged, %d candidates",
                 unit.band, len(unit.pairs), flagged_total, len(candidates))
    return candidates, flagged_total


def build_work_units(
    objects: list[TrackedObject],
    start: datetime,
    settings: ScreeningSettings,
    stats: ScreeningStats | None = None,
) -> list[_WorkUnit]:
    """Apply the coarse and apsis filters and group surviving pairs by band.

    ``objects`` must already have valid, non-degenerate elements.
    """
    if stats is None:
        stats = ScreeningStats()
    n = len(objects)
    stats.naive_pairs = n * (n - 1) // 2
    if n < 2:
        return []

    perigee, apogee = _apogee_perigee(objects)
    lo, hi = _band_ranges(perigee, apogee, settings)

    units: list[_WorkUnit] = []
    for band in np.unique(lo).tolist():
        pairs, coarse = _pairs_for_band(band, lo, hi, perigee, apogee, settings.screening_distance_km)
        stats.coarse_pairs += coarse
        stats.apsis_pairs += len(pairs)
        if len(pairs) == 0:
            continue
        involved = np.unique(pairs)
        local = np.searchsorted(involved, pairs)
        units.append(
            _WorkUnit(
                band=int(band),
                objects=[objects[i] for i in involved.tolist()],
                pairs=local,
                start=start,
                settings=settings,
            )
        )
    return units


def _candidate_pairs(
    objects: list[TrackedObject], settings: ScreeningSettings
) -> list[tuple[str, str]]:
    """Identifier pairs that survive the coarse and apsis filters.

    Pairing depends only on the orbit geometry, so the first object's epoch
    stands in for the window start.
    """
    screenable = [o for o in objects if o.elements is not None and not o.elements.is_degenerate]
    if not screenable:
        return []
    units = build_work_units(screenable, screenable[0].epoch, settings)
    result = []
    for unit in units:
        for i, j in unit.pairs.tolist():
            result.append(tuple(sorted((unit.objects[i].object_id, unit.objects[j].object_id))))
    return sorted(result)


def _run_units(
    units: list[_WorkUnit],
    max_workers: int,
    backend: Literal["thread", "process"],
) -> list[tuple[list[ScreeningCandidate], int]]:
    if max_workers <= 1 or len(units) <= 1:
        return [_screen_unit(u) for u in units]
    pool_cls = ProcessPoolExecutor if backend == "process" else ThreadPoolExecutor
    with pool_cls(max_workers=max_workers) as pool:
        return list(pool.map(_screen_unit, units))


def screen_catalog(
    objects: list[TrackedObject],
    start: datetime,
    settings: ScreeningSettings,
    max_workers: int = 1,
    backend: Literal["thread", "process"] = "process",
) -> ScreeningResult:
    """Screen all objects against all objects over one evaluation window.

    Uses a multi-stage algorithm:
    1. Altitude-band bucketing, keeping pairs in the same or adjacent bands
    2. Apogee/perigee overlap filter
    3. Fine time grid with range-rate bracketing of local minima
    4. Bisection refinement of each bracket to the time of closest approach

    Args:
        objects: The full catalog. Objects with missing or degenerate
            elements are excluded and reported in ``excluded_ids``.
        start: Start of the evaluation window (UTC).
        settings: Screening thresholds and grid spacing.
        max_workers: Number of workers for the per-band fine filter.
        backend: "thread" or "process" pool.

    Returns:
        ScreeningResult with candidates sorted by (TCA, primary, secondary).
    """
    stats = ScreeningStats(objects=len(objects))
    screenable: list[TrackedObject] = []
    excluded: list[str] = []
    for obj in objects:
        if obj.elements is None or obj.elements.is_degenerate:
            excluded.append(obj.object_id)
        else:
            screenable.append(obj)
    stats.screenable = len(screenable)
    if excluded:
        logger.warning("screen_catalog: %d objects excluded (missing or degenerate elements)", len(excluded))

    units = build_work_units(screenable, start, settings, stats)
    reduction = stats.reduction_factor
    logger.info("screen_catalog: %d objects, %d naive pairs, %d after band filter, %d after apsis filter (%s)",
                stats.screenable, stats.naive_pairs, stats.coarse_pairs, stats.apsis_pairs,
                f"{reduction:.1f}x reduction" if reduction is not None else "no pairs left")

    candidates: list[ScreeningCandidate] = []
    for found, flagged in _run_units(units, max_workers, backend):
        candidates.extend(found)
        stats.flagged += flagged

    candidates.sort(key=lambda c: (c.tca, c.primary.object_id, c.secondary.object_id))
    stats.candidates = len(candidates)
    logger.info("screen_catalog: %d flagged minima, %d candidates within %.3f km",
                stats.flagged, stats.candidates, settings.screening_distance_km)
    return ScreeningResult(candidates=candidates, stats=stats, excluded_ids=excluded)
