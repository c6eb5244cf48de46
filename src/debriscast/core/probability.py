"""Collision probability estimation.

Turns a screened close approach into a probability of collision (Pc) using
the objects' position uncertainty and hard-body radii. When uncertainty is
not available a conservative distance-only placeholder is used instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy.integrate import dblquad

from debriscast.config import PcMethod

logger = logging.getLogger(__name__)

# B-plane covariance determinant (km^4) below which the Gaussian is treated as degenerate
_MIN_BPLANE_DET = 1e-20
_MIN_EIGEN_RATIO = 1e-12


@dataclass
class PcResult:
    """Result of a collision probability calculation.

    Attributes:
        probability: Estimated collision probability in [0, 1].
        method: Method used, or None for the distance-only fallback.
        combined_hard_body_radius_m: Combined hard-body radius in meters.
        low_confidence: True when no usable covariance was available.
        mahalanobis_distance: Miss distance in combined-sigma units (if applicable).
        samples: Number of samples used (for Monte Carlo).
    """

    probability: float
    method: PcMethod | None
    combined_hard_body_radius_m: float
    low_confidence: bool = False
    mahalanobis_distance: float | None = None
    samples: int | None = None


def position_covariance(
    sigma_km: tuple[float, float, float] | None,
    model: str = "diagonal",
) -> NDArray[np.float64] | None:
    """3x3 position covariance from per-axis 1-sigma values.

    ``isotropic`` replaces the three sigmas by their RMS on every axis.
    """
    if sigma_km is None:
        return None
    sigma = np.asarray(sigma_km, dtype=np.float64)
    if model == "isotropic":
        var = float(np.mean(sigma**2))
        return np.eye(3) * var
    return np.diag(sigma**2)


def _project_to_bplane(
    rel_pos: NDArray, rel_vel: NDArray, cov_pos: NDArray
) -> tuple[NDArray, NDArray]:
    """Project miss vector and combined position covariance onto the B-plane.

    The B-plane is perpendicular to the relative velocity; the along-track
    direction is integrated out by the short-encounter assumption.

    Returns:
        Tuple of (miss_2d: shape (2,), cov_2d: shape (2,2))
    """
    rel_vel_norm = np.linalg.norm(rel_vel)
    if rel_vel_norm < 1e-10:
        # Objects moving together: no preferred plane
        return rel_pos[:2], cov_pos[:2, :2]

    z_hat = rel_vel / rel_vel_norm
    x_hat = np.cross(z_hat, np.array([0.0, 0.0, 1.0]))
    if np.linalg.norm(x_hat) < 1e-10:
        x_hat = np.cross(z_hat, np.array([1.0, 0.0, 0.0]))
    x_hat = x_hat / np.linalg.norm(x_hat)
    y_hat = np.cross(z_hat, x_hat)

    P = np.vstack([x_hat, y_hat])
    return P @ rel_pos, P @ cov_pos @ P.T


def _is_degenerate(cov_2d: NDArray) -> bool:
    """True when the B-plane covariance is singular, near-singular or not finite."""
    if not np.all(np.isfinite(cov_2d)):
        return True
    eig = np.linalg.eigvalsh(cov_2d)
    return not (eig[0] > _MIN_EIGEN_RATIO * eig[-1] and eig[0] * eig[-1] > _MIN_BPLANE_DET)


def compute_pc_foster(
    miss_2d: NDArray,
    cov_2d: NDArray,
    hard_body_radius: float,
) -> float:
    """Integrate the B-plane Gaussian over the hard-body disk.

    The disk of radius ``hard_body_radius`` sits at the origin and the
    Gaussian is centred on the miss vector; integration is done in polar
    coordinates with ``scipy.integrate.dblquad``.

    Args:
        miss_2d: 2D miss vector in B-plane (km)
        cov_2d: 2x2 covariance matrix in B-plane (km²)
        hard_body_radius: Combined hard-body radius (km)

    Returns:
        Collision probability (0 to 1)

    Raises:
        ValueError: If the covariance is singular or near-singular.
    """
    if _is_degenerate(cov_2d):
        raise ValueError("B-plane covariance is singular or near-singular")
    det = np.linalg.det(cov_2d)

    cov_inv = np.linalg.inv(cov_2d)
    mx, my = miss_2d
    norm_factor = 1.0 / (2.0 * np.pi * np.sqrt(det))

    def integrand(theta: float, r: float) -> float:
        dx = r * np.cos(theta) - mx
        dy = r * np.sin(theta) - my
        q = cov_inv[0, 0] * dx * dx + 2.0 * cov_inv[0, 1] * dx * dy + cov_inv[1, 1] * dy * dy
        return norm_factor * np.exp(-0.5 * q) * r

    result, _ = dblquad(
        integrand,
        0.0, hard_body_radius,
        lambda r: 0.0, lambda r: 2.0 * np.pi,
        epsabs=1e-12, epsrel=1e-6,
    )
    return float(np.clip(result, 0.0, 1.0))


def compute_pc_monte_carlo(
    rel_pos: NDArray,
    rel_vel: NDArray,
    cov_pos: NDArray,
    hard_body_radius: float,
    n_samples: int = 100_000,
    seed: int = 42,
) -> float:
    """Monte Carlo Pc estimate in the B-plane.

    Samples the relative position from the combined covariance, removes the
    along-track component and counts samples inside the hard-body radius.
    A fixed seed keeps repeated cycles reproducible.
    """
    rng = np.random.default_rng(seed)
    samples = rng.multivariate_normal(rel_pos, cov_pos, size=n_samples)

    rel_vel_norm = np.linalg.norm(rel_vel)
    if rel_vel_norm >= 1e-10:
        z_hat = rel_vel / rel_vel_norm
        samples = samples - np.outer(samples @ z_hat, z_hat)
    distances = np.linalg.norm(samples, axis=1)
    return float(np.count_nonzero(distances < hard_body_radius)) / n_samples


def fallback_probability(miss_distance_km: float, hard_body_radius_km: float) -> float:
    """Distance-only placeholder used when no covariance is available.

    Certain collision inside the hard body, falling off as ``(R/d)²``
    outside it. Monotonically non-increasing in miss distance.
    """
    if hard_body_radius_km <= 0:
        return 0.0
    if miss_distance_km <= hard_body_radius_km:
        return 1.0
    return float(np.clip((hard_body_radius_km / miss_distance_km) ** 2, 0.0, 1.0))


def compute_pc(
    rel_pos_km: NDArray,
    rel_vel_km_s: NDArray,
    cov_pos: NDArray | None,
    hard_body_radius_m: float,
    method: PcMethod = PcMethod.FOSTER_1992,
    mc_samples: int = 100_000,
    mc_seed: int = 42,
) -> PcResult:
    """Compute collision probability for one encounter.

    Args:
        rel_pos_km: Secondary minus primary position at TCA (km)
        rel_vel_km_s: Secondary minus primary velocity at TCA (km/s)
        cov_pos: Combined 3x3 position covariance (km²), or None if unknown
        hard_body_radius_m: Combined hard-body radius in meters
        method: Calculation method
        mc_samples: Number of samples for the Monte Carlo method
        mc_seed: Random seed for the Monte Carlo method

    Returns:
        PcResult with collision probability and metadata
    """
    hbr_km = hard_body_radius_m / 1000.0
    rel_pos = np.asarray(rel_pos_km, dtype=np.float64)
    rel_vel = np.asarray(rel_vel_km_s, dtype=np.float64)

    if cov_pos is None:
        pc = fallback_probability(float(np.linalg.norm(rel_pos)), hbr_km)
        logger.debug("No covariance, distance-only Pc=%.2e", pc)
        return PcResult(
            probability=pc,
            method=None,
            combined_hard_body_radius_m=hard_body_radius_m,
            low_confidence=True,
        )

    try:
        mahalanobis = float(np.sqrt(rel_pos @ np.linalg.inv(cov_pos) @ rel_pos))
    except np.linalg.LinAlgError:
        mahalanobis = None

    miss_2d, cov_2d = _project_to_bplane(rel_pos, rel_vel, cov_pos)
    if _is_degenerate(cov_2d):
        # No usable spread in the encounter plane: fall back to distance only
        pc = fallback_probability(float(np.linalg.norm(miss_2d)), hbr_km)
        logger.debug("Degenerate B-plane covariance, distance-only Pc=%.2e", pc)
        return PcResult(
            probability=pc,
            method=None,
            combined_hard_body_radius_m=hard_body_radius_m,
            low_confidence=True,
            mahalanobis_distance=mahalanobis,
        )

    if method == PcMethod.FOSTER_1992:
        pc = compute_pc_foster(miss_2d, cov_2d, hbr_km)
        samples = None
    elif method == PcMethod.MONTE_CARLO:
        pc = compute_pc_monte_carlo(rel_pos, rel_vel, cov_pos, hbr_km, n_samples=mc_samples, seed=mc_seed)
        samples = mc_samples
    else:
        raise ValueError(f"Unknown method: {method}")

    logger.debug("Pc computation complete: method=%s, Pc=%.2e", method.value, pc)
    return PcResult(
        probability=pc,
        method=method,
        combined_hard_body_radius_m=hard_body_radius_m,
        mahalanobis_distance=mahalanobis,
        samples=samples,
    )
