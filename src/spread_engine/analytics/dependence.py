"""
Dependence Modeling Module

Empirical-copula view of how two pricing-error series move together:

1. Rank-transform each series to pseudo-uniform marginals u = (rank+1)/(n+1)
2. Kendall's tau from pairwise concordance
3. Clayton shape parameter θ from a display heuristic
4. Clayton density c(u, v) and closed-form CDF level sets for contour plots

Clayton copula:
    C(u, v) = (u^-θ + v^-θ - 1)^(-1/θ)
    c(u, v) = (1 + θ) (uv)^(-1-θ) (u^-θ + v^-θ - 1)^(-2 - 1/θ)
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy import stats

from spread_engine.data.pairing import PairedSeries
from spread_engine.errors import NumericInstability, Outcome

logger = logging.getLogger(__name__)

MIN_DEPENDENCE_POINTS = 2
THETA_FLOOR = 0.01
THETA_SCALE = 20.0
BOUNDARY_EPS = 1e-7


@dataclass
class DependenceConfig:
    """Configuration for copula fitting and evaluation"""
    max_density: float = 10.0          # Display cap on c(u, v)
    boundary_eps: float = BOUNDARY_EPS  # u, v clamped to [eps, 1 - eps]
    kendall_warn_size: int = 500       # O(n²) concordance warning threshold


@dataclass(frozen=True, eq=False)
class CopulaFit:
    """Fitted Clayton copula with the marginals it was fitted on."""
    tau: float
    theta: float
    marginals_a: np.ndarray
    marginals_b: np.ndarray
    n_obs: int = 0
    status: Outcome = Outcome.OK

    @property
    def is_sufficient(self) -> bool:
        return self.status == Outcome.OK


ThetaLike = Union[float, CopulaFit, None]


def clayton_theta_heuristic(tau: float) -> float:
    """
    Clayton θ used for display: max(τ, 0.01) * 20.

    A visualisation convenience that keeps the density well behaved; it is
    not the copula-theory mapping θ = 2τ/(1-τ).
    """
    return max(tau, THETA_FLOOR) * THETA_SCALE


def _empty_marginals() -> np.ndarray:
    empty = np.array([], dtype=float)
    empty.flags.writeable = False
    return empty


def pseudo_observations(values: Sequence[float]) -> np.ndarray:
    """
    Rank-based marginals u = (rank + 1)/(n + 1), rank 0-based.

    Ties are broken by position in the input (stable ordinal ranks), so the
    earlier of two equal observations gets the lower rank.
    """
    x = np.asarray(values, dtype=float)
    n = len(x)
    if n == 0:
        return _empty_marginals()
    ranks = stats.rankdata(x, method='ordinal')  # 1-based
    u = ranks / (n + 1.0)
    u.flags.writeable = False
    return u


def kendall_tau(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Kendall's tau-a: (concordant - discordant) / (n(n-1)/2).

    Tied pairs count as neither. O(n²) in memory and time over the upper
    triangle, so intended for tens to a few hundred observations.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    n = len(x)
    if n != len(y):
        raise ValueError(f"Series lengths differ: {n} vs {len(y)}")
    if n < 2:
        return 0.0

    i, j = np.triu_indices(n, k=1)
    sign = np.sign((x[i] - x[j]) * (y[i] - y[j]))
    concordant = int(np.sum(sign > 0))
    discordant = int(np.sum(sign < 0))
    return (concordant - discordant) / (n * (n - 1) / 2.0)


class DependenceModel:
    """
    Empirical Clayton-copula fit for two paired error series

    The evaluators take θ explicitly, either as a float or as a CopulaFit.
    When omitted they fall back to the most recent fit on this instance, so
    a model shared across pairs should be given the pair's CopulaFit.
    """

    def __init__(self, config: Optional[DependenceConfig] = None):
        self.config = config or DependenceConfig()
        self.fit_result: Optional[CopulaFit] = None

    @property
    def theta(self) -> float:
        if self.fit_result is None or not self.fit_result.is_sufficient:
            raise ValueError("DependenceModel has no sufficient fit yet")
        return self.fit_result.theta

    def _resolve_theta(self, theta: ThetaLike) -> float:
        if theta is None:
            return self.theta
        if isinstance(theta, CopulaFit):
            if not theta.is_sufficient:
                raise ValueError(f"CopulaFit is {theta.status.value}, no usable theta")
            return theta.theta
        return float(theta)

    def fit(self, paired: PairedSeries) -> CopulaFit:
        """
        Fit marginals, Kendall's tau and θ to a paired series

        Args:
            paired: Aligned pair of error series

        Returns:
            CopulaFit (INSUFFICIENT_DATA when fewer than two observations)
        """
        return self.fit_arrays(paired.values_a, paired.values_b)

    def fit_arrays(self, values_a: Sequence[float], values_b: Sequence[float]) -> CopulaFit:
        a = np.asarray(values_a, dtype=float)
        b = np.asarray(values_b, dtype=float)
        n = len(a)

        if n != len(b):
            raise ValueError(f"Series lengths differ: {n} vs {len(b)}")

        if n < MIN_DEPENDENCE_POINTS:
            logger.warning(f"Copula fit needs {MIN_DEPENDENCE_POINTS} points, got {n}")
            empty = _empty_marginals()
            result = CopulaFit(
                tau=0.0, theta=clayton_theta_heuristic(0.0),
                marginals_a=empty, marginals_b=empty,
                n_obs=n, status=Outcome.INSUFFICIENT_DATA,
            )
            self.fit_result = result
            return result

        if n > self.config.kendall_warn_size:
            logger.warning(
                f"Kendall's tau on {n} points is O(n²); "
                f"beyond {self.config.kendall_warn_size} consider subsampling"
            )

        tau = kendall_tau(a, b)
        theta = clayton_theta_heuristic(tau)

        result = CopulaFit(
            tau=float(tau),
            theta=float(theta),
            marginals_a=pseudo_observations(a),
            marginals_b=pseudo_observations(b),
            n_obs=n,
        )
        logger.info(f"Copula fit: n={n} tau={tau:.4f} theta={theta:.4f}")
        self.fit_result = result
        return result

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def _clamp(self, x):
        eps = self.config.boundary_eps
        return np.clip(x, eps, 1 - eps)

    def _raw_density(self, u: float, v: float, theta: float) -> float:
        with np.errstate(all='ignore'):
            s = u ** (-theta) + v ** (-theta) - 1.0
            value = (1 + theta) * (u * v) ** (-1 - theta) * s ** (-2 - 1 / theta)
        if not np.isfinite(value):
            raise NumericInstability(f"density at u={u}, v={v}, theta={theta}")
        return float(value)

    def density(self, u: float, v: float, theta: ThetaLike = None) -> float:
        """
        Clayton copula density at (u, v), capped at max_density

        Non-finite intermediate results give 0 so one bad sample does not
        spoil a whole grid.
        """
        theta = self._resolve_theta(theta)
        u, v = np.float64(self._clamp(u)), np.float64(self._clamp(v))
        try:
            value = self._raw_density(u, v, theta)
        except NumericInstability as e:
            logger.debug(f"Unstable copula density: {e}")
            return 0.0
        return min(value, self.config.max_density)

    def density_grid(self, u: Sequence[float], v: Sequence[float],
                     theta: ThetaLike = None) -> np.ndarray:
        """Density on the mesh u x v; rows follow v, columns follow u."""
        theta = self._resolve_theta(theta)
        uu, vv = np.meshgrid(self._clamp(np.asarray(u, dtype=float)),
                             self._clamp(np.asarray(v, dtype=float)))
        with np.errstate(all='ignore'):
            s = uu ** (-theta) + vv ** (-theta) - 1.0
            grid = (1 + theta) * (uu * vv) ** (-1 - theta) * s ** (-2 - 1 / theta)
        unstable = ~np.isfinite(grid)
        if unstable.any():
            logger.debug(f"{int(unstable.sum())} unstable density cells set to 0")
        grid = np.where(unstable, 0.0, grid)
        return np.minimum(grid, self.config.max_density)

    def cdf(self, u: float, v: float, theta: ThetaLike = None) -> float:
        """Clayton copula C(u, v)."""
        theta = self._resolve_theta(theta)
        u, v = np.float64(self._clamp(u)), np.float64(self._clamp(v))
        with np.errstate(all='ignore'):
            value = (u ** (-theta) + v ** (-theta) - 1.0) ** (-1 / theta)
        return float(value) if np.isfinite(value) else 0.0

    def contour(self, level: float, u_grid: Sequence[float],
                theta: ThetaLike = None) -> List[Tuple[float, float]]:
        """
        Points (u, v) on the level set C(u, v) = level

        Solved in closed form: v = (level^-θ - u^-θ + 1)^(-1/θ). Solutions
        outside [0, 1] or non-finite are dropped.
        """
        theta = self._resolve_theta(theta)
        points = []
        if not (0 < level < 1):
            return points

        for u in u_grid:
            u = float(u)
            if not (0 < u <= 1):
                continue
            try:
                v = self._solve_level(level, u, theta)
            except NumericInstability:
                continue
            if 0.0 <= v <= 1.0:
                points.append((u, v))
        return points

    def contours(self, levels: Sequence[float], u_grid: Sequence[float],
                 theta: ThetaLike = None) -> Dict[float, List[Tuple[float, float]]]:
        """Contour points for several levels."""
        return {float(c): self.contour(c, u_grid, theta) for c in levels}

    @staticmethod
    def _solve_level(level: float, u: float, theta: float) -> float:
        level, u = np.float64(level), np.float64(u)
        with np.errstate(all='ignore'):
            base = level ** (-theta) - u ** (-theta) + 1.0
            v = base ** (-1.0 / theta) if base > 0 else np.nan
        if not np.isfinite(v):
            raise NumericInstability(f"no level-{level} solution at u={u}")
        return float(v)
