"""
Stationarity Testing Module

First-order Dickey-Fuller style test for mean reversion of a spread:

    Δy_t = b * y_{t-1} + e_t

The t-statistic of b is compared against a single fixed threshold
(default -3.0). This is a lightweight screen, not a full ADF test with a
critical-value table; ``adf_reference`` runs the statsmodels ADF for a
rigorous cross-check.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

import numpy as np
from statsmodels.tsa.stattools import adfuller

from spread_engine.errors import Outcome

logger = logging.getLogger(__name__)

MIN_STATIONARITY_POINTS = 3
DEFAULT_THRESHOLD = -3.0


@dataclass
class StationarityConfig:
    """Configuration for the stationarity screen"""
    threshold: float = DEFAULT_THRESHOLD
    min_points: int = MIN_STATIONARITY_POINTS


@dataclass(frozen=True)
class StationarityResult:
    """Outcome of one stationarity test."""
    statistic: Optional[float]
    is_stationary: bool
    threshold: float
    n_obs: int = 0
    status: Outcome = Outcome.OK

    @property
    def is_sufficient(self) -> bool:
        return self.status != Outcome.INSUFFICIENT_DATA


class StationarityTester:
    """
    Dickey-Fuller style stationarity screen with a fixed threshold
    """

    def __init__(self, config: Optional[StationarityConfig] = None):
        self.config = config or StationarityConfig()

    @property
    def threshold(self) -> float:
        return self.config.threshold

    def test(self, values: Sequence[float]) -> StationarityResult:
        """
        Test a series for mean reversion

        Args:
            values: Numeric series y[0..n-1]

        Returns:
            StationarityResult. Fewer than 3 points gives
            Outcome.INSUFFICIENT_DATA; a constant lagged series gives
            is_stationary=False with no statistic.
        """
        y = np.asarray(values, dtype=float)
        n = len(y)

        min_points = max(self.config.min_points, MIN_STATIONARITY_POINTS)
        if n < min_points:
            logger.warning(f"Stationarity test needs {min_points} points, got {n}")
            return StationarityResult(
                statistic=None, is_stationary=False, threshold=self.threshold,
                n_obs=n, status=Outcome.INSUFFICIENT_DATA,
            )

        lagged = y[:-1]
        delta = np.diff(y)

        lag_dev = lagged - lagged.mean()
        delta_dev = delta - delta.mean()
        sxx = float(np.sum(lag_dev ** 2))

        if not np.isfinite(sxx) or sxx <= 0.0:
            logger.debug("Constant lagged series, no regression possible")
            return StationarityResult(
                statistic=None, is_stationary=False, threshold=self.threshold, n_obs=n,
            )

        slope = float(np.sum(lag_dev * delta_dev)) / sxx

        # Residuals of the no-intercept model
        residuals = delta - slope * lagged
        s2 = float(np.sum(residuals ** 2)) / (n - 2)
        se = np.sqrt(s2 / sxx)

        if not np.isfinite(se) or se <= 0.0:
            logger.debug(f"Degenerate standard error (s2={s2})")
            return StationarityResult(
                statistic=None, is_stationary=False, threshold=self.threshold, n_obs=n,
            )

        statistic = slope / se
        result = StationarityResult(
            statistic=float(statistic),
            is_stationary=bool(statistic < self.threshold),
            threshold=self.threshold,
            n_obs=n,
        )
        logger.debug(f"DF statistic {statistic:.4f} vs {self.threshold} (n={n})")
        return result


def adf_reference(values: Sequence[float], maxlag: Optional[int] = None,
                  regression: str = 'c') -> Dict:
    """
    Full Augmented Dickey-Fuller test from statsmodels.

    Reported alongside the screen for diagnostics only; it never drives the
    stationarity verdict.

    Returns:
        Dict with statistic, pvalue, used_lag, n_obs and critical_values,
        or an empty dict when the series is too short or constant.
    """
    y = np.asarray(values, dtype=float)
    y = y[np.isfinite(y)]

    if len(y) < 10 or np.ptp(y) == 0:
        return {}

    try:
        stat, pvalue, used_lag, n_obs, crit, _ = adfuller(y, maxlag=maxlag, regression=regression)
    except (ValueError, np.linalg.LinAlgError) as e:
        logger.warning(f"statsmodels ADF failed: {e}")
        return {}

    return {
        'statistic': float(stat),
        'pvalue': float(pvalue),
        'used_lag': int(used_lag),
        'n_obs': int(n_obs),
        'critical_values': {k: float(v) for k, v in crit.items()},
    }
