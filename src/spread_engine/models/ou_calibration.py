"""
Ornstein-Uhlenbeck Calibration Module

Fits dX = λ(μ - X)dt + σdW to a spread sampled at (roughly) regular
intervals through its exact AR(1) discretisation:

    X_{t+Δt} = α X_t + (1 - α) μ + ε_t,    α = exp(-λ Δt)

Conditional least squares on consecutive pairs gives α̂, from which

    λ = -ln(α̂) / Δt
    μ = Σ(X_{t+1} - α̂ X_t) / ((n-1)(1 - α̂))
    σ² = 2λ / (1 - α̂²) * mean(residual²)

A non-positive α̂ has no OU counterpart (λ undefined); the result is then
tagged CALIBRATION_DEGENERATE instead of carrying NaNs.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from spread_engine.errors import CalibrationDegenerate, InsufficientData, Outcome

logger = logging.getLogger(__name__)

MIN_CALIBRATION_POINTS = 2
ALPHA_CLAMP = 0.9999999
SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True)
class OUParameters:
    """Ornstein-Uhlenbeck process parameters (per-day units)."""
    lambda_: float          # Mean reversion rate (1/day)
    mu: float               # Long-run mean
    sigma: float            # Diffusion volatility (per sqrt(day))
    delta_time: float       # Average spacing of the calibration series (days)
    alpha: float = np.nan   # Fitted AR(1) coefficient
    n_obs: int = 0
    status: Outcome = Outcome.OK
    reason: str = ""

    @property
    def valid(self) -> bool:
        return self.status == Outcome.OK

    @property
    def half_life(self) -> float:
        """Half-life of mean reversion in days (inf when λ ≤ 0)."""
        if not self.valid or self.lambda_ <= 0:
            return np.inf
        return np.log(2) / self.lambda_

    @property
    def stationary_variance(self) -> float:
        """σ²/(2λ), the variance the process settles to."""
        if not self.valid or self.lambda_ <= 0:
            return np.nan
        return self.sigma ** 2 / (2 * self.lambda_)

    @property
    def stationary_std(self) -> float:
        return float(np.sqrt(self.stationary_variance))

    def zscore(self, value: float) -> float:
        """Distance of a spread level from μ in stationary standard deviations."""
        std = self.stationary_std
        if not np.isfinite(std) or std == 0:
            return np.nan
        return (value - self.mu) / std

    def scaled(self, lambda_factor: float = 1.0, sigma_factor: float = 1.0) -> 'OUParameters':
        """Copy with λ and σ multiplied by user sensitivity factors."""
        return replace(self, lambda_=self.lambda_ * lambda_factor, sigma=self.sigma * sigma_factor)

    def require_valid(self) -> 'OUParameters':
        """Return self, or raise the exception matching the status tag."""
        if self.status == Outcome.INSUFFICIENT_DATA:
            raise InsufficientData(MIN_CALIBRATION_POINTS, self.n_obs, 'OU calibration')
        if self.status == Outcome.CALIBRATION_DEGENERATE:
            raise CalibrationDegenerate(self.reason)
        return self


def _degenerate(reason: str, n: int, delta_time: float = np.nan, alpha: float = np.nan) -> OUParameters:
    logger.warning(f"OU calibration degenerate: {reason}")
    return OUParameters(
        lambda_=np.nan, mu=np.nan, sigma=np.nan, delta_time=delta_time,
        alpha=alpha, n_obs=n, status=Outcome.CALIBRATION_DEGENERATE, reason=reason,
    )


def average_spacing_days(timestamps: Sequence) -> float:
    """(t_last - t_first) / (n - 1) in days."""
    ts = pd.DatetimeIndex(pd.to_datetime(list(timestamps)))
    if len(ts) < 2:
        return np.nan
    span = (ts[-1] - ts[0]).total_seconds() / SECONDS_PER_DAY
    return span / (len(ts) - 1)


class OUCalibrator:
    """
    Conditional least squares OU calibration
    """

    def calibrate(self, values: Sequence[float], timestamps: Optional[Sequence] = None,
                  delta_time: Optional[float] = None) -> OUParameters:
        """
        Calibrate OU parameters to a series

        Args:
            values: Spread values y[0..n-1] in time order
            timestamps: Observation times, used to derive Δt in days
            delta_time: Explicit Δt in days (overrides timestamps; default 1.0)

        Returns:
            OUParameters, tagged INSUFFICIENT_DATA or CALIBRATION_DEGENERATE
            when no usable fit exists.
        """
        y = np.asarray(values, dtype=float)
        n = len(y)

        if n < MIN_CALIBRATION_POINTS:
            logger.warning(f"OU calibration needs {MIN_CALIBRATION_POINTS} points, got {n}")
            return OUParameters(
                lambda_=np.nan, mu=np.nan, sigma=np.nan, delta_time=np.nan,
                n_obs=n, status=Outcome.INSUFFICIENT_DATA, reason='insufficient_data',
            )

        if not np.all(np.isfinite(y)):
            return _degenerate('non_finite_input', n)

        # 1. Δt
        if delta_time is not None:
            dt = float(delta_time)
        elif timestamps is not None:
            if len(timestamps) != n:
                raise ValueError(f"Got {len(timestamps)} timestamps for {n} values")
            dt = average_spacing_days(timestamps)
        else:
            dt = 1.0

        if not np.isfinite(dt) or dt <= 0:
            return _degenerate('non_positive_spacing', n, delta_time=dt)

        # 2. AR(1) coefficient
        y_prev = y[:-1]
        y_next = y[1:]
        y_bar = y.mean()
        denom = float(np.sum((y_prev - y_bar) ** 2))

        if denom <= 0.0:
            return _degenerate('zero_variance', n, delta_time=dt)

        alpha = float(np.sum((y_next - y_bar) * (y_prev - y_bar))) / denom
        alpha = float(np.clip(alpha, -ALPHA_CLAMP, ALPHA_CLAMP))

        if alpha <= 0.0:
            return _degenerate('non_positive_ar_coefficient', n, delta_time=dt, alpha=alpha)

        # 3. Mean reversion rate
        lambda_ = -np.log(alpha) / dt

        # 4. Long-run mean
        mu = float(np.sum(y_next - alpha * y_prev)) / ((n - 1) * (1 - alpha))

        # 5. Volatility from the AR(1) residuals
        residuals = y_next - alpha * y_prev - (1 - alpha) * mu
        sigma2 = (2 * lambda_) / (1 - alpha ** 2) * float(np.mean(residuals ** 2))
        sigma = float(np.sqrt(max(sigma2, 0.0)))

        if not (np.isfinite(lambda_) and np.isfinite(sigma) and np.isfinite(mu)):
            return _degenerate('non_finite_estimate', n, delta_time=dt, alpha=alpha)

        params = OUParameters(
            lambda_=float(lambda_), mu=mu, sigma=sigma, delta_time=dt,
            alpha=alpha, n_obs=n,
        )
        logger.debug(
            f"OU fit: λ={params.lambda_:.4f}/day μ={params.mu:.4f} σ={params.sigma:.4f} "
            f"α={alpha:.4f} Δt={dt:.3f}d half-life={params.half_life:.1f}d"
        )
        return params
