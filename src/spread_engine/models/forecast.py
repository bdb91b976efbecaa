"""
OU Forecast Module

Projects a calibrated Ornstein-Uhlenbeck process forward from the last
observation using its closed-form conditional moments:

    E[X_{t+iΔ} | X_t]   = μ + (X_t - μ) α^i
    Var[X_{t+iΔ} | X_t] = σ²/(2λ) (1 - α^{2i}),      α = exp(-λΔ)

Bands are mean ± z·sd with z = 1.96 (95% under normality) by default.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from spread_engine.errors import CalibrationDegenerate
from spread_engine.models.ou_calibration import OUParameters

logger = logging.getLogger(__name__)

LAMBDA_FACTOR_RANGE = (0.1, 2.0)
SIGMA_FACTOR_RANGE = (0.1, 1.5)


@dataclass
class ForecastConfig:
    """Configuration for OU forecasting"""
    # Horizon
    steps: int = 30
    step_days: Optional[float] = None  # None = calibration spacing

    # Band width
    confidence_multiplier: float = 1.96  # ≈ 95% two-sided

    # User sensitivity sliders
    lambda_factor: float = 1.0
    sigma_factor: float = 1.0

    def __post_init__(self):
        self.validate()

    def validate(self):
        """Validate ranges"""
        lo, hi = LAMBDA_FACTOR_RANGE
        if not (lo <= self.lambda_factor <= hi):
            raise ValueError(f"lambda_factor {self.lambda_factor} outside [{lo}, {hi}]")
        lo, hi = SIGMA_FACTOR_RANGE
        if not (lo <= self.sigma_factor <= hi):
            raise ValueError(f"sigma_factor {self.sigma_factor} outside [{lo}, {hi}]")
        if self.steps < 1:
            raise ValueError(f"steps must be >= 1, got {self.steps}")
        if self.confidence_multiplier <= 0:
            raise ValueError(f"confidence_multiplier must be positive, got {self.confidence_multiplier}")
        if self.step_days is not None and self.step_days <= 0:
            raise ValueError(f"step_days must be positive, got {self.step_days}")

    @classmethod
    def from_confidence(cls, confidence: float = 0.95, **kwargs) -> 'ForecastConfig':
        """Build a config whose multiplier is the two-sided normal quantile for `confidence`."""
        if not (0 < confidence < 1):
            raise ValueError(f"confidence must be in (0, 1), got {confidence}")
        z = float(stats.norm.ppf(1 - (1 - confidence) / 2))
        return cls(confidence_multiplier=z, **kwargs)


@dataclass(frozen=True)
class ForecastPoint:
    """Forecast at one future step."""
    timestamp: pd.Timestamp
    mean: float
    lower_bound: float
    upper_bound: float
    variance: float = 0.0


@dataclass(frozen=True)
class Forecast:
    """Full forward projection plus the inputs that produced it."""
    points: Tuple[ForecastPoint, ...]
    params: OUParameters
    confidence_multiplier: float
    step_days: float

    def __len__(self) -> int:
        return len(self.points)

    @property
    def means(self) -> np.ndarray:
        return np.array([p.mean for p in self.points])

    @property
    def variances(self) -> np.ndarray:
        return np.array([p.variance for p in self.points])

    def to_frame(self) -> pd.DataFrame:
        """DataFrame indexed by forecast timestamp."""
        return pd.DataFrame(
            {
                'mean': [p.mean for p in self.points],
                'lower': [p.lower_bound for p in self.points],
                'upper': [p.upper_bound for p in self.points],
                'variance': [p.variance for p in self.points],
            },
            index=pd.DatetimeIndex([p.timestamp for p in self.points], name='date'),
        )


class ForecastEngine:
    """
    Closed-form OU forecasts with confidence bands
    """

    def __init__(self, config: Optional[ForecastConfig] = None):
        self.config = config or ForecastConfig()

    def apply_factors(self, params: OUParameters) -> OUParameters:
        """Scale λ and σ by the configured sensitivity factors."""
        return params.scaled(self.config.lambda_factor, self.config.sigma_factor)

    def forecast(self, params: OUParameters, last_timestamp, last_value: float,
                 steps: Optional[int] = None, step_days: Optional[float] = None) -> Forecast:
        """
        Project the process forward

        Args:
            params: OU parameters, already scaled if sensitivity factors apply
            last_timestamp: Time of the last observation
            last_value: Last observed spread value
            steps: Number of steps K (default from config)
            step_days: Spacing between steps in days (default: config, then
                the calibration spacing)

        Returns:
            Forecast with K points

        Raises:
            CalibrationDegenerate: parameters are tagged degenerate, λ ≤ 0, or
                any input is non-finite.
        """
        params.require_valid()

        steps = self.config.steps if steps is None else int(steps)
        if steps < 1:
            raise ValueError(f"steps must be >= 1, got {steps}")

        if step_days is None:
            step_days = self.config.step_days if self.config.step_days is not None else params.delta_time

        lam, mu, sigma = params.lambda_, params.mu, params.sigma
        if not np.isfinite(lam) or lam <= 0:
            raise CalibrationDegenerate(f"non-positive mean reversion rate λ={lam}")
        if not (np.isfinite(mu) and np.isfinite(sigma) and np.isfinite(last_value)):
            raise CalibrationDegenerate("non-finite forecast input")
        if not np.isfinite(step_days) or step_days <= 0:
            raise CalibrationDegenerate(f"non-positive step spacing {step_days}")

        z = self.config.confidence_multiplier
        alpha = np.exp(-lam * step_days)
        stationary_var = sigma ** 2 / (2 * lam)

        i = np.arange(1, steps + 1)
        decay = alpha ** i
        means = mu + (last_value - mu) * decay
        variances = stationary_var * (1 - decay ** 2)
        bounds = z * np.sqrt(np.maximum(variances, 0.0))

        origin = pd.Timestamp(last_timestamp)
        offsets = pd.to_timedelta(i * step_days, unit='D')

        points = tuple(
            ForecastPoint(
                timestamp=origin + offset,
                mean=float(m),
                lower_bound=float(m - b),
                upper_bound=float(m + b),
                variance=float(v),
            )
            for offset, m, v, b in zip(offsets, means, variances, bounds)
        )

        logger.debug(
            f"Forecast {steps} steps of {step_days:.3f}d from {last_value:.4f}: "
            f"terminal mean {means[-1]:.4f}, stationary sd {np.sqrt(stationary_var):.4f}"
        )
        return Forecast(points=points, params=params, confidence_multiplier=z, step_days=float(step_days))
