"""
Spread analysis pipeline: pairing, stationarity screen, OU calibration,
forecast and copula dependence for one instrument pair.

    pair_series → StationarityTester → (stationary) OUCalibrator → ForecastEngine
    pair_series → DependenceModel   (on request)

Every call builds fresh, immutable results; nothing already returned is
updated in place.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Hashable, Mapping, Optional, Tuple

from spread_engine.analytics.dependence import CopulaFit, DependenceConfig, DependenceModel
from spread_engine.analytics.stationarity import (
    StationarityConfig,
    StationarityResult,
    StationarityTester,
)
from spread_engine.data.pairing import PairedSeries, pair_series
from spread_engine.errors import Outcome
from spread_engine.models.forecast import Forecast, ForecastConfig, ForecastEngine
from spread_engine.models.ou_calibration import OUCalibrator, OUParameters

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """Top-level engine configuration"""
    stationarity: StationarityConfig = field(default_factory=StationarityConfig)
    forecast: ForecastConfig = field(default_factory=ForecastConfig)
    dependence: DependenceConfig = field(default_factory=DependenceConfig)

    # Memoise StationarityResult per pair id (reused only for an identical snapshot)
    cache_stationarity: bool = False

    # Calibrate and forecast even when the screen says non-stationary
    forecast_non_stationary: bool = False


@dataclass(frozen=True)
class SpreadAnalysis:
    """Everything computed for one pair in one pass."""
    pair_id: Hashable
    paired: PairedSeries
    stationarity: Optional[StationarityResult] = None
    params: Optional[OUParameters] = None
    scaled_params: Optional[OUParameters] = None
    forecast: Optional[Forecast] = None
    status: Outcome = Outcome.OK

    @property
    def has_forecast(self) -> bool:
        return self.forecast is not None


class SpreadAnalyzer:
    """
    Runs the full spread analysis for instrument pairs
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.tester = StationarityTester(self.config.stationarity)
        self.calibrator = OUCalibrator()
        self.forecaster = ForecastEngine(self.config.forecast)
        self._stationarity_cache: Dict[Hashable, Tuple[Tuple, StationarityResult]] = {}

    def clear_cache(self) -> None:
        self._stationarity_cache.clear()

    def _fingerprint(self, paired: PairedSeries) -> Tuple:
        """Identity of the tested input: dates, spread values and threshold."""
        return (paired.timestamps, paired.differences.tobytes(), self.tester.threshold)

    def _stationarity(self, pair_id: Hashable, paired: PairedSeries) -> StationarityResult:
        fingerprint = self._fingerprint(paired) if self.config.cache_stationarity else None

        if fingerprint is not None and pair_id in self._stationarity_cache:
            cached_fingerprint, cached = self._stationarity_cache[pair_id]
            if cached_fingerprint == fingerprint:
                logger.debug(f"Stationarity cache hit for {pair_id}")
                return cached
            logger.debug(f"New snapshot for {pair_id}, retesting")

        result = self.tester.test(paired.differences)
        if fingerprint is not None:
            self._stationarity_cache[pair_id] = (fingerprint, result)
        return result

    def analyze(self, pair_id: Hashable, series_a: Mapping, series_b: Mapping,
                forecast_config: Optional[ForecastConfig] = None) -> SpreadAnalysis:
        """
        Analyze one pair of error series

        Args:
            pair_id: Identifier of the selected pair (cache key)
            series_a: date -> error map for the first instrument
            series_b: date -> error map for the second instrument
            forecast_config: Override of horizon / multiplier / sensitivity factors

        Returns:
            SpreadAnalysis. Stages after a failed one are left as None and the
            status names the first failure.
        """
        paired = pair_series(series_a, series_b)
        if not paired.is_sufficient:
            logger.warning(f"{pair_id}: insufficient paired data")
            return SpreadAnalysis(pair_id=pair_id, paired=paired, status=Outcome.INSUFFICIENT_DATA)

        stationarity = self._stationarity(pair_id, paired)
        if not stationarity.is_sufficient:
            return SpreadAnalysis(
                pair_id=pair_id, paired=paired, stationarity=stationarity,
                status=Outcome.INSUFFICIENT_DATA,
            )

        if not stationarity.is_stationary and not self.config.forecast_non_stationary:
            logger.info(f"{pair_id}: spread not stationary (stat={stationarity.statistic}), no forecast")
            return SpreadAnalysis(pair_id=pair_id, paired=paired, stationarity=stationarity)

        params = self.calibrator.calibrate(paired.differences, paired.timestamps)
        if not params.valid:
            logger.warning(f"{pair_id}: calibration {params.status.value} ({params.reason})")
            return SpreadAnalysis(
                pair_id=pair_id, paired=paired, stationarity=stationarity,
                params=params, status=params.status,
            )

        forecaster = ForecastEngine(forecast_config) if forecast_config is not None else self.forecaster
        scaled = forecaster.apply_factors(params)
        last = paired.last_difference()
        forecast = forecaster.forecast(scaled, last.timestamp, last.value)

        logger.info(
            f"{pair_id}: λ={params.lambda_:.4f} μ={params.mu:.4f} σ={params.sigma:.4f} "
            f"half-life={params.half_life:.1f}d, {len(forecast)}-step forecast"
        )
        return SpreadAnalysis(
            pair_id=pair_id, paired=paired, stationarity=stationarity,
            params=params, scaled_params=scaled, forecast=forecast,
        )

    def dependence(self, pair_id: Hashable, series_a: Mapping, series_b: Mapping) -> CopulaFit:
        """Copula dependence fit for one pair."""
        paired = pair_series(series_a, series_b)
        model = DependenceModel(self.config.dependence)
        fit = model.fit(paired)
        logger.debug(f"{pair_id}: copula status {fit.status.value}")
        return fit
