"""
Configuration Management Module

Loads and validates engine configuration from a YAML file.
Provides easy access to all stationarity, forecast and copula parameters.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional


class ConfigLoader:
    """
    Configuration loader with validation and easy access
    """

    REQUIRED_SECTIONS = ['stationarity', 'forecast', 'dependence']

    def __init__(self, config_path: Optional[Path] = None):
        """
        Load configuration from YAML file

        Args:
            config_path: Path to config.yaml (default: project_root/config.yaml)
        """
        if config_path is None:
            # Default: config.yaml in project root (src/spread_engine/ → project/)
            current_file = Path(__file__)
            project_root = current_file.parent.parent.parent
            config_path = project_root / 'config.yaml'

        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, 'r') as f:
            self.config = yaml.safe_load(f) or {}

        self._validate()

    @classmethod
    def from_dict(cls, config: Dict) -> 'ConfigLoader':
        """Build a loader around an already-parsed mapping"""
        loader = cls.__new__(cls)
        loader.config = dict(config)
        loader._validate()
        return loader

    def _validate(self):
        """Validate configuration"""
        for section in self.REQUIRED_SECTIONS:
            if section not in self.config:
                raise ValueError(f"Missing required config section: {section}")

    def get(self, path: str, default: Any = None) -> Any:
        """
        Get config value by dot-separated path

        Args:
            path: Dot-separated path (e.g., 'forecast.factors.lambda')
            default: Default value if not found

        Returns:
            Config value
        """
        keys = path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    # Convenience methods for common config sections

    @property
    def stationarity(self) -> Dict:
        """Stationarity screen configuration"""
        return self.config['stationarity']

    @property
    def forecast(self) -> Dict:
        """Forecast configuration"""
        return self.config['forecast']

    @property
    def dependence(self) -> Dict:
        """Copula configuration"""
        return self.config['dependence']

    @property
    def logging(self) -> Dict:
        """Logging configuration"""
        return self.config.get('logging', {})

    def to_stationarity_config(self):
        """
        Convert to StationarityConfig dataclass

        Returns:
            StationarityConfig instance
        """
        from spread_engine.analytics.stationarity import StationarityConfig

        return StationarityConfig(
            threshold=float(self.get('stationarity.threshold', -3.0)),
            min_points=int(self.get('stationarity.min_points', 3)),
        )

    def to_forecast_config(self):
        """
        Convert to ForecastConfig dataclass (validates factor ranges)

        Returns:
            ForecastConfig instance
        """
        from spread_engine.models.forecast import ForecastConfig

        step_days = self.get('forecast.step_days')
        confidence = self.get('forecast.confidence')

        kwargs = dict(
            steps=int(self.get('forecast.steps', 30)),
            step_days=float(step_days) if step_days is not None else None,
            lambda_factor=float(self.get('forecast.factors.lambda', 1.0)),
            sigma_factor=float(self.get('forecast.factors.sigma', 1.0)),
        )

        # Either a coverage level or an explicit multiplier
        if confidence is not None:
            return ForecastConfig.from_confidence(float(confidence), **kwargs)

        return ForecastConfig(
            confidence_multiplier=float(self.get('forecast.confidence_multiplier', 1.96)),
            **kwargs
        )

    def to_dependence_config(self):
        """
        Convert to DependenceConfig dataclass

        Returns:
            DependenceConfig instance
        """
        from spread_engine.analytics.dependence import DependenceConfig

        return DependenceConfig(
            max_density=float(self.get('dependence.max_density', 10.0)),
            boundary_eps=float(self.get('dependence.boundary_eps', 1e-7)),
            kendall_warn_size=int(self.get('dependence.kendall_warn_size', 500)),
        )

    def to_engine_config(self):
        """
        Convert to EngineConfig dataclass

        Returns:
            EngineConfig instance
        """
        from spread_engine.pipeline import EngineConfig

        return EngineConfig(
            stationarity=self.to_stationarity_config(),
            forecast=self.to_forecast_config(),
            dependence=self.to_dependence_config(),
            cache_stationarity=bool(self.get('engine.cache_stationarity', False)),
            forecast_non_stationary=bool(self.get('engine.forecast_non_stationary', False)),
        )
