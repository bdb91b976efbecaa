"""
Series Pairing Module

Aligns two per-instrument pricing-error series into a single date-keyed
paired series (inner join on calendar date). Sub-day resolution is
discarded: every key is normalised to midnight before joining, and when two
keys collapse onto the same date the later one in input order wins.
"""

import logging
from dataclasses import dataclass
from typing import Mapping, Tuple

import numpy as np
import pandas as pd

from spread_engine.errors import Outcome

logger = logging.getLogger(__name__)

MIN_PAIRED_POINTS = 2


@dataclass(frozen=True)
class TimePoint:
    """Single observation of one series."""
    timestamp: pd.Timestamp
    value: float


@dataclass(frozen=True)
class PairedPoint:
    """Observation present in both series on the same date."""
    timestamp: pd.Timestamp
    value_a: float
    value_b: float

    @property
    def difference(self) -> float:
        return self.value_a - self.value_b


@dataclass(frozen=True)
class PairedSeries:
    """Ascending, date-aligned pair of error series."""
    points: Tuple[PairedPoint, ...] = ()
    status: Outcome = Outcome.OK

    def __len__(self) -> int:
        return len(self.points)

    @property
    def is_sufficient(self) -> bool:
        return self.status == Outcome.OK

    @property
    def timestamps(self) -> Tuple[pd.Timestamp, ...]:
        return tuple(p.timestamp for p in self.points)

    @property
    def values_a(self) -> np.ndarray:
        return _readonly([p.value_a for p in self.points])

    @property
    def values_b(self) -> np.ndarray:
        return _readonly([p.value_b for p in self.points])

    @property
    def differences(self) -> np.ndarray:
        """value_a - value_b per date; the series fed to the OU model."""
        return _readonly([p.difference for p in self.points])

    def last_difference(self) -> TimePoint:
        if not self.points:
            raise IndexError("PairedSeries is empty")
        last = self.points[-1]
        return TimePoint(timestamp=last.timestamp, value=last.difference)

    def to_frame(self) -> pd.DataFrame:
        """DataFrame view indexed by date with value_a, value_b, difference columns."""
        return pd.DataFrame(
            {
                'value_a': [p.value_a for p in self.points],
                'value_b': [p.value_b for p in self.points],
                'difference': [p.difference for p in self.points],
            },
            index=pd.DatetimeIndex([p.timestamp for p in self.points], name='date'),
        )


def _readonly(values) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    arr.flags.writeable = False
    return arr


def _to_daily_series(series: Mapping) -> pd.Series:
    """Mapping of date-like keys -> float, as a date-normalised pandas Series."""
    if isinstance(series, pd.Series):
        s = series.copy()
    else:
        s = pd.Series(dict(series), dtype=float)

    if s.empty:
        return pd.Series(dtype=float)

    s.index = pd.DatetimeIndex(pd.to_datetime(s.index)).normalize()
    s = pd.to_numeric(s, errors='coerce').astype(float)
    s = s[np.isfinite(s.values)]

    # Last write wins when several timestamps fall on the same day
    return s.groupby(level=0).last()


def pair_series(series_a: Mapping, series_b: Mapping) -> PairedSeries:
    """
    Inner-join two date -> error maps into a PairedSeries.

    Args:
        series_a: Mapping (or pandas Series) of date-like key to error value
        series_b: Same for the second instrument

    Returns:
        PairedSeries sorted ascending. If fewer than two common dates exist
        the result carries Outcome.INSUFFICIENT_DATA and no points.
    """
    a = _to_daily_series(series_a)
    b = _to_daily_series(series_b)

    joined = pd.concat({'a': a, 'b': b}, axis=1, join='inner').sort_index()

    if len(joined) < MIN_PAIRED_POINTS:
        logger.warning(
            f"Only {len(joined)} common dates between series "
            f"({len(a)} vs {len(b)} points), need {MIN_PAIRED_POINTS}"
        )
        return PairedSeries(points=(), status=Outcome.INSUFFICIENT_DATA)

    points = tuple(
        PairedPoint(timestamp=ts, value_a=float(row.a), value_b=float(row.b))
        for ts, row in zip(joined.index, joined.itertuples(index=False))
    )
    logger.debug(f"Paired {len(points)} dates from {joined.index[0].date()} to {joined.index[-1].date()}")
    return PairedSeries(points=points, status=Outcome.OK)


def pair_frame(df_a: pd.DataFrame, df_b: pd.DataFrame, column: str = 'value') -> PairedSeries:
    """Pair two DataFrames on their date index using a single value column."""
    return pair_series(df_a[column], df_b[column])
