from __future__ import annotations

import datetime as dt

import numpy as np
import pandas as pd
import pytest

from spread_engine.data.pairing import PairedSeries, TimePoint, pair_frame, pair_series
from spread_engine.errors import Outcome


def test_inner_join_keeps_common_dates_sorted():
    a = {"2024-01-03": 3.0, "2024-01-01": 1.0, "2024-01-02": 2.0, "2024-01-05": 5.0}
    b = {"2024-01-02": 0.5, "2024-01-03": 1.0, "2024-01-01": 0.25, "2024-01-04": 9.0}

    paired = pair_series(a, b)

    assert paired.status == Outcome.OK
    assert paired.timestamps == tuple(pd.to_datetime(["2024-01-01", "2024-01-02", "2024-01-03"]))
    np.testing.assert_allclose(paired.values_a, [1.0, 2.0, 3.0])
    np.testing.assert_allclose(paired.values_b, [0.25, 0.5, 1.0])
    np.testing.assert_allclose(paired.differences, [0.75, 1.5, 2.0])


def test_sub_day_resolution_is_discarded():
    a = {pd.Timestamp("2024-01-01 09:30"): 1.0, pd.Timestamp("2024-01-02 16:00"): 2.0}
    b = {dt.date(2024, 1, 1): 0.0, dt.date(2024, 1, 2): 1.0}

    paired = pair_series(a, b)

    assert len(paired) == 2
    assert all(ts == ts.normalize() for ts in paired.timestamps)


def test_same_day_duplicates_last_write_wins():
    a = {
        pd.Timestamp("2024-01-01 09:00"): 1.0,
        pd.Timestamp("2024-01-01 17:00"): 4.0,
        pd.Timestamp("2024-01-02 09:00"): 2.0,
    }
    b = {"2024-01-01": 0.0, "2024-01-02": 0.0}

    paired = pair_series(a, b)

    np.testing.assert_allclose(paired.values_a, [4.0, 2.0])


@pytest.mark.parametrize(
    "a, b",
    [
        ({}, {}),
        ({"2024-01-01": 1.0}, {"2024-01-01": 2.0}),
        ({"2024-01-01": 1.0, "2024-01-02": 1.0}, {"2024-01-03": 2.0, "2024-01-04": 2.0}),
    ],
)
def test_fewer_than_two_common_dates_is_insufficient(a, b):
    paired = pair_series(a, b)

    assert paired.status == Outcome.INSUFFICIENT_DATA
    assert not paired.is_sufficient
    assert len(paired) == 0


def test_non_finite_values_are_dropped():
    a = {"2024-01-01": 1.0, "2024-01-02": np.nan, "2024-01-03": 3.0}
    b = {"2024-01-01": 0.0, "2024-01-02": 0.0, "2024-01-03": np.inf}

    paired = pair_series(a, b)

    assert paired.status == Outcome.INSUFFICIENT_DATA


def test_result_arrays_are_read_only():
    paired = pair_series({"2024-01-01": 1.0, "2024-01-02": 2.0},
                         {"2024-01-01": 0.0, "2024-01-02": 0.5})

    with pytest.raises(ValueError):
        paired.differences[0] = 99.0


def test_last_difference_and_frame_view():
    paired = pair_series({"2024-01-01": 1.0, "2024-01-02": 2.0},
                         {"2024-01-01": 0.0, "2024-01-02": 0.5})

    assert paired.last_difference() == TimePoint(pd.Timestamp("2024-01-02"), 1.5)

    frame = paired.to_frame()
    assert list(frame.columns) == ["value_a", "value_b", "difference"]
    assert frame["difference"].tolist() == [1.0, 1.5]


def test_last_difference_on_empty_series_raises():
    with pytest.raises(IndexError):
        PairedSeries().last_difference()


def test_pair_frame_uses_value_column():
    idx = pd.date_range("2024-01-01", periods=3)
    df_a = pd.DataFrame({"value": [1.0, 2.0, 3.0]}, index=idx)
    df_b = pd.DataFrame({"value": [1.0, 1.0, 1.0]}, index=idx)

    paired = pair_frame(df_a, df_b)

    np.testing.assert_allclose(paired.differences, [0.0, 1.0, 2.0])
