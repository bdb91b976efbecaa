# tests/conftest.py
from __future__ import annotations

import numpy as np
import pandas as pd
import pytest


SCENARIO_SPREAD = [0.0, 1.0, -0.5, 0.4, -0.2, 0.3, -0.1]


def simulate_ou(lambda_: float, mu: float, sigma: float, n: int,
                dt: float = 1.0, x0: float | None = None, seed: int = 42) -> np.ndarray:
    """Exact discretisation of an OU path."""
    rng = np.random.default_rng(seed)
    alpha = np.exp(-lambda_ * dt)
    sd = sigma / np.sqrt(2 * lambda_)
    step_sd = sd * np.sqrt(1 - alpha ** 2)

    x = np.empty(n)
    x[0] = mu if x0 is None else x0
    shocks = rng.standard_normal(n - 1) * step_sd
    for t in range(1, n):
        x[t] = mu + (x[t - 1] - mu) * alpha + shocks[t - 1]
    return x


def date_map(values, start: str = "2024-01-01", freq: str = "D") -> dict:
    dates = pd.date_range(start, periods=len(values), freq=freq)
    return {d: float(v) for d, v in zip(dates, values)}


@pytest.fixture
def ou_path():
    return simulate_ou


@pytest.fixture
def scenario_spread() -> list[float]:
    return list(SCENARIO_SPREAD)


@pytest.fixture
def stationary_pair():
    """(series_a, series_b) whose difference is a mean-reverting OU path around 0."""
    spread = simulate_ou(lambda_=0.3, mu=0.0, sigma=0.1, n=250, seed=7)
    rng = np.random.default_rng(11)
    base = rng.normal(0.0, 0.05, size=len(spread))
    return date_map(base + spread), date_map(base)


@pytest.fixture
def trending_pair():
    """(series_a, series_b) whose difference is a straight line."""
    n = 60
    a = np.linspace(0.0, 5.0, n)
    return date_map(a), date_map(np.zeros(n))
