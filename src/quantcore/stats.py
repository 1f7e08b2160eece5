"""Descriptive statistics of return series.

Every moment function takes an ``axis`` (default: last) so the same code
serves a single series and a ``(n_resamples, n)`` block of bootstrap draws.
Degenerate samples follow one convention throughout: skewness is 0 for
``n < 3``, excess kurtosis is 0 for ``n < 4``, and both are 0 when all
observations are identical.
"""

from __future__ import annotations

import numpy as np
from dataclasses import dataclass

from .errors import InvalidInput, InsufficientData

__all__ = [
    "ReturnStatistics",
    "as_return_series",
    "mean",
    "std_dev",
    "skewness",
    "excess_kurtosis",
    "summarize",
    "calculate_returns",
    "portfolio_returns",
]


def _out(v: np.ndarray):
    return float(v) if np.ndim(v) == 0 else v


def _zeros_without(x: np.ndarray, axis: int) -> np.ndarray:
    axis = axis % x.ndim
    return np.zeros(tuple(d for i, d in enumerate(x.shape) if i != axis))


def as_return_series(returns, *, name: str = "returns") -> np.ndarray:
    """Validate and convert to a 1-D float array of at least two finite values."""
    try:
        x = np.asarray(returns, dtype=float)
    except (TypeError, ValueError):
        raise InvalidInput(f"{name} must be a sequence of numbers") from None
    if x.ndim != 1:
        raise InvalidInput(f"{name} must be one-dimensional, got shape {x.shape}")
    if not np.all(np.isfinite(x)):
        bad = int(np.flatnonzero(~np.isfinite(x))[0])
        raise InvalidInput(f"{name}[{bad}] must be finite, got {x[bad]}")
    if x.size < 2:
        raise InsufficientData(f"{name} needs at least 2 observations, got {x.size}")
    return x


# ---------------------------------------------------------------------------
# Moments
# ---------------------------------------------------------------------------

def mean(x, axis: int = -1):
    return _out(np.mean(np.asarray(x, dtype=float), axis=axis))


def std_dev(x, axis: int = -1):
    """Sample standard deviation with a ``max(1, n - 1)`` denominator."""
    x = np.asarray(x, dtype=float)
    n = x.shape[axis]
    dev = x - x.mean(axis=axis, keepdims=True)
    return _out(np.sqrt((dev * dev).sum(axis=axis) / max(1, n - 1)))


def _standardized_power_sum(x: np.ndarray, axis: int, power: int):
    """``sum(((x - mean) / s) ** power)`` and a mask of constant samples."""
    n = x.shape[axis]
    dev = x - x.mean(axis=axis, keepdims=True)
    s = np.sqrt((dev * dev).sum(axis=axis, keepdims=True) / max(1, n - 1))
    flat = np.ptp(x, axis=axis) == 0
    z = np.where(s > 0, dev / np.where(s > 0, s, 1.0), 0.0)
    return (z ** power).sum(axis=axis), flat


def skewness(x, axis: int = -1):
    """Adjusted Fisher-Pearson sample skewness ``G1``."""
    x = np.asarray(x, dtype=float)
    n = x.shape[axis]
    if n < 3:
        return _out(_zeros_without(x, axis))
    s3, flat = _standardized_power_sum(x, axis, 3)
    g1 = n / ((n - 1) * (n - 2)) * s3
    return _out(np.where(flat, 0.0, g1))


def excess_kurtosis(x, axis: int = -1):
    """Unbiased sample excess kurtosis ``G2`` (normal distribution -> 0)."""
    x = np.asarray(x, dtype=float)
    n = x.shape[axis]
    if n < 4:
        return _out(_zeros_without(x, axis))
    s4, flat = _standardized_power_sum(x, axis, 4)
    g2 = (n * (n + 1) * s4 / ((n - 1) * (n - 2) * (n - 3))
          - 3.0 * (n - 1) ** 2 / ((n - 2) * (n - 3)))
    return _out(np.where(flat, 0.0, g2))


@dataclass(frozen=True)
class ReturnStatistics:
    n: int
    mean: float
    std_dev: float
    skewness: float
    excess_kurtosis: float


def summarize(returns) -> ReturnStatistics:
    x = as_return_series(returns)
    return ReturnStatistics(
        n=int(x.size),
        mean=mean(x),
        std_dev=std_dev(x),
        skewness=skewness(x),
        excess_kurtosis=excess_kurtosis(x),
    )


# ---------------------------------------------------------------------------
# Building return series from prices
# ---------------------------------------------------------------------------

def calculate_returns(prices, method: str = "log") -> np.ndarray:
    """Periodic returns from a price series.

    Parameters
    ----------
    prices : array-like, shape (n,)
        Strictly positive prices, oldest first.
    method : str
        ``"log"`` (default) or ``"simple"``.

    Returns
    -------
    ndarray, shape (n - 1,)
    """
    p = as_return_series(prices, name="prices")
    if np.any(p <= 0):
        raise InvalidInput("prices must be strictly positive")
    if method == "log":
        return np.diff(np.log(p))
    if method == "simple":
        return p[1:] / p[:-1] - 1.0
    raise InvalidInput(f"method must be 'log' or 'simple', got {method!r}")


def portfolio_returns(
    prices_by_symbol: dict[str, list[float]],
    weights_by_symbol: dict[str, float],
    method: str = "log",
) -> np.ndarray:
    """Weighted portfolio return series.

    Weights are normalised to sum to one; symbols missing from
    ``weights_by_symbol`` get weight 0. All price series must share one
    length.
    """
    if not prices_by_symbol:
        raise InvalidInput("no assets provided")
    symbols = list(prices_by_symbol)
    lengths = {len(prices_by_symbol[s]) for s in symbols}
    if len(lengths) != 1:
        raise InvalidInput("all price series must have the same length")

    weights = np.array([float(weights_by_symbol.get(s, 0.0)) for s in symbols])
    total = weights.sum()
    if not np.isfinite(total) or abs(total) < 1e-12:
        raise InvalidInput("weights must sum to a finite, non-zero value")
    weights = weights / total

    asset_returns = np.vstack(
        [calculate_returns(prices_by_symbol[s], method) for s in symbols]
    )
    return weights @ asset_returns
