"""Historical and bootstrap risk engine.

Provides historical Value-at-Risk and Expected Shortfall, the
Cornish-Fisher adjusted VaR, and a seedable bootstrap that attaches
confidence intervals to all three.  VaR and ES are reported as **positive**
loss fractions.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from . import config
from .errors import InvalidInput
from .normal import inv_cdf
from .stats import as_return_series, excess_kurtosis, skewness, std_dev

__all__ = [
    "BootstrapRequest",
    "RiskResult",
    "quantile",
    "historical_var",
    "expected_shortfall",
    "cornish_fisher_var",
    "bootstrap",
]

logger = logging.getLogger(__name__)

METRICS = ("var_hist", "es_hist", "var_cf")

# Resamples drawn per block; bounds memory at _CHUNK * n floats.
_CHUNK = 256

_MAX_SEED = 2 ** 64 - 1


# ---------------------------------------------------------------------------
# Request / result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BootstrapRequest:
    """One bootstrap computation.

    Parameters
    ----------
    returns : sequence of float
        Periodic returns, at least two.
    confidence : float
        VaR confidence level in ``(0, 1)``, e.g. 0.95.
    samples : int
        Number of bootstrap resamples (>= 30).
    seed : int, optional
        RNG seed; ``None`` draws one from OS entropy.
    ci : (float, float)
        Percentiles of the replicate distribution reported as the interval.
    request_id : str
        Correlation id echoed back on the result.
    """
    returns: tuple
    confidence: float
    samples: int = config.BOOTSTRAP_SAMPLES
    seed: Optional[int] = None
    ci: tuple = (config.CI_LOW, config.CI_HIGH)
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        # keep the request immutable and cheap to pickle
        returns = self.returns
        if isinstance(returns, (str, bytes)):
            raise InvalidInput("returns must be a sequence of numbers")
        try:
            values = tuple(float(r) for r in returns)
        except (TypeError, ValueError):
            raise InvalidInput("returns must be a sequence of numbers") from None
        object.__setattr__(self, "returns", values)

    @classmethod
    def from_message(cls, message: dict) -> "BootstrapRequest":
        """Parse ``{"type": "bootstrap", "returns": [...], "confidence": c, ...}``."""
        if not isinstance(message, dict) or message.get("type") != "bootstrap":
            raise InvalidInput("message type must be 'bootstrap'")
        for key in ("returns", "confidence"):
            if key not in message:
                raise InvalidInput(f"bootstrap message is missing {key!r}")
        returns = message["returns"]
        if isinstance(returns, (str, bytes)) or not hasattr(returns, "__iter__"):
            raise InvalidInput("returns must be an array of numbers")
        try:
            kwargs = {
                "returns": returns,
                "confidence": float(message["confidence"]),
            }
        except (TypeError, ValueError) as exc:
            raise InvalidInput(f"malformed bootstrap message: {exc}") from None
        for key in ("samples", "seed"):
            if message.get(key) is not None:
                kwargs[key] = _check_integer(key, message[key])
        if message.get("requestId") is not None:
            kwargs["request_id"] = str(message["requestId"])
        return cls(**kwargs)


@dataclass(frozen=True)
class RiskResult:
    """Point estimates on the original series plus bootstrap intervals.

    ``ci`` maps each of ``var_hist``, ``es_hist``, ``var_cf`` to a
    ``(low, high)`` tuple.
    """
    var_hist: float
    es_hist: float
    var_cf: float
    ci: dict
    confidence: float
    samples: int
    seed: int
    request_id: str

    def to_message(self) -> dict:
        return {
            "type": "result",
            "requestId": self.request_id,
            "varHist": self.var_hist,
            "esHist": self.es_hist,
            "varCF": self.var_cf,
            "ci": {
                "varHist": list(self.ci["var_hist"]),
                "esHist": list(self.ci["es_hist"]),
                "varCF": list(self.ci["var_cf"]),
            },
            "samples": self.samples,
            "seed": self.seed,
        }


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _check_confidence(confidence: float) -> float:
    try:
        c = float(confidence)
    except (TypeError, ValueError):
        raise InvalidInput(f"confidence must be a number, got {confidence!r}") from None
    if not (0.0 < c < 1.0):
        raise InvalidInput(f"confidence must lie strictly inside (0, 1), got {confidence}")
    return c


def _check_horizon(horizon: int) -> int:
    return _check_integer("horizon", horizon, minimum=1)


def _check_integer(name: str, value, minimum: int = 0) -> int:
    if isinstance(value, bool):
        raise InvalidInput(f"{name} must be an integer, got {value!r}")
    try:
        as_int = int(value)
        integral = as_int == value
    except (TypeError, ValueError, OverflowError):
        integral = False
    if not integral:
        raise InvalidInput(f"{name} must be an integer, got {value!r}")
    if as_int < minimum:
        raise InvalidInput(f"{name} must be >= {minimum}, got {as_int}")
    return as_int


# ---------------------------------------------------------------------------
# Row-wise kernels; each row of ``block`` is one return sample
# ---------------------------------------------------------------------------

def _var_block(block: np.ndarray, alpha: float) -> tuple[np.ndarray, np.ndarray]:
    q = np.quantile(block, alpha, axis=-1)
    return -q, q


def _es_block(block: np.ndarray, q: np.ndarray) -> np.ndarray:
    in_tail = block <= np.expand_dims(q, -1)
    count = in_tail.sum(axis=-1)
    total = np.where(in_tail, block, 0.0).sum(axis=-1)
    # empty tail falls back to the quantile itself
    tail_mean = np.where(count > 0, total / np.maximum(count, 1), q)
    return -tail_mean


def _cf_block(block: np.ndarray, z: float) -> np.ndarray:
    s = skewness(block, axis=-1)
    k = excess_kurtosis(block, axis=-1)
    z_adj = (z
             + (z * z - 1.0) * s / 6.0
             + (z ** 3 - 3.0 * z) * k / 24.0
             - (2.0 * z ** 3 - 5.0 * z) * s * s / 36.0)
    mu = block.mean(axis=-1)
    return -(mu + z_adj * std_dev(block, axis=-1))


def _all_metrics(block: np.ndarray, alpha: float, z: float) -> tuple[np.ndarray, ...]:
    var, q = _var_block(block, alpha)
    return var, _es_block(block, q), _cf_block(block, z)


# ---------------------------------------------------------------------------
# Point estimates
# ---------------------------------------------------------------------------

def quantile(returns, p: float) -> float:
    """Quantile by linear interpolation between order statistics.

    Rank is ``(n - 1) * p``; the value is interpolated between the order
    statistics at ``floor(rank)`` and ``ceil(rank)``.
    """
    x = as_return_series(returns)
    if not (0.0 <= p <= 1.0):
        raise InvalidInput(f"p must lie in [0, 1], got {p}")
    return float(np.quantile(x, p))


def historical_var(returns, confidence: float = 0.99, horizon: int = 1) -> float:
    """Historical Value-at-Risk.

    VaR is the loss at the ``(1 - confidence)`` quantile, scaled by
    ``sqrt(horizon)`` for multi-period horizons under an i.i.d. assumption.
    """
    x = as_return_series(returns)
    alpha = 1.0 - _check_confidence(confidence)
    var, _ = _var_block(x, alpha)
    return float(var) * math.sqrt(_check_horizon(horizon))


def expected_shortfall(returns, confidence: float = 0.99, horizon: int = 1) -> float:
    """Expected Shortfall (CVaR).

    Mean loss over returns at or below the VaR quantile, scaled by
    ``sqrt(horizon)``.  Never smaller than :func:`historical_var`.
    """
    x = as_return_series(returns)
    alpha = 1.0 - _check_confidence(confidence)
    _, q = _var_block(x, alpha)
    return float(_es_block(x, q)) * math.sqrt(_check_horizon(horizon))


def cornish_fisher_var(returns, confidence: float = 0.99) -> float:
    """VaR from a Cornish-Fisher adjusted normal quantile.

    With ``z = inv_cdf(1 - confidence)``, sample skewness ``s`` and excess
    kurtosis ``k``::

        z' = z + (z^2 - 1) s / 6 + (z^3 - 3z) k / 24 - (2z^3 - 5z) s^2 / 36
        VaR = -(mean + z' * std)

    Reduces to the Gaussian VaR ``-(mean + z * std)`` when ``s = k = 0``.
    """
    x = as_return_series(returns)
    z = inv_cdf(1.0 - _check_confidence(confidence))
    return float(_cf_block(x, z))


# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------

def _fresh_seed() -> int:
    return int(np.random.SeedSequence().generate_state(1, dtype=np.uint64)[0])


def bootstrap(request: BootstrapRequest) -> RiskResult:
    """Bootstrap confidence intervals for VaR, ES and Cornish-Fisher VaR.

    Draws ``request.samples`` resamples of the full series length with
    replacement from ``numpy.random.default_rng(seed)``.  Skewness and
    kurtosis for the Cornish-Fisher step are recomputed on every resample,
    so the interval reflects the sampling noise of the higher moments.

    Cost is ``O(samples * n)``; there is no internal time limit.

    Raises
    ------
    InsufficientData
        Fewer than two returns.
    InvalidInput
        Non-finite returns, ``confidence`` outside ``(0, 1)``,
        ``samples < 30``, an invalid ``ci`` pair, or a seed that is not an
        unsigned 64-bit integer.
    """
    x = as_return_series(request.returns)
    confidence = _check_confidence(request.confidence)
    n_samples = _check_integer("samples", request.samples)
    if n_samples < config.MIN_BOOTSTRAP_SAMPLES:
        raise InvalidInput(
            f"samples must be >= {config.MIN_BOOTSTRAP_SAMPLES} for a meaningful "
            f"interval, got {n_samples}"
        )
    ci_lo, ci_hi = request.ci
    if not (0.0 <= ci_lo < ci_hi <= 1.0):
        raise InvalidInput(f"ci must satisfy 0 <= low < high <= 1, got {request.ci}")

    if request.seed is None:
        seed = _fresh_seed()
    else:
        seed = _check_integer("seed", request.seed)
        if seed > _MAX_SEED:
            raise InvalidInput(f"seed must fit in an unsigned 64-bit integer, got {seed}")
    rng = np.random.default_rng(seed)
    alpha = 1.0 - confidence
    z = inv_cdf(alpha)
    n = x.size

    logger.debug(
        "bootstrap %s: n=%d samples=%d confidence=%.4f seed=%d",
        request.request_id, n, n_samples, confidence, seed,
    )

    replicates = {m: np.empty(int(n_samples)) for m in METRICS}
    start = 0
    while start < n_samples:
        m = min(_CHUNK, int(n_samples) - start)
        block = x[rng.integers(0, n, size=(m, n))]
        for name, values in zip(METRICS, _all_metrics(block, alpha, z)):
            replicates[name][start:start + m] = values
        start += m

    point = dict(zip(METRICS, (float(v) for v in _all_metrics(x, alpha, z))))
    ci = {
        name: (float(np.quantile(vals, ci_lo)), float(np.quantile(vals, ci_hi)))
        for name, vals in replicates.items()
    }
    return RiskResult(
        **point,
        ci=ci,
        confidence=confidence,
        samples=int(n_samples),
        seed=int(seed),
        request_id=request.request_id,
    )
