# normal.py
# Standard normal CDF, PDF and quantile function.

from __future__ import annotations
import math

from .errors import DomainError

__all__ = ["cdf", "pdf", "inv_cdf"]

_SQRT2 = math.sqrt(2.0)
_SQRT2PI = math.sqrt(2.0 * math.pi)

# Acklam's rational approximation coefficients
_A = (-3.969683028665376e+01, 2.209460984245205e+02, -2.759285104469687e+02,
      1.383577518672690e+02, -3.066479806614716e+01, 2.506628277459239e+00)
_B = (-5.447609879822406e+01, 1.615858368580409e+02, -1.556989798598866e+02,
      6.680131188771972e+01, -1.328068155288572e+01)
_C = (-7.784894002430293e-03, -3.223964580411365e-01, -2.400758277161838e+00,
      -2.549732539343734e+00, 4.374664141464968e+00, 2.938163982698783e+00)
_D = (7.784695709041462e-03, 3.224671290700398e-01, 2.445134137142996e+00,
      3.754408661907416e+00)

_P_LOW = 0.02425
_MAX_EXP_ARG = 700.0


def cdf(x: float) -> float:
    """Standard normal cumulative distribution."""
    return 0.5 * math.erfc(-x / _SQRT2)


def pdf(x: float) -> float:
    return math.exp(-0.5 * x * x) / _SQRT2PI


def _tail(p: float) -> float:
    q = math.sqrt(-2.0 * math.log(p))
    num = ((((_C[0] * q + _C[1]) * q + _C[2]) * q + _C[3]) * q + _C[4]) * q + _C[5]
    den = (((_D[0] * q + _D[1]) * q + _D[2]) * q + _D[3]) * q + 1.0
    return num / den


def _lower_inv(p: float) -> float:
    # p in (0, 0.5]
    if p < _P_LOW:
        x = _tail(p)
    else:
        q = p - 0.5
        r = q * q
        num = (((((_A[0] * r + _A[1]) * r + _A[2]) * r + _A[3]) * r + _A[4]) * r + _A[5]) * q
        den = ((((_B[0] * r + _B[1]) * r + _B[2]) * r + _B[3]) * r + _B[4]) * r + 1.0
        x = num / den

    # Halley refinement; cdf and exp() leave the float range past |x| ~ 37
    if 0.5 * x * x > _MAX_EXP_ARG:
        return x
    e = cdf(x) - p
    u = e * _SQRT2PI * math.exp(0.5 * x * x)
    return x - u / (1.0 + 0.5 * x * u)


def inv_cdf(p: float) -> float:
    """Quantile of the standard normal distribution.

    Acklam's rational approximation (relative error ~1.15e-9) with a
    dedicated branch for the tails ``p < 0.02425`` and ``p > 0.97575``,
    followed by one Halley step against :func:`cdf` which takes the result
    to near machine precision.  Upper-half arguments are reflected to the
    lower half so the refinement always works on an unrounded tail
    probability.  For ``p`` below about 1e-305, where the refinement would
    overflow, the unrefined approximation is returned.

    Raises
    ------
    DomainError
        If ``p`` is not a finite number strictly inside ``(0, 1)``.
    """
    if not math.isfinite(p) or p <= 0.0 or p >= 1.0:
        raise DomainError(f"p must lie strictly inside (0, 1), got {p}")
    if p > 0.5:
        return -_lower_inv(1.0 - p)
    return _lower_inv(p)
