from __future__ import annotations
import math
from dataclasses import dataclass, asdict

from . import config
from .errors import InvalidInput

CALL = "call"
PUT  = "put"


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------
def require_finite(name: str, value: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(value):
        raise InvalidInput(f"{name} must be finite, got {value}")
    return value


def require_positive(name: str, value: float) -> float:
    value = require_finite(name, value)
    if value <= 0:
        raise InvalidInput(f"{name} must be positive, got {value}")
    return value


# ---------------------------------------------------------------------------
# Option contract + market inputs for one pricing call
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class OptionSpec:
    """European option bundled with the market inputs needed to price it.

    Parameters
    ----------
    S0 : float
        Underlying price.
    K : float
        Strike.
    T : float
        Time to expiry in years.
    r : float
        Continuously-compounded risk-free rate (any finite value).
    sigma : float
        Annualised volatility.
    kind : str
        ``"call"`` or ``"put"``.
    """
    S0: float
    K: float
    T: float          # years
    r: float          # continuous risk-free
    sigma: float
    kind: str = CALL

    def __post_init__(self):
        # frozen: store the coerced floats through object.__setattr__
        for name in ("S0", "K", "T", "sigma"):
            object.__setattr__(self, name, require_positive(name, getattr(self, name)))
        object.__setattr__(self, "r", require_finite("r", self.r))
        if self.kind not in (CALL, PUT):
            raise InvalidInput(f"kind must be 'call' or 'put', got {self.kind!r}")


@dataclass(frozen=True)
class Greeks:
    """Price and sensitivities from a single Black-Scholes evaluation.

    Vega and rho are per unit change in sigma / r (not per 1%), theta is
    per year.
    """
    price: float
    delta: float
    gamma: float
    vega: float
    theta: float
    rho: float
    d1: float
    d2: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)

    def normalized(self) -> dict[str, float]:
        """Reporting units: vega per vol point, theta per trading day, rho per rate point."""
        return {
            **self.as_dict(),
            "vega_per_pct": self.vega / 100.0,
            "theta_per_day": self.theta / config.TRADING_DAYS,
            "rho_per_pct": self.rho / 100.0,
        }
