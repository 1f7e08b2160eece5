import math
from dataclasses import replace

from .core import OptionSpec, Greeks, CALL, require_finite
from .errors import InvalidInput
from .normal import cdf as _N, pdf as _n

__all__ = ["price", "greeks", "put_call_parity_gap", "implied_vol"]


def _d1_d2(opt: OptionSpec):
    srt = opt.sigma * math.sqrt(opt.T)
    d1 = (math.log(opt.S0 / opt.K) + (opt.r + 0.5 * opt.sigma * opt.sigma) * opt.T) / srt
    d2 = d1 - srt
    return d1, d2


def _price_from(opt: OptionSpec, d1: float, d2: float) -> float:
    disc_r = math.exp(-opt.r * opt.T)
    if opt.kind == CALL:
        return opt.S0 * _N(d1) - opt.K * disc_r * _N(d2)
    return opt.K * disc_r * _N(-d2) - opt.S0 * _N(-d1)


def price(opt: OptionSpec) -> float:
    d1, d2 = _d1_d2(opt)
    return _price_from(opt, d1, d2)


def greeks(opt: OptionSpec) -> Greeks:
    """Closed-form price and Greeks; d1/d2 are computed once and shared."""
    d1, d2 = _d1_d2(opt)
    n_d1   = _n(d1)
    disc_r = math.exp(-opt.r * opt.T)
    sqrt_T = math.sqrt(opt.T)

    # Common
    gamma = n_d1 / (opt.S0 * opt.sigma * sqrt_T)
    vega  = opt.S0 * n_d1 * sqrt_T
    decay = -opt.S0 * n_d1 * opt.sigma / (2 * sqrt_T)

    if opt.kind == CALL:
        delta = _N(d1)
        theta = decay - opt.r * opt.K * disc_r * _N(d2)
        rho   = opt.K * opt.T * disc_r * _N(d2)
    else:
        delta = _N(d1) - 1.0
        theta = decay + opt.r * opt.K * disc_r * _N(-d2)
        rho   = -opt.K * opt.T * disc_r * _N(-d2)

    return Greeks(
        price=_price_from(opt, d1, d2),
        delta=delta, gamma=gamma, vega=vega, theta=theta, rho=rho,
        d1=d1, d2=d2,
    )


def put_call_parity_gap(opt: OptionSpec) -> float:
    """``call - put - (S - K e^{-rT})``; zero up to rounding."""
    d1, d2 = _d1_d2(opt)
    call = _price_from(replace(opt, kind="call"), d1, d2)
    put = _price_from(replace(opt, kind="put"), d1, d2)
    return call - put - (opt.S0 - opt.K * math.exp(-opt.r * opt.T))


def implied_vol(opt: OptionSpec, target_price: float, *, tol: float = 1e-8,
                maxiter: int = 100, bracket=(1e-6, 5.0)) -> float:
    """Brent root find on sigma; ``opt.sigma`` is ignored."""
    from scipy.optimize import brentq

    target_price = require_finite("target_price", target_price)
    disc_K = opt.K * math.exp(-opt.r * opt.T)
    if opt.kind == CALL:
        lower, upper = max(opt.S0 - disc_K, 0.0), opt.S0
    else:
        lower, upper = max(disc_K - opt.S0, 0.0), disc_K
    if not lower < target_price < upper:
        raise InvalidInput(
            f"target_price {target_price} outside no-arbitrage bounds "
            f"({lower:.6g}, {upper:.6g}) for a {opt.kind}"
        )

    def f(sig):
        return price(replace(opt, sigma=sig)) - target_price

    a, b = bracket
    if f(a) * f(b) > 0:
        raise InvalidInput(
            f"no implied vol in [{a}, {b}] for target_price {target_price}"
        )
    return float(brentq(f, a, b, xtol=tol, maxiter=maxiter))
