"""Tests for Black-Scholes pricing, Greeks and implied vol."""

import math
from dataclasses import replace

import numpy as np
import pytest

from quantcore.core import OptionSpec, CALL, PUT
from quantcore.black_scholes import price, greeks, put_call_parity_gap, implied_vol
from quantcore.errors import InvalidInput

OPT = OptionSpec(S0=100, K=100, T=1.0, r=0.05, sigma=0.2)


def test_bs_known_values():
    assert abs(price(OPT) - 10.4506) < 1e-3
    assert abs(price(replace(OPT, kind=PUT)) - 5.5735) < 1e-3


def test_at_the_money_sanity():
    px = price(OptionSpec(S0=100, K=100, T=1.0, r=0.01, sigma=0.2, kind=CALL))
    assert 7 < px < 15


class TestPutCallParity:
    @pytest.mark.parametrize("S0,K,T,r,sigma", [
        (100, 100, 1.0, 0.05, 0.2),
        (50, 80, 0.25, 0.0, 0.6),
        (120, 90, 3.0, -0.01, 0.15),
        (1e4, 9.5e3, 0.01, 0.3, 1.2),
        (0.5, 0.4, 10.0, 0.02, 0.05),
    ])
    def test_parity(self, S0, K, T, r, sigma):
        opt = OptionSpec(S0=S0, K=K, T=T, r=r, sigma=sigma)
        call = price(opt)
        put = price(replace(opt, kind=PUT))
        assert abs(call - put - (S0 - K * math.exp(-r * T))) < 1e-6 * max(1, abs(S0))
        assert abs(put_call_parity_gap(opt)) < 1e-6 * max(1, abs(S0))


class TestMonotonicity:
    @pytest.mark.parametrize("kind", [CALL, PUT])
    def test_price_increases_with_vol(self, kind):
        prices = [price(replace(OPT, sigma=s, kind=kind)) for s in np.linspace(0.05, 1.0, 20)]
        assert np.all(np.diff(prices) > 0)


class TestGreeks:
    def _fd(self, opt, field, h):
        up = price(replace(opt, **{field: getattr(opt, field) + h}))
        dn = price(replace(opt, **{field: getattr(opt, field) - h}))
        return (up - dn) / (2 * h)

    @pytest.mark.parametrize("kind", [CALL, PUT])
    def test_vs_finite_differences(self, kind):
        opt = replace(OPT, kind=kind)
        g = greeks(opt)
        assert g.price == pytest.approx(price(opt), abs=1e-12)
        assert g.delta == pytest.approx(self._fd(opt, "S0", 1e-3), abs=1e-6)
        assert g.vega == pytest.approx(self._fd(opt, "sigma", 1e-5), abs=1e-4)
        assert g.rho == pytest.approx(self._fd(opt, "r", 1e-5), abs=1e-4)
        # theta is -dPrice/dT
        assert g.theta == pytest.approx(-self._fd(opt, "T", 1e-5), abs=1e-4)
        h = 1e-2
        up = price(replace(opt, S0=opt.S0 + h))
        dn = price(replace(opt, S0=opt.S0 - h))
        assert g.gamma == pytest.approx((up - 2 * g.price + dn) / h ** 2, abs=1e-5)

    def test_call_put_relations(self):
        c = greeks(OPT)
        p = greeks(replace(OPT, kind=PUT))
        assert c.delta - p.delta == pytest.approx(1.0)
        assert c.gamma == pytest.approx(p.gamma)
        assert c.vega == pytest.approx(p.vega)
        assert p.delta < 0 < c.delta

    def test_d1_d2_reported(self):
        g = greeks(OPT)
        assert g.d1 - g.d2 == pytest.approx(OPT.sigma * math.sqrt(OPT.T))

    def test_normalized(self):
        g = greeks(OPT)
        n = g.normalized()
        assert n["vega_per_pct"] == pytest.approx(g.vega / 100)
        assert n["rho_per_pct"] == pytest.approx(g.rho / 100)
        assert n["theta_per_day"] == pytest.approx(g.theta / 252)
        assert n["delta"] == g.delta


class TestValidation:
    @pytest.mark.parametrize("field,value", [
        ("S0", 0.0), ("S0", -1.0), ("K", 0.0), ("sigma", 0.0), ("sigma", -0.2),
        ("T", 0.0), ("T", -1.0), ("S0", math.inf), ("r", math.nan),
    ])
    def test_invalid_option(self, field, value):
        kwargs = dict(S0=100, K=100, T=1.0, r=0.05, sigma=0.2)
        kwargs[field] = value
        with pytest.raises(InvalidInput):
            OptionSpec(**kwargs)

    def test_unknown_kind(self):
        with pytest.raises(InvalidInput):
            OptionSpec(S0=100, K=100, T=1.0, r=0.05, sigma=0.2, kind="straddle")

    def test_negative_rate_allowed(self):
        assert price(replace(OPT, r=-0.02)) > 0

    def test_numeric_strings_coerced(self):
        opt = OptionSpec("100", 100, 1, "0.05", 0.2)
        assert isinstance(opt.S0, float) and isinstance(opt.r, float)
        assert price(opt) == pytest.approx(price(OPT))

    def test_non_numeric_field(self):
        with pytest.raises(InvalidInput, match="S0"):
            OptionSpec("spot", 100, 1, 0.05, 0.2)


class TestImpliedVol:
    @pytest.mark.parametrize("kind", [CALL, PUT])
    @pytest.mark.parametrize("sigma", [0.05, 0.3, 1.5])
    def test_round_trip(self, kind, sigma):
        opt = replace(OPT, K=110, sigma=sigma, kind=kind)
        assert implied_vol(opt, price(opt)) == pytest.approx(sigma, abs=1e-6)

    def test_below_intrinsic_rejected(self):
        deep_itm = replace(OPT, K=50)
        with pytest.raises(InvalidInput):
            implied_vol(deep_itm, 10.0)

    def test_above_spot_rejected(self):
        with pytest.raises(InvalidInput):
            implied_vol(OPT, 150.0)
