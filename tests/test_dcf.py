"""Tests for the DCF valuation engine."""

import math
from dataclasses import replace

import numpy as np
import pytest

from quantcore.dcf import (
    EXIT_MULTIPLE, DcfInput, EpvInput, valuate, sensitivity_grid, epv,
    present_value, terminal_value_gordon, terminal_value_exit_multiple, compute_wacc,
)
from quantcore.errors import InvalidInput

BASE = DcfInput(fcf0=260, growth=0.02, wacc=0.08, horizon=5, shares=100)


def _reference(fcf0, g, wacc, n, tv_fn):
    pv = 0.0
    for t in range(1, n + 1):
        pv += fcf0 * (1 + g) ** t / (1 + wacc) ** t
    last = fcf0 * (1 + g) ** n
    return pv, tv_fn(last) / (1 + wacc) ** n


class TestValuate:
    def test_gordon_hand_computed(self):
        res = valuate(BASE)
        pv, pv_tv = _reference(260, 0.02, 0.08, 5, lambda f: f * 1.02 / 0.06)
        assert round(res.pv_stage, 2) == round(pv, 2) == 1098.73
        assert round(res.pv_terminal, 2) == round(pv_tv, 2) == 3321.27
        # constant growth forever collapses to FCF_1 / (wacc - g)
        assert round(res.equity_value, 2) == 4420.00
        assert round(res.per_share, 2) == 44.20

    def test_exit_multiple(self):
        inp = replace(BASE, terminal_method=EXIT_MULTIPLE, exit_multiple=12)
        res = valuate(inp)
        pv, pv_tv = _reference(260, 0.02, 0.08, 5, lambda f: 12 * f)
        assert res.pv_terminal == pytest.approx(pv_tv, rel=1e-12)
        assert round(res.pv_terminal, 2) == 2344.43
        assert round(res.equity_value, 2) == 3443.16
        assert res.per_share == pytest.approx(res.equity_value / 100)

    def test_equity_is_stage_plus_terminal(self):
        res = valuate(BASE)
        assert res.equity_value == pytest.approx(res.pv_stage + res.pv_terminal)
        assert res.enterprise_value == res.equity_value
        assert 0 < res.terminal_share < 1

    def test_net_debt_bridge(self):
        res = valuate(replace(BASE, net_debt=420.0))
        assert res.equity_value == pytest.approx(4000.0)
        assert res.per_share == pytest.approx(40.0)

    def test_schedule(self):
        res = valuate(BASE)
        assert [row.year for row in res.schedule] == [1, 2, 3, 4, 5]
        assert res.schedule[0].fcf == pytest.approx(265.2)
        assert res.schedule[0].discount_factor == pytest.approx(1 / 1.08)
        assert res.schedule[-1].cumulative_pv == pytest.approx(res.pv_stage)
        assert sum(r.pv_fcf for r in res.schedule) == pytest.approx(res.pv_stage)

    def test_single_year_horizon(self):
        res = valuate(replace(BASE, horizon=1))
        assert res.pv_stage == pytest.approx(265.2 / 1.08)


class TestDegenerateGordon:
    @pytest.mark.parametrize("growth", [0.08, 0.09, 0.5])
    def test_wacc_not_above_growth_raises(self, growth):
        with pytest.raises(InvalidInput, match="wacc"):
            valuate(replace(BASE, growth=growth))

    def test_exit_multiple_ignores_growth_constraint(self):
        inp = replace(BASE, growth=0.10, terminal_method=EXIT_MULTIPLE, exit_multiple=8)
        assert math.isfinite(valuate(inp).per_share)


class TestInputValidation:
    @pytest.mark.parametrize("changes", [
        {"fcf0": 0}, {"fcf0": -5}, {"shares": 0}, {"wacc": 0}, {"wacc": -0.1},
        {"growth": -1.0}, {"wacc": math.nan}, {"growth": math.inf},
        {"horizon": 0}, {"horizon": 2.5}, {"horizon": True}, {"horizon": 51},
        {"terminal_method": "perpetuity"},
        {"terminal_method": EXIT_MULTIPLE},
        {"terminal_method": EXIT_MULTIPLE, "exit_multiple": 0},
        {"net_debt": math.nan},
    ])
    def test_rejected(self, changes):
        kwargs = dict(fcf0=260, growth=0.02, wacc=0.08, horizon=5, shares=100)
        kwargs.update(changes)
        with pytest.raises(InvalidInput):
            DcfInput(**kwargs)

    def test_numpy_integer_horizon(self):
        assert valuate(replace(BASE, horizon=np.int64(5))).per_share == pytest.approx(44.2)

    def test_numeric_fields_coerced(self):
        inp = DcfInput(fcf0="260", growth="0.02", wacc=np.float64(0.08),
                       horizon=np.int64(5), shares=100)
        assert type(inp.fcf0) is float and type(inp.wacc) is float
        assert type(inp.horizon) is int
        assert valuate(inp).per_share == pytest.approx(44.2)


class TestSensitivityGrid:
    def test_shape_and_values(self):
        waccs = [0.07, 0.08, 0.09]
        growths = [0.01, 0.02, 0.03]
        grid = sensitivity_grid(BASE, waccs, growths)
        assert grid.per_share.shape == (3, 3)
        assert not grid.undefined.any()
        assert grid.cell(0.08, 0.02) == pytest.approx(44.2)
        for i, w in enumerate(waccs):
            for j, g in enumerate(growths):
                expected = valuate(replace(BASE, wacc=w, growth=g)).per_share
                assert grid.per_share[i, j] == pytest.approx(expected)

    def test_undefined_cells_are_masked_not_infinite(self):
        grid = sensitivity_grid(BASE, [0.06, 0.08, 0.10], [0.02, 0.06, 0.08])
        expected_mask = np.array([
            [False, True, True],
            [False, False, True],
            [False, False, False],
        ])
        np.testing.assert_array_equal(grid.undefined, expected_mask)
        assert np.all(np.isfinite(grid.per_share.compressed()))
        assert np.all(np.isfinite(grid.equity_value.filled(0.0)))
        assert grid.cell(0.06, 0.06) is None
        assert grid.cell(0.08, 0.08) is None
        assert grid.cell(0.10, 0.06) is not None

    def test_per_share_decreases_with_wacc(self):
        grid = sensitivity_grid(BASE, np.linspace(0.06, 0.12, 7), [0.02])
        assert np.all(np.diff(grid.per_share.data[:, 0]) < 0)

    def test_exit_multiple_grid_has_no_undefined_cells(self):
        inp = replace(BASE, terminal_method=EXIT_MULTIPLE, exit_multiple=10)
        grid = sensitivity_grid(inp, [0.05, 0.08], [0.05, 0.10])
        assert not grid.undefined.any()

    def test_rows(self):
        rows = sensitivity_grid(BASE, [0.05, 0.08], [0.02, 0.05]).rows()
        assert len(rows) == 4
        assert rows[1] == {"wacc": 0.05, "growth": 0.05, "per_share": None}
        assert rows[2]["per_share"] == pytest.approx(44.2)

    def test_closely_spaced_axis_values(self):
        grid = sensitivity_grid(BASE, [0.08], [0.0, 1e-9])
        first, second = grid.per_share.data[0]
        assert first != second
        rows = grid.rows()
        assert rows[0]["per_share"] == first
        assert rows[1]["growth"] == 1e-9
        assert rows[1]["per_share"] == second
        assert grid.cell(0.08, 1e-9) == second
        assert grid.cell(0.08, 0.0) == first

    def test_unknown_cell(self):
        grid = sensitivity_grid(BASE, [0.08], [0.02])
        with pytest.raises(KeyError):
            grid.cell(0.5, 0.02)

    def test_empty_axis(self):
        with pytest.raises(InvalidInput):
            sensitivity_grid(BASE, [], [0.02])


class TestPrimitives:
    def test_present_value(self):
        assert present_value(110, 0.10, 1) == pytest.approx(100)
        assert present_value(100, 0.10, 0) == 100

    def test_present_value_rejects_rate_below_minus_one(self):
        with pytest.raises(InvalidInput):
            present_value(100, -1.0, 1)

    def test_terminal_values(self):
        assert terminal_value_gordon(100, 0.02, 0.07) == pytest.approx(2040)
        assert terminal_value_exit_multiple(100, 9) == 900
        with pytest.raises(InvalidInput):
            terminal_value_gordon(100, 0.07, 0.07)

    def test_compute_wacc(self):
        w = compute_wacc(equity_value=60, debt_value=40, cost_of_equity=0.10,
                         cost_of_debt=0.05, tax_rate=0.25)
        assert w == pytest.approx(0.075)

    def test_compute_wacc_rejects_bad_tax(self):
        with pytest.raises(InvalidInput):
            compute_wacc(60, 40, 0.1, 0.05, 1.0)


class TestEpv:
    def test_value(self):
        res = epv(EpvInput(ebit=100, tax_rate=0.25, reinvestment_rate=0.2, wacc=0.1, shares=10))
        assert res.epv == pytest.approx(600)
        assert res.per_share == pytest.approx(60)

    @pytest.mark.parametrize("changes", [
        {"ebit": 0}, {"tax_rate": 1.0}, {"reinvestment_rate": -0.1},
        {"wacc": 0.0}, {"wacc": 1.0}, {"shares": 0},
    ])
    def test_rejected(self, changes):
        kwargs = dict(ebit=100, tax_rate=0.25, reinvestment_rate=0.2, wacc=0.1, shares=10)
        kwargs.update(changes)
        with pytest.raises(InvalidInput):
            epv(EpvInput(**kwargs))
