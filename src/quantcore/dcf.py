"""Discounted-cash-flow valuation.

Staged free-cash-flow projection, terminal value by Gordon growth or an
exit multiple, per-share equity value, and a (WACC x growth) sensitivity
grid.  An invalid Gordon configuration (``wacc <= g``) is an error for a
single valuation and a masked *Undefined* cell in the grid; it is never
reported as ``inf``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

import numpy as np

from .core import require_finite, require_positive
from .errors import InvalidInput

__all__ = [
    "GORDON",
    "EXIT_MULTIPLE",
    "DcfInput",
    "DcfYearRow",
    "DcfResult",
    "SensitivityGrid",
    "EpvInput",
    "EpvResult",
    "present_value",
    "terminal_value_gordon",
    "terminal_value_exit_multiple",
    "compute_wacc",
    "valuate",
    "sensitivity_grid",
    "epv",
]

logger = logging.getLogger(__name__)

GORDON = "gordon"
EXIT_MULTIPLE = "exit_multiple"

MAX_HORIZON = 50


# ---------------------------------------------------------------------------
# Inputs / outputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DcfInput:
    """Inputs for a single-stage DCF.

    Parameters
    ----------
    fcf0 : float
        Free cash flow at t=0, > 0.
    growth : float
        Annual FCF growth rate ``g`` as a decimal.
    wacc : float
        Discount rate as a decimal, > 0.
    horizon : int
        Explicit forecast years, 1..50.
    shares : float
        Diluted share count, > 0.
    terminal_method : str
        ``"gordon"`` (requires ``wacc > growth``) or ``"exit_multiple"``.
    exit_multiple : float, optional
        Terminal value as a multiple of final-year FCF; required for
        ``"exit_multiple"``.
    net_debt : float
        Debt minus cash subtracted from enterprise value (default 0).
    """
    fcf0: float
    growth: float
    wacc: float
    horizon: int
    shares: float
    terminal_method: str = GORDON
    exit_multiple: Optional[float] = None
    net_debt: float = 0.0

    def __post_init__(self):
        def _set(name, value):
            object.__setattr__(self, name, value)

        _set("fcf0", require_positive("fcf0", self.fcf0))
        _set("shares", require_positive("shares", self.shares))
        _set("net_debt", require_finite("net_debt", self.net_debt))
        _set("wacc", require_finite("wacc", self.wacc))
        _set("growth", require_finite("growth", self.growth))
        if self.wacc <= 0:
            raise InvalidInput(f"wacc must be positive, got {self.wacc}")
        if self.growth <= -1:
            raise InvalidInput(f"growth must be greater than -100%, got {self.growth}")
        if (isinstance(self.horizon, bool) or not isinstance(self.horizon, (int, np.integer))
                or not 1 <= self.horizon <= MAX_HORIZON):
            raise InvalidInput(
                f"horizon must be an integer between 1 and {MAX_HORIZON}, got {self.horizon!r}"
            )
        _set("horizon", int(self.horizon))
        if self.terminal_method == EXIT_MULTIPLE:
            if self.exit_multiple is None:
                raise InvalidInput("exit_multiple is required for the exit-multiple method")
            _set("exit_multiple", require_positive("exit_multiple", self.exit_multiple))
        elif self.terminal_method != GORDON:
            raise InvalidInput(
                f"terminal_method must be {GORDON!r} or {EXIT_MULTIPLE!r}, "
                f"got {self.terminal_method!r}"
            )


@dataclass(frozen=True)
class DcfYearRow:
    year: int
    fcf: float
    discount_factor: float      # 1 / (1 + wacc)^t
    pv_fcf: float
    cumulative_pv: float


@dataclass(frozen=True)
class DcfResult:
    pv_stage: float
    terminal_value: float       # undiscounted, at t = horizon
    pv_terminal: float
    enterprise_value: float
    equity_value: float
    per_share: float
    schedule: tuple

    @property
    def terminal_share(self) -> float:
        """Fraction of enterprise value contributed by the terminal value."""
        return self.pv_terminal / self.enterprise_value


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------

def present_value(cash_flow: float, rate: float, year: float) -> float:
    require_finite("cash_flow", cash_flow)
    if require_finite("rate", rate) <= -1:
        raise InvalidInput(f"rate must be greater than -100%, got {rate}")
    if require_finite("year", year) < 0:
        raise InvalidInput(f"year must be non-negative, got {year}")
    return cash_flow / (1.0 + rate) ** year


def terminal_value_gordon(last_fcf: float, growth: float, wacc: float) -> float:
    """Perpetuity value at t=N: ``FCF_N (1 + g) / (wacc - g)``.

    Raises
    ------
    InvalidInput
        If ``wacc <= growth``; the perpetuity does not converge.
    """
    require_finite("last_fcf", last_fcf)
    require_finite("growth", growth)
    require_finite("wacc", wacc)
    if wacc <= growth:
        raise InvalidInput(
            f"Gordon growth terminal value needs wacc > growth, got "
            f"wacc={wacc:.4%} and growth={growth:.4%}"
        )
    return last_fcf * (1.0 + growth) / (wacc - growth)


def terminal_value_exit_multiple(last_fcf: float, multiple: float) -> float:
    require_finite("last_fcf", last_fcf)
    require_positive("multiple", multiple)
    return last_fcf * multiple


def compute_wacc(
    equity_value: float,
    debt_value: float,
    cost_of_equity: float,
    cost_of_debt: float,
    tax_rate: float,
) -> float:
    """Weighted average cost of capital with tax-deductible debt."""
    E = require_finite("equity_value", equity_value)
    D = require_finite("debt_value", debt_value)
    if E < 0 or D < 0 or E + D <= 0:
        raise InvalidInput("equity_value and debt_value must be non-negative with a positive sum")
    t = require_finite("tax_rate", tax_rate)
    if not 0 <= t < 1:
        raise InvalidInput(f"tax_rate must lie in [0, 1), got {tax_rate}")
    V = E + D
    return (E / V) * require_finite("cost_of_equity", cost_of_equity) \
        + (D / V) * require_finite("cost_of_debt", cost_of_debt) * (1.0 - t)


# ---------------------------------------------------------------------------
# Valuation
# ---------------------------------------------------------------------------

def _schedule(inp: DcfInput) -> tuple:
    rows = []
    cumulative = 0.0
    for t in range(1, inp.horizon + 1):
        fcf = inp.fcf0 * (1.0 + inp.growth) ** t
        df = 1.0 / (1.0 + inp.wacc) ** t
        pv = fcf * df
        cumulative += pv
        rows.append(DcfYearRow(year=t, fcf=fcf, discount_factor=df,
                               pv_fcf=pv, cumulative_pv=cumulative))
    return tuple(rows)


def valuate(inp: DcfInput) -> DcfResult:
    """Value one :class:`DcfInput`.

    ``pv_stage = sum_t fcf0 (1+g)^t / (1+wacc)^t`` for ``t = 1..n``, the
    terminal value is discounted by ``(1+wacc)^n``, and
    ``equity_value = pv_stage + pv_terminal - net_debt``.
    """
    schedule = _schedule(inp)
    last_fcf = schedule[-1].fcf
    if inp.terminal_method == GORDON:
        tv = terminal_value_gordon(last_fcf, inp.growth, inp.wacc)
    else:
        tv = terminal_value_exit_multiple(last_fcf, inp.exit_multiple)

    pv_stage = schedule[-1].cumulative_pv
    pv_terminal = tv / (1.0 + inp.wacc) ** inp.horizon
    ev = pv_stage + pv_terminal
    equity = ev - inp.net_debt
    return DcfResult(
        pv_stage=pv_stage,
        terminal_value=tv,
        pv_terminal=pv_terminal,
        enterprise_value=ev,
        equity_value=equity,
        per_share=equity / inp.shares,
        schedule=schedule,
    )


# ---------------------------------------------------------------------------
# Sensitivity grid
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SensitivityGrid:
    """Per-share and equity values over a (wacc x growth) grid.

    Rows follow ``wacc_values``, columns follow ``growth_values``.  Cells
    where the Gordon perpetuity is undefined (``wacc <= g``) are masked.
    """
    wacc_values: np.ndarray
    growth_values: np.ndarray
    per_share: np.ma.MaskedArray
    equity_value: np.ma.MaskedArray

    @property
    def undefined(self) -> np.ndarray:
        return np.ma.getmaskarray(self.per_share)

    def _value(self, i: int, j: int) -> Optional[float]:
        if self.undefined[i, j]:
            return None
        return float(self.per_share.data[i, j])

    @staticmethod
    def _index(axis: np.ndarray, value: float) -> int:
        # nearest axis point, which must also be within isclose tolerance
        k = int(np.argmin(np.abs(axis - value)))
        if not np.isclose(axis[k], value):
            raise KeyError(value)
        return k

    def cell(self, wacc: float, growth: float) -> Optional[float]:
        """Per-share value at one grid point, ``None`` when Undefined."""
        try:
            i = self._index(self.wacc_values, wacc)
            j = self._index(self.growth_values, growth)
        except KeyError:
            raise KeyError((wacc, growth)) from None
        return self._value(i, j)

    def rows(self) -> list[dict]:
        """Flat ``{"wacc", "growth", "per_share"}`` records; Undefined -> None."""
        out = []
        for i, w in enumerate(self.wacc_values):
            for j, g in enumerate(self.growth_values):
                out.append({"wacc": float(w), "growth": float(g),
                            "per_share": self._value(i, j)})
        return out


def sensitivity_grid(inp: DcfInput, wacc_range, growth_range) -> SensitivityGrid:
    """Re-run :func:`valuate` for every (wacc, growth) pair.

    Parameters
    ----------
    inp : DcfInput
        Base case; its ``wacc`` and ``growth`` are replaced per cell.
    wacc_range, growth_range : array-like
        Grid axes.

    Returns
    -------
    SensitivityGrid
        Values of shape ``(len(wacc_range), len(growth_range))``.
    """
    wacc_range = np.atleast_1d(np.asarray(wacc_range, dtype=float))
    growth_range = np.atleast_1d(np.asarray(growth_range, dtype=float))
    if wacc_range.ndim != 1 or growth_range.ndim != 1 or not wacc_range.size or not growth_range.size:
        raise InvalidInput("wacc_range and growth_range must be non-empty 1-D sequences")

    per_share = np.zeros((len(wacc_range), len(growth_range)))
    equity = np.zeros_like(per_share)
    mask = np.zeros(per_share.shape, dtype=bool)

    for i, w in enumerate(wacc_range):
        for j, g in enumerate(growth_range):
            cell = replace(inp, wacc=float(w), growth=float(g))
            if cell.terminal_method == GORDON and cell.wacc <= cell.growth:
                mask[i, j] = True
                continue
            res = valuate(cell)
            per_share[i, j] = res.per_share
            equity[i, j] = res.equity_value

    if mask.any():
        logger.debug("sensitivity grid: %d undefined cells (wacc <= g)", int(mask.sum()))

    return SensitivityGrid(
        wacc_values=wacc_range.copy(),
        growth_values=growth_range.copy(),
        per_share=np.ma.masked_array(per_share, mask=mask),
        equity_value=np.ma.masked_array(equity, mask=mask.copy()),
    )


# ---------------------------------------------------------------------------
# Earnings power value
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EpvInput:
    ebit: float
    tax_rate: float             # [0, 1)
    reinvestment_rate: float    # [0, 1)
    wacc: float                 # (0, 1)
    shares: float


@dataclass(frozen=True)
class EpvResult:
    epv: float
    per_share: float


def epv(inp: EpvInput) -> EpvResult:
    """Earnings power value: ``EBIT (1 - tax) (1 - reinvestment) / wacc``."""
    require_positive("ebit", inp.ebit)
    require_positive("shares", inp.shares)
    for name in ("tax_rate", "reinvestment_rate"):
        v = require_finite(name, getattr(inp, name))
        if not 0 <= v < 1:
            raise InvalidInput(f"{name} must lie in [0, 1), got {v}")
    w = require_finite("wacc", inp.wacc)
    if not 0 < w < 1:
        raise InvalidInput(f"wacc must lie in (0, 1), got {w}")

    value = inp.ebit * (1.0 - inp.tax_rate) * (1.0 - inp.reinvestment_rate) / w
    return EpvResult(epv=value, per_share=value / inp.shares)
