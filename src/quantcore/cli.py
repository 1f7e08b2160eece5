import argparse
import json
import logging
import sys

import numpy as np

from . import config
from .core import OptionSpec, CALL, PUT
from .black_scholes import greeks as bs_greeks, implied_vol
from .dcf import DcfInput, GORDON, EXIT_MULTIPLE, valuate, sensitivity_grid
from .errors import InvalidInput, QuantError
from .orchestrator import ComputeOrchestrator
from .risk import BootstrapRequest

logger = logging.getLogger(__name__)


def _kind(s: str):
    s = s.lower()
    if s in {"call", "c"}:
        return CALL
    if s in {"put", "p"}:
        return PUT
    raise argparse.ArgumentTypeError("kind must be 'call' or 'put'")


def _floats(s: str):
    try:
        return [float(v) for v in s.split(",") if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected comma-separated numbers, got {s!r}") from None


def add_option(parser: argparse.ArgumentParser):
    parser.add_argument("--S0", type=float, required=True)
    parser.add_argument("--K", type=float, required=True)
    parser.add_argument("--T", type=float, required=True, help="years")
    parser.add_argument("--r", type=float, required=True, help="cont. risk-free")
    parser.add_argument("--kind", type=_kind, default=CALL, help="call|put")


def _dump(obj):
    json.dump(obj, sys.stdout, indent=2)
    sys.stdout.write("\n")


def cmd_bs(args):
    opt = OptionSpec(args.S0, args.K, args.T, args.r, args.sigma, args.kind)
    g = bs_greeks(opt)
    _dump(g.normalized() if args.normalized else g.as_dict())


def cmd_iv(args):
    # sigma is a placeholder; implied_vol solves for it
    opt = OptionSpec(args.S0, args.K, args.T, args.r, 0.2, args.kind)
    print(f"{implied_vol(opt, args.price):.10f}")


def cmd_var(args):
    try:
        returns = np.loadtxt(args.returns, delimiter=",", ndmin=1)
    except ValueError as exc:
        raise InvalidInput(f"cannot read returns from {args.returns}: {exc}") from None
    request = BootstrapRequest(
        returns=returns.ravel(),
        confidence=args.confidence,
        samples=args.samples,
        seed=args.seed,
    )
    with ComputeOrchestrator(max_workers=1) as orch:
        _dump(orch.submit(request).result().to_message())


def cmd_dcf(args):
    inp = DcfInput(
        fcf0=args.fcf0, growth=args.growth, wacc=args.wacc, horizon=args.horizon,
        shares=args.shares,
        terminal_method=EXIT_MULTIPLE if args.exit_multiple is not None else GORDON,
        exit_multiple=args.exit_multiple, net_debt=args.net_debt,
    )
    res = valuate(inp)
    out = {
        "pv_stage": res.pv_stage,
        "terminal_value": res.terminal_value,
        "pv_terminal": res.pv_terminal,
        "enterprise_value": res.enterprise_value,
        "equity_value": res.equity_value,
        "per_share": res.per_share,
    }
    if args.grid_wacc and args.grid_growth:
        out["sensitivity"] = sensitivity_grid(inp, args.grid_wacc, args.grid_growth).rows()
    _dump(out)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="quantcore",
                                description="Option pricing, VaR/ES and DCF valuation")
    p.add_argument("--log-level", default=config.LOG_LEVEL)
    sub = p.add_subparsers(dest="cmd", required=True)

    # Black-Scholes
    p_bs = sub.add_parser("bs", help="Black-Scholes price and Greeks")
    add_option(p_bs)
    p_bs.add_argument("--sigma", type=float, required=True)
    p_bs.add_argument("--normalized", action="store_true",
                      help="add vega/rho per 1%% and theta per trading day")
    p_bs.set_defaults(func=cmd_bs)

    # Implied vol
    p_iv = sub.add_parser("iv", help="Black-Scholes implied volatility")
    add_option(p_iv)
    p_iv.add_argument("--price", type=float, required=True, help="observed option price")
    p_iv.set_defaults(func=cmd_iv)

    # Bootstrap VaR / ES
    p_var = sub.add_parser("var", help="bootstrap VaR / ES / Cornish-Fisher VaR")
    p_var.add_argument("returns", help="file of comma- or newline-separated returns")
    p_var.add_argument("--confidence", type=float, default=0.95)
    p_var.add_argument("--samples", type=int, default=config.BOOTSTRAP_SAMPLES)
    p_var.add_argument("--seed", type=int, default=None)
    p_var.set_defaults(func=cmd_var)

    # DCF
    p_dcf = sub.add_parser("dcf", help="discounted cash flow valuation")
    p_dcf.add_argument("--fcf0", type=float, required=True)
    p_dcf.add_argument("--growth", type=float, required=True)
    p_dcf.add_argument("--wacc", type=float, required=True)
    p_dcf.add_argument("--horizon", type=int, default=5)
    p_dcf.add_argument("--shares", type=float, required=True)
    p_dcf.add_argument("--exit-multiple", dest="exit_multiple", type=float, default=None,
                       help="use an exit multiple instead of Gordon growth")
    p_dcf.add_argument("--net-debt", dest="net_debt", type=float, default=0.0)
    p_dcf.add_argument("--grid-wacc", dest="grid_wacc", type=_floats, default=None)
    p_dcf.add_argument("--grid-growth", dest="grid_growth", type=_floats, default=None)
    p_dcf.set_defaults(func=cmd_dcf)
    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        args.func(args)
    except QuantError as exc:
        logger.debug("command failed", exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
