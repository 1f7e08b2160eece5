# quantcore: option pricing, return-series risk and DCF valuation
# Public API

# Errors
from .errors import (
    QuantError, InvalidInput, InsufficientData, DomainError, ComputationCancelled,
)

# Normal distribution
from .normal import cdf as norm_cdf, pdf as norm_pdf, inv_cdf as norm_inv_cdf

# Black-Scholes
from .core import OptionSpec, Greeks, CALL, PUT
from .black_scholes import (
    price as bs_price, greeks as bs_greeks, put_call_parity_gap, implied_vol,
)

# Return statistics
from .stats import (
    ReturnStatistics, summarize, mean, std_dev, skewness, excess_kurtosis,
    calculate_returns, portfolio_returns,
)

# Risk engine
from .risk import (
    BootstrapRequest, RiskResult, quantile,
    historical_var, expected_shortfall, cornish_fisher_var, bootstrap,
)

# DCF
from .dcf import (
    GORDON, EXIT_MULTIPLE, DcfInput, DcfResult, DcfYearRow, SensitivityGrid,
    EpvInput, EpvResult, valuate, sensitivity_grid, epv,
    present_value, terminal_value_gordon, terminal_value_exit_multiple, compute_wacc,
)

# Off-thread execution
from .orchestrator import ComputeOrchestrator, ComputeHandle, RequestState

__all__ = [
    # Errors
    "QuantError", "InvalidInput", "InsufficientData", "DomainError",
    "ComputationCancelled",
    # Normal distribution
    "norm_cdf", "norm_pdf", "norm_inv_cdf",
    # Black-Scholes
    "OptionSpec", "Greeks", "CALL", "PUT",
    "bs_price", "bs_greeks", "put_call_parity_gap", "implied_vol",
    # Return statistics
    "ReturnStatistics", "summarize", "mean", "std_dev", "skewness",
    "excess_kurtosis", "calculate_returns", "portfolio_returns",
    # Risk
    "BootstrapRequest", "RiskResult", "quantile",
    "historical_var", "expected_shortfall", "cornish_fisher_var", "bootstrap",
    # DCF
    "GORDON", "EXIT_MULTIPLE", "DcfInput", "DcfResult", "DcfYearRow",
    "SensitivityGrid", "EpvInput", "EpvResult", "valuate", "sensitivity_grid",
    "epv", "present_value", "terminal_value_gordon",
    "terminal_value_exit_multiple", "compute_wacc",
    # Orchestrator
    "ComputeOrchestrator", "ComputeHandle", "RequestState",
]

__version__ = "0.1.0"
