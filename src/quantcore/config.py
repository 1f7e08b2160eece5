# config.py
# Runtime defaults, overridable through the environment.

import os

# --- Bootstrap ---
BOOTSTRAP_SAMPLES: int = int(os.getenv("QUANTCORE_BOOTSTRAP_SAMPLES", "500"))
CI_LOW: float = float(os.getenv("QUANTCORE_CI_LOW", "0.05"))      # lower CI percentile
CI_HIGH: float = float(os.getenv("QUANTCORE_CI_HIGH", "0.95"))    # upper CI percentile
MIN_BOOTSTRAP_SAMPLES: int = 30                                   # not configurable

# --- Orchestrator ---
# Empty means "let concurrent.futures pick".
_max_workers = os.getenv("QUANTCORE_MAX_WORKERS", "")
MAX_WORKERS: int | None = int(_max_workers) if _max_workers else None

# --- Reporting ---
TRADING_DAYS: int = int(os.getenv("QUANTCORE_TRADING_DAYS", "252"))   # theta per-day divisor
LOG_LEVEL: str = os.getenv("QUANTCORE_LOG_LEVEL", "WARNING")
