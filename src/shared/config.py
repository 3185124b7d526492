"""Configuration for the Portfolio Health Check.

All settings are read from environment variables with sensible defaults.
Override via env vars for different environments.
"""

import os

# ============================================================
# Logging
# ============================================================

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# ============================================================
# Benchmark
# ============================================================
# SPY for US portfolios, ^GSPTSE for Canadian ones

HEALTH_BENCHMARK_SYMBOL = os.environ.get("HEALTH_BENCHMARK_SYMBOL", "SPY")
HEALTH_ANALYSIS_PERIOD_YEARS = int(os.environ.get("HEALTH_ANALYSIS_PERIOD_YEARS", "3"))
HEALTH_RISK_FREE_RATE = float(os.environ.get("HEALTH_RISK_FREE_RATE", "0.04"))    # Annualized, for Sharpe
HEALTH_BASE_CURRENCY = os.environ.get("HEALTH_BASE_CURRENCY", "USD")

# ============================================================
# Scoring Weights (nominally sum to 100)
# ============================================================

HEALTH_WEIGHT_ABSOLUTE_RETURN = float(os.environ.get("HEALTH_WEIGHT_ABSOLUTE_RETURN", "25"))
HEALTH_WEIGHT_RELATIVE_RETURN = float(os.environ.get("HEALTH_WEIGHT_RELATIVE_RETURN", "25"))
HEALTH_WEIGHT_UNDERWATER = float(os.environ.get("HEALTH_WEIGHT_UNDERWATER", "20"))
HEALTH_WEIGHT_VOLATILITY = float(os.environ.get("HEALTH_WEIGHT_VOLATILITY", "15"))
HEALTH_WEIGHT_DIVIDENDS = float(os.environ.get("HEALTH_WEIGHT_DIVIDENDS", "15"))

# ============================================================
# Flag Thresholds
# ============================================================

HEALTH_BENCHMARK_UNDERPERFORMANCE = float(os.environ.get("HEALTH_BENCHMARK_UNDERPERFORMANCE", "-15"))  # Alpha %
HEALTH_BENCHMARK_OUTPERFORMANCE = float(os.environ.get("HEALTH_BENCHMARK_OUTPERFORMANCE", "5"))        # Alpha %
HEALTH_UNDERWATER_DAYS = int(os.environ.get("HEALTH_UNDERWATER_DAYS", "365"))
HEALTH_OPPORTUNITY_COST_MIN = float(os.environ.get("HEALTH_OPPORTUNITY_COST_MIN", "500"))              # $
HEALTH_SMALL_POSITION_THRESHOLD = float(os.environ.get("HEALTH_SMALL_POSITION_THRESHOLD", "0.01"))     # 1% of portfolio
HEALTH_LARGE_POSITION_THRESHOLD = float(os.environ.get("HEALTH_LARGE_POSITION_THRESHOLD", "0.15"))     # 15% of portfolio
HEALTH_VOLATILITY_MAX = float(os.environ.get("HEALTH_VOLATILITY_MAX", "0.40"))                         # 40% annualized
HEALTH_VOLATILITY_LOW = float(os.environ.get("HEALTH_VOLATILITY_LOW", "0.15"))                         # 15% annualized
HEALTH_SHARPE_GOOD = float(os.environ.get("HEALTH_SHARPE_GOOD", "1.0"))
HEALTH_STRONG_MOMENTUM = float(os.environ.get("HEALTH_STRONG_MOMENTUM", "10"))                         # 1Y return %
HEALTH_LONG_TERM_HOLD_DAYS = int(os.environ.get("HEALTH_LONG_TERM_HOLD_DAYS", "730"))

# ============================================================
# Portfolio Aggregation
# ============================================================

# Holdings below this weight are skipped entirely by the portfolio roll-up
HEALTH_MIN_PORTFOLIO_WEIGHT = float(
    os.environ.get("HEALTH_MIN_PORTFOLIO_WEIGHT", str(HEALTH_SMALL_POSITION_THRESHOLD))
)
# Comma-separated, e.g. "CASH,VMFXX"
HEALTH_EXCLUDED_SYMBOLS = [
    s.strip() for s in os.environ.get("HEALTH_EXCLUDED_SYMBOLS", "").split(",") if s.strip()
]
# Narrative thresholds for portfolio-level recommendations
HEALTH_PORTFOLIO_OPPORTUNITY_COST_ALERT = float(
    os.environ.get("HEALTH_PORTFOLIO_OPPORTUNITY_COST_ALERT", "5000")
)
HEALTH_PORTFOLIO_UNDERWATER_ALERT_COUNT = int(
    os.environ.get("HEALTH_PORTFOLIO_UNDERWATER_ALERT_COUNT", "3")
)
HEALTH_TOP_N = int(os.environ.get("HEALTH_TOP_N", "5"))    # Worst performers / biggest drags

# ============================================================
# Market Calendar
# ============================================================

TRADING_DAYS_PER_YEAR = 252
