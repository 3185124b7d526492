"""Launch plans for development domain.

The health check runs on demand (no schedule): the data collaborator
triggers it with fresh payloads.
"""

from flytekit import LaunchPlan

from src.shared.config import HEALTH_BENCHMARK_SYMBOL, HEALTH_RISK_FREE_RATE
from src.wf7_health_check.workflow import portfolio_health_workflow

# WF7 Portfolio Health Check - manual trigger in DEV
wf7_dev_manual = LaunchPlan.get_or_create(
    name="wf7_portfolio_health_dev_manual",
    workflow=portfolio_health_workflow,
    default_inputs={
        "run_date": "",
        "benchmark_symbol": HEALTH_BENCHMARK_SYMBOL,
        "risk_free_rate": HEALTH_RISK_FREE_RATE,
    },
)
