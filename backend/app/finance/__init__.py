from .alerts import AlertPreferences, EvaluationContext, EvaluationSummary, evaluate_alerts
from .budget_variance import BudgetVarianceReport, analyze
from .dedup import DedupResult, dedupe
from .errors import InputDataError, StorageUnavailable
from .projection import STANDARD_HORIZONS, historical_real_values, project, project_portfolio, simulate
from .revenue_split import calculate_split
from .valuation import current_value

__all__ = [
    "AlertPreferences",
    "BudgetVarianceReport",
    "DedupResult",
    "EvaluationContext",
    "EvaluationSummary",
    "InputDataError",
    "STANDARD_HORIZONS",
    "StorageUnavailable",
    "analyze",
    "calculate_split",
    "current_value",
    "dedupe",
    "evaluate_alerts",
    "historical_real_values",
    "project",
    "project_portfolio",
    "simulate",
]
