from .balanced import BalanceWorkloadStrategy
from .travel import MinimizeTravelStrategy
from .efficiency import MaximizeEfficiencyStrategy, PrioritizeSkillsStrategy, CustomerSatisfactionStrategy
from .hybrid import HybridStrategy
from .base import BaseStrategy, normalize_weights
from ....models.scheduling import OptimizationGoal


def get_strategy(goal: OptimizationGoal) -> BaseStrategy:
    if goal == OptimizationGoal.BALANCE_WORKLOAD:
        return BalanceWorkloadStrategy()
    elif goal == OptimizationGoal.MINIMIZE_TRAVEL:
        return MinimizeTravelStrategy()
    elif goal == OptimizationGoal.MAXIMIZE_EFFICIENCY:
        return MaximizeEfficiencyStrategy()
    elif goal == OptimizationGoal.PRIORITIZE_SKILLS:
        return PrioritizeSkillsStrategy()
    elif goal == OptimizationGoal.CUSTOMER_SATISFACTION:
        return CustomerSatisfactionStrategy()
    else:  # Hybrid
        return HybridStrategy()


__all__ = ["get_strategy", "BaseStrategy", "normalize_weights"]
