from .base import BaseStrategy


class MaximizeEfficiencyStrategy(BaseStrategy):
    """Стратегия: Максимальная эффективность - опытные и быстрые участники"""
    name = "maximize_efficiency"
    emphasis = {"performance": 2.0}


class PrioritizeSkillsStrategy(BaseStrategy):
    """Стратегия: Точное совпадение навыков важнее остального"""
    name = "prioritize_skills"
    emphasis = {"skill_match": 2.0}


class CustomerSatisfactionStrategy(BaseStrategy):
    """
    Стратегия: Удовлетворённость клиента.
    Качество исполнителя и срочность заказа важнее баланса загрузки.
    """
    name = "customer_satisfaction"
    emphasis = {"performance": 1.5, "urgency": 1.5}
