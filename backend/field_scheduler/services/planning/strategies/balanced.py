from .base import BaseStrategy


class BalanceWorkloadStrategy(BaseStrategy):
    """
    Стратегия: Равномерное распределение.
    Предпочитаем участника, у которого меньше всего загрузка в этот день.
    """
    name = "balance_workload"
    emphasis = {"workload_balance": 2.0}
