from .base import BaseStrategy


class MinimizeTravelStrategy(BaseStrategy):
    """
    Стратегия: Минимум переездов.
    Предпочитаем участника, который уже рядом (предыдущая работа или база).
    """
    name = "minimize_travel"
    emphasis = {"geographic": 2.0}
