from .base import BaseStrategy


class HybridStrategy(BaseStrategy):
    """Стратегия по умолчанию: веса пользователя без усиления"""
    name = "hybrid"
