from abc import ABC

from ....schemas.planning import CriteriaWeights

WEIGHT_KEYS = ("workload_balance", "skill_match", "performance", "urgency", "geographic")


class BaseStrategy(ABC):
    """
    Базовая стратегия автоназначения.
    Определяет, какие критерии усиливаются для выбранной цели оптимизации.
    Усиление мультипликативное и применяется до нормировки весов,
    поэтому равномерное масштабирование весов не меняет ранжирование.
    """
    name: str = "base"
    emphasis: dict[str, float] = {}

    def adjust_weights(self, weights: CriteriaWeights) -> dict[str, float]:
        """Веса с учётом цели, нормированные к сумме 1"""
        raw = weights.as_dict()
        adjusted = {k: raw[k] * self.emphasis.get(k, 1.0) for k in WEIGHT_KEYS}
        return normalize_weights(adjusted)

    def describe(self) -> str:
        if not self.emphasis:
            return f"Goal '{self.name}': user weights applied as is"
        boosted = ", ".join(f"{k} x{v:g}" for k, v in sorted(self.emphasis.items()))
        return f"Goal '{self.name}': emphasis on {boosted}"


def normalize_weights(raw: dict[str, float]) -> dict[str, float]:
    """Нормировка к сумме 1; все нули - равные веса"""
    total = sum(raw[k] for k in WEIGHT_KEYS)
    if total <= 0:
        return {k: 1 / len(WEIGHT_KEYS) for k in WEIGHT_KEYS}
    return {k: raw[k] / total for k in WEIGHT_KEYS}
