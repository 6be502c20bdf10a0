from collections.abc import Sequence

SENTINEL_PRICE = 1.0


def sparkline_points(history: Sequence[float] | None) -> list[float]:
    values = list(history or ())
    if not values:
        return [SENTINEL_PRICE, SENTINEL_PRICE]
    if len(values) == 1:
        return [SENTINEL_PRICE, values[0]]
    return values


def price_delta(history: Sequence[float] | None) -> float:
    values = list(history or ())
    if len(values) < 2:
        return 0.0
    return values[-1] - values[-2]


def price_range(history: Sequence[float] | None) -> tuple[float, float]:
    points = sparkline_points(history)
    low, high = min(points), max(points)
    if high == low:
        return low - 0.5, high + 0.5
    return low, high
