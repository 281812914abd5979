from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from ramp_pricing.core.errors import PricingError


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PriceStep:
    source: str
    target: str
    price: float
    provider: str
    timestamp: datetime = field(default_factory=_now)

    def invert(self) -> "PriceStep":
        return PriceStep(
            source=self.target,
            target=self.source,
            price=1 / self.price,
            provider=self.provider,
            timestamp=self.timestamp,
        )


@dataclass(frozen=True)
class Price:
    """
    Exchange rate between two named currencies.

    `price` is the number of source units paid for one target unit, so
    converting a source amount divides by it.
    """

    source: str
    target: str
    price: float
    steps: tuple[PriceStep, ...] = ()
    timestamp: datetime = field(default_factory=_now)

    @classmethod
    def create(cls, source: str, target: str, price: float, provider: str = "static") -> "Price":
        if price <= 0:
            raise PricingError(f"Invalid price {price} for {source} -> {target}")
        step = PriceStep(source=source, target=target, price=price, provider=provider)
        return cls(source=source, target=target, price=price, steps=(step,), timestamp=step.timestamp)

    @classmethod
    def join(cls, *prices: "Price") -> "Price":
        if not prices:
            raise ValueError("join needs at least one price")
        for a, b in zip(prices, prices[1:]):
            if a.target != b.source:
                raise ValueError(f"Cannot join {a.source}->{a.target} with {b.source}->{b.target}")
        value = 1.0
        steps: list[PriceStep] = []
        for p in prices:
            value *= p.price
            steps.extend(p.steps)
        return cls(
            source=prices[0].source,
            target=prices[-1].target,
            price=value,
            steps=tuple(steps),
            timestamp=min(p.timestamp for p in prices),
        )

    def convert(self, amount: float, decimals: int | None = None) -> float:
        target_amount = float(amount) / self.price
        return round(target_amount, decimals) if decimals is not None else target_amount

    def invert(self) -> "Price":
        return Price(
            source=self.target,
            target=self.source,
            price=1 / self.price,
            steps=tuple(s.invert() for s in reversed(self.steps)),
            timestamp=self.timestamp,
        )
