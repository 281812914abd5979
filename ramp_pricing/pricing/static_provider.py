from __future__ import annotations

from ramp_pricing.core.errors import PriceNotFoundError
from ramp_pricing.core.types import Currency
from ramp_pricing.pricing.base import PriceProvider
from ramp_pricing.pricing.price import Price


class StaticPriceProvider(PriceProvider):
    """
    Prices from a fixed reference-rate table (1 unit of X = rates[X] reference units).
    Every pair is routed through the reference currency, so a quote has up to two steps.
    """

    def __init__(self, rates: dict[str, float], reference: str = "EUR") -> None:
        self._reference = reference.upper()
        self._rates = {k.upper(): float(v) for k, v in rates.items()}
        self._rates[self._reference] = 1.0

    def set_rate(self, name: str, rate: float) -> None:
        self._rates[name.upper()] = float(rate)

    def _rate(self, name: str) -> float:
        rate = self._rates.get(name.upper())
        if rate is None or rate <= 0:
            raise PriceNotFoundError(f"No price for {name}")
        return rate

    async def get_price(self, from_: Currency, to: Currency) -> Price:
        src = from_.name.upper()
        dst = to.name.upper()
        if src == dst:
            return Price.create(from_.name, to.name, 1.0)

        legs: list[Price] = []
        if src != self._reference:
            legs.append(Price.create(from_.name, self._reference, 1 / self._rate(src)))
        if dst != self._reference:
            legs.append(Price.create(self._reference, to.name, self._rate(dst)))
        return Price.join(*legs)
