from __future__ import annotations

from abc import ABC, abstractmethod

from ramp_pricing.core.types import Currency
from ramp_pricing.pricing.price import Price


class PriceProvider(ABC):
    """Source of exchange rates. Failures propagate to the caller unchanged."""

    @abstractmethod
    async def get_price(self, from_: Currency, to: Currency) -> Price:
        raise NotImplementedError

    async def close(self) -> None:
        return None
