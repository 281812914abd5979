from __future__ import annotations

from typing import Any

import httpx

from ramp_pricing.core.config import PriceFeedConfig
from ramp_pricing.core.errors import PriceNotFoundError, PricingError
from ramp_pricing.core.types import Currency
from ramp_pricing.monitoring.logger import get_logger
from ramp_pricing.pricing.base import PriceProvider
from ramp_pricing.pricing.price import Price
from ramp_pricing.pricing.retry_policy import default_retry


class HttpPriceProvider(PriceProvider):
    """
    Client for a rate service that quotes every currency against one reference:

      GET /rates/{name} -> {"name": "BTC", "rate": 61234.5}

    where `rate` is the price of one unit in the reference currency.
    """

    def __init__(self, cfg: PriceFeedConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._cfg = cfg
        self._reference = cfg.reference_currency.upper()
        self._http = httpx.AsyncClient(base_url=cfg.base_url, timeout=cfg.timeout_sec, transport=transport)
        self._log = get_logger("price_feed")

    async def close(self) -> None:
        await self._http.aclose()

    @default_retry()
    async def _request(self, path: str) -> Any:
        r = await self._http.get(path)
        if r.status_code == 404:
            raise PriceNotFoundError(f"Price feed has no rate: {path}")
        if r.status_code >= 400:
            raise PricingError(f"Price feed error: http={r.status_code} body={r.text[:200]}")
        return r.json()

    async def _reference_rate(self, name: str) -> float:
        if name.upper() == self._reference:
            return 1.0
        data = await self._request(f"/rates/{name.upper()}")
        try:
            rate = float(data["rate"])
        except (KeyError, TypeError, ValueError) as e:
            raise PricingError(f"Malformed price feed response for {name}: {data!r}") from e
        if rate <= 0:
            raise PriceNotFoundError(f"No price for {name}")
        return rate

    async def get_price(self, from_: Currency, to: Currency) -> Price:
        if from_.name.upper() == to.name.upper():
            return Price.create(from_.name, to.name, 1.0, provider="http")

        legs: list[Price] = []
        if from_.name.upper() != self._reference:
            rate = await self._reference_rate(from_.name)
            legs.append(Price.create(from_.name, self._reference, 1 / rate, provider="http"))
        if to.name.upper() != self._reference:
            rate = await self._reference_rate(to.name)
            legs.append(Price.create(self._reference, to.name, rate, provider="http"))
        price = Price.join(*legs)
        self._log.debug("price %s->%s = %s", from_.name, to.name, price.price)
        return price
