from __future__ import annotations

from dataclasses import dataclass

from ramp_pricing.core.config import AppConfig
from ramp_pricing.core.registry import CurrencyRegistry
from ramp_pricing.fees.fee_service import FeeService
from ramp_pricing.fees.janitor import FeeAssignmentJanitor
from ramp_pricing.pricing.base import PriceProvider
from ramp_pricing.pricing.http_provider import HttpPriceProvider
from ramp_pricing.pricing.static_provider import StaticPriceProvider
from ramp_pricing.specs.cache import TransactionSpecificationCache
from ramp_pricing.storage.sqlite_store import SQLiteStore
from ramp_pricing.transactions.transaction_helper import TransactionHelper


@dataclass
class PricingServices:
    cfg: AppConfig
    store: SQLiteStore
    registry: CurrencyRegistry
    prices: PriceProvider
    spec_cache: TransactionSpecificationCache
    janitor: FeeAssignmentJanitor
    fee_service: FeeService
    transaction_helper: TransactionHelper

    async def close(self) -> None:
        await self.janitor.drain()
        await self.prices.close()
        self.store.close()


def build_price_provider(cfg: AppConfig) -> PriceProvider:
    feed = cfg.price_feed
    if feed.kind == "http":
        return HttpPriceProvider(feed)
    if feed.kind == "static":
        return StaticPriceProvider(feed.rates, reference=feed.reference_currency)
    raise ValueError(f"Unknown price feed kind: {feed.kind}")


def build_services(
    cfg: AppConfig,
    *,
    store: SQLiteStore | None = None,
    prices: PriceProvider | None = None,
) -> PricingServices:
    store = store or SQLiteStore(cfg.storage.path)
    store.init_schema()
    registry = CurrencyRegistry.from_config(cfg.currencies)
    prices = prices or build_price_provider(cfg)

    spec_cache = TransactionSpecificationCache(
        store,
        default_min_fee=cfg.pricing.default_min_fee,
        default_min_volume=cfg.pricing.default_min_volume,
    )
    janitor = FeeAssignmentJanitor(store)
    fee_service = FeeService(
        store,
        store,
        registry,
        janitor,
        cfg=cfg.pricing,
        sign_up_fees=cfg.sign_up_fees,
    )
    helper = TransactionHelper(spec_cache, prices, fee_service, registry, cfg=cfg.pricing)
    return PricingServices(
        cfg=cfg,
        store=store,
        registry=registry,
        prices=prices,
        spec_cache=spec_cache,
        janitor=janitor,
        fee_service=fee_service,
        transaction_helper=helper,
    )
