from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure `import ramp_pricing.*` works when running tests without installing the package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from ramp_pricing.app.bootstrap import PricingServices, build_services  # noqa: E402
from ramp_pricing.core.config import (  # noqa: E402
    AppConfig,
    AssetConfig,
    CurrenciesConfig,
    FiatConfig,
    PricingConfig,
    SignUpFeesConfig,
)
from ramp_pricing.core.types import Fee  # noqa: E402
from ramp_pricing.pricing.static_provider import StaticPriceProvider  # noqa: E402
from ramp_pricing.storage.sqlite_store import SQLiteStore  # noqa: E402

RATES = {"CHF": 1.0, "BTC": 50000.0, "ETH": 2500.0, "USDT": 1.0}


def make_config(**pricing: object) -> AppConfig:
    return AppConfig(
        pricing=PricingConfig(card_fee=0.05, **pricing),
        sign_up_fees=SignUpFeesConfig(),
        currencies=CurrenciesConfig(
            fiats=[FiatConfig(id=1, name="EUR"), FiatConfig(id=2, name="CHF")],
            assets=[
                AssetConfig(id=1, name="BTC", blockchain="Bitcoin", dex_name="BTC"),
                AssetConfig(id=2, name="ETH", blockchain="Ethereum", dex_name="ETH"),
                AssetConfig(id=3, name="USDT", blockchain="Ethereum", dex_name="USDT", sellable=False),
            ],
        ),
    )


@pytest.fixture()
def store() -> SQLiteStore:
    s = SQLiteStore(":memory:")
    s.init_schema()
    yield s
    s.close()


@pytest.fixture()
def prices() -> StaticPriceProvider:
    return StaticPriceProvider(RATES, reference="EUR")


@pytest.fixture()
def services(store: SQLiteStore, prices: StaticPriceProvider) -> PricingServices:
    return build_services(make_config(), store=store, prices=prices)


@pytest.fixture()
def add_fee(store: SQLiteStore):
    def _add(**kwargs: object) -> Fee:
        kwargs.setdefault("id", None)
        return store.save_fee(Fee(**kwargs))

    return _add
