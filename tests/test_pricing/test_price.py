from __future__ import annotations

import asyncio

import pytest

from ramp_pricing.core.errors import PriceNotFoundError
from ramp_pricing.core.types import Asset, Fiat
from ramp_pricing.pricing.price import Price
from ramp_pricing.pricing.static_provider import StaticPriceProvider

EUR = Fiat(id=1, name="EUR")
CHF = Fiat(id=2, name="CHF")
BTC = Asset(id=1, name="BTC", blockchain="Bitcoin", dex_name="BTC")


def test_convert_divides_by_price():
    p = Price.create("EUR", "BTC", 50000.0)

    assert p.convert(1000) == pytest.approx(0.02)
    assert p.invert().convert(0.02) == pytest.approx(1000)
    assert p.convert(1234.5678, 2) == 0.02


def test_join_multiplies_and_keeps_steps():
    eur_chf = Price.create("CHF", "EUR", 1.05)
    eur_btc = Price.create("EUR", "BTC", 50000.0)

    joined = Price.join(eur_chf, eur_btc)

    assert (joined.source, joined.target) == ("CHF", "BTC")
    assert joined.price == pytest.approx(52500.0)
    assert [(s.source, s.target) for s in joined.steps] == [("CHF", "EUR"), ("EUR", "BTC")]
    assert [(s.source, s.target) for s in joined.invert().steps] == [("BTC", "EUR"), ("EUR", "CHF")]


def test_join_rejects_gaps():
    with pytest.raises(ValueError):
        Price.join(Price.create("CHF", "EUR", 1.05), Price.create("USD", "BTC", 60000.0))


def test_static_provider_routes_through_reference():
    provider = StaticPriceProvider({"CHF": 1.05, "BTC": 50000.0}, reference="EUR")

    eur_btc = asyncio.run(provider.get_price(EUR, BTC))
    chf_btc = asyncio.run(provider.get_price(CHF, BTC))
    same = asyncio.run(provider.get_price(BTC, BTC))

    assert eur_btc.price == pytest.approx(50000.0)
    assert len(eur_btc.steps) == 1
    assert chf_btc.price == pytest.approx(50000.0 / 1.05)
    assert len(chf_btc.steps) == 2
    assert same.price == 1.0


def test_static_provider_missing_rate_propagates():
    provider = StaticPriceProvider({}, reference="EUR")

    with pytest.raises(PriceNotFoundError):
        asyncio.run(provider.get_price(EUR, BTC))
