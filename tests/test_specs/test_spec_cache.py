from __future__ import annotations

import asyncio

from ramp_pricing.core.types import TransactionDirection, TransactionSpecification
from ramp_pricing.specs.cache import TransactionSpecificationCache

IN = TransactionDirection.IN
OUT = TransactionDirection.OUT


def _spec(system, asset, direction, min_fee, min_volume=0.0):
    return TransactionSpecification(system, asset, direction, min_fee, min_volume)


def _loaded_cache(store, specs, **kwargs):
    for s in specs:
        store.save_spec(s)
    cache = TransactionSpecificationCache(store, **kwargs)
    asyncio.run(cache.refresh())
    return cache


def test_lookup_prefers_most_specific_match(store):
    cache = _loaded_cache(
        store,
        [
            _spec("Bitcoin", None, None, 4.0),
            _spec("Bitcoin", "BTC", None, 3.0),
            _spec("Bitcoin", None, OUT, 2.0),
            _spec("Bitcoin", "BTC", OUT, 1.0),
        ],
        default_min_fee=9.0,
    )
    snap = cache.snapshot

    assert snap.lookup("Bitcoin", "BTC", OUT, cache.default).min_fee == 1.0
    assert snap.lookup("Bitcoin", "WBTC", OUT, cache.default).min_fee == 2.0
    assert snap.lookup("Bitcoin", "BTC", IN, cache.default).min_fee == 3.0
    assert snap.lookup("Bitcoin", "WBTC", IN, cache.default).min_fee == 4.0
    assert snap.lookup("Ethereum", "ETH", IN, cache.default).min_fee == 9.0


def test_wildcard_rank_does_not_match_concrete_values(store):
    cache = _loaded_cache(store, [_spec("Fiat", "EUR", IN, 1.0)])

    # (Fiat, *, *) is a stored wildcard, not "any row of system Fiat"
    assert cache.snapshot.lookup("Fiat", "CHF", IN, cache.default) is cache.default


def test_refresh_swaps_snapshot_without_touching_the_old_one(store):
    cache = _loaded_cache(store, [_spec("Fiat", None, IN, 1.0)])
    before = cache.snapshot

    store.save_spec(_spec("Fiat", None, OUT, 2.0))
    after = asyncio.run(cache.refresh())

    assert cache.snapshot is after
    assert len(before.specs) == 1
    assert len(after.specs) == 2
    assert after.version == before.version + 1
    assert after.loaded_at is not None


def test_concurrent_refresh_is_skipped(store):
    cache = TransactionSpecificationCache(store)

    async def _go():
        return await asyncio.gather(cache.refresh(), cache.refresh())

    first, second = asyncio.run(_go())

    assert cache.snapshot.version == 1
    assert first is cache.snapshot
    assert second.version == 0
