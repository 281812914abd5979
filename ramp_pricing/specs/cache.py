from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone

from ramp_pricing.core.types import TransactionDirection, TransactionSpecification
from ramp_pricing.monitoring.logger import get_logger
from ramp_pricing.storage.base import TransactionSpecificationRepository

# Lookup precedence, most specific first: (match asset, match direction).
# A rank that does not match on a field only accepts specs where that field is a wildcard (None).
SPEC_MATCH_RANKS: tuple[tuple[bool, bool], ...] = (
    (True, True),
    (False, True),
    (True, False),
    (False, False),
)


@dataclass(frozen=True)
class SpecSnapshot:
    specs: tuple[TransactionSpecification, ...] = ()
    loaded_at: datetime | None = None
    version: int = 0

    def find(
        self,
        system: str,
        asset: str | None,
        direction: TransactionDirection | None,
    ) -> TransactionSpecification | None:
        for s in self.specs:
            if s.system == system and s.asset == asset and s.direction == direction:
                return s
        return None

    def lookup(
        self,
        system: str,
        asset: str | None,
        direction: TransactionDirection,
        default: TransactionSpecification,
    ) -> TransactionSpecification:
        for match_asset, match_direction in SPEC_MATCH_RANKS:
            spec = self.find(
                system,
                asset if match_asset else None,
                direction if match_direction else None,
            )
            if spec is not None:
                return spec
        return default


class TransactionSpecificationCache:
    """
    Read cache of transaction specifications.

    Readers take `snapshot` once and work on it; `refresh` builds a new
    snapshot and swaps the reference, so a reader never sees a partial list.
    """

    def __init__(
        self,
        repo: TransactionSpecificationRepository,
        *,
        default_min_fee: float = 0.0,
        default_min_volume: float = 0.0,
    ) -> None:
        self._repo = repo
        self._snapshot = SpecSnapshot()
        self._lock = asyncio.Lock()
        self._log = get_logger("spec_cache")
        self.default = TransactionSpecification(
            system="",
            asset=None,
            direction=None,
            min_fee=default_min_fee,
            min_volume=default_min_volume,
        )

    @property
    def snapshot(self) -> SpecSnapshot:
        return self._snapshot

    async def refresh(self) -> SpecSnapshot:
        if self._lock.locked():
            self._log.debug("spec refresh already running, skipped")
            return self._snapshot
        async with self._lock:
            specs = tuple(await asyncio.to_thread(self._repo.find_all_specs))
            self._snapshot = SpecSnapshot(
                specs=specs,
                loaded_at=datetime.now(timezone.utc),
                version=self._snapshot.version + 1,
            )
            self._log.info("loaded %d transaction specifications (v%d)", len(specs), self._snapshot.version)
            return self._snapshot

    async def run(self, interval_sec: float = 3600) -> None:
        while True:
            try:
                await self.refresh()
            except Exception:
                self._log.exception("transaction specification refresh failed")
            await asyncio.sleep(interval_sec)
