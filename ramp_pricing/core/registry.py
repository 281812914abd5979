from __future__ import annotations

from dataclasses import dataclass

from ramp_pricing.core.config import CurrenciesConfig
from ramp_pricing.core.errors import NotFoundError
from ramp_pricing.core.types import Asset, Currency, Fiat


@dataclass(frozen=True)
class CurrencyRegistry:
    fiats: dict[str, Fiat]
    assets: dict[str, Asset]

    @classmethod
    def from_config(cls, cfg: CurrenciesConfig) -> "CurrencyRegistry":
        fiats = {f.name.upper(): Fiat(id=f.id, name=f.name, sellable=f.sellable) for f in cfg.fiats}
        assets = {
            a.name.upper(): Asset(
                id=a.id,
                name=a.name,
                blockchain=a.blockchain,
                dex_name=a.dex_name or a.name,
                sellable=a.sellable,
            )
            for a in cfg.assets
        }
        return cls(fiats=fiats, assets=assets)

    def fiat(self, name: str) -> Fiat:
        f = self.fiats.get(name.upper())
        if f is None:
            raise NotFoundError(f"Fiat {name} not found")
        return f

    def asset(self, name: str) -> Asset:
        a = self.assets.get(name.upper())
        if a is None:
            raise NotFoundError(f"Asset {name} not found")
        return a

    def asset_by_id(self, asset_id: int) -> Asset | None:
        for a in self.assets.values():
            if a.id == asset_id:
                return a
        return None

    def get(self, name: str) -> Currency:
        """Resolve a fiat or an asset by name (fiat wins on a name clash)."""
        key = name.upper()
        if key in self.fiats:
            return self.fiats[key]
        if key in self.assets:
            return self.assets[key]
        raise NotFoundError(f"Currency {name} not found")
