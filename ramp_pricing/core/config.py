from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from ramp_pricing.core.types import AccountType


class LoggingConfig(BaseModel):
    level: str = "INFO"


class StorageConfig(BaseModel):
    path: str = "data/pricing.sqlite3"


class PriceFeedConfig(BaseModel):
    kind: str = "static"  # static | http
    reference_currency: str = "EUR"
    base_url: str = "http://localhost:8080"
    timeout_sec: float = 10.0
    # 1 unit of key = value units of the reference currency
    rates: dict[str, float] = Field(default_factory=dict)


class PricingConfig(BaseModel):
    card_fee: float = 0.0399
    default_account_type: AccountType = AccountType.PERSONAL
    reference_fiat: str = "EUR"
    limit_fiat: str = "CHF"
    max_volume_haircut: float = 0.01
    min_pay_in_factor: float = 0.5
    spec_refresh_interval_sec: int = 3600
    default_min_fee: float = 0.0
    default_min_volume: float = 0.0


class SignUpFeesConfig(BaseModel):
    default: list[int] = Field(default_factory=list)
    by_ref: dict[str, list[int]] = Field(default_factory=dict)
    by_wallet: dict[int, list[int]] = Field(default_factory=dict)


class FiatConfig(BaseModel):
    id: int
    name: str
    sellable: bool = True


class AssetConfig(BaseModel):
    id: int
    name: str
    blockchain: str
    dex_name: str | None = None  # defaults to name
    sellable: bool = True


class CurrenciesConfig(BaseModel):
    fiats: list[FiatConfig] = Field(default_factory=list)
    assets: list[AssetConfig] = Field(default_factory=list)


class AppConfig(BaseModel):
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    price_feed: PriceFeedConfig = Field(default_factory=PriceFeedConfig)
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    sign_up_fees: SignUpFeesConfig = Field(default_factory=SignUpFeesConfig)
    currencies: CurrenciesConfig = Field(default_factory=CurrenciesConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config(path: str, overrides: dict[str, Any] | None = None) -> AppConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)
    data = yaml.safe_load(p.read_text()) or {}
    if overrides:
        data = _deep_merge(data, overrides)
    return AppConfig.model_validate(data)


def load_seed(path: str) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)
    return yaml.safe_load(p.read_text()) or {}
