from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal, Union


class FeeType(str, Enum):
    BASE = "Base"
    DISCOUNT = "Discount"
    CUSTOM = "Custom"


class FeeDirection(str, Enum):
    BUY = "Buy"
    SELL = "Sell"
    CONVERT = "Convert"


class AccountType(str, Enum):
    PERSONAL = "Personal"
    BUSINESS = "Business"
    SOLE_PROPRIETORSHIP = "SoleProprietorship"


class TransactionDirection(str, Enum):
    IN = "In"
    OUT = "Out"


class PaymentMethod(str, Enum):
    BANK = "Bank"
    INSTANT = "Instant"
    CARD = "Card"


class TransactionError(str, Enum):
    AMOUNT_TOO_LOW = "AmountTooLow"
    AMOUNT_TOO_HIGH = "AmountTooHigh"


class ValidationError(str, Enum):
    PAY_IN_TOO_SMALL = "PayInTooSmall"
    PAY_IN_NOT_SELLABLE = "PayInNotSellable"


@dataclass(frozen=True)
class Fiat:
    id: int
    name: str
    sellable: bool = True
    kind: Literal["fiat"] = "fiat"


@dataclass(frozen=True)
class Asset:
    id: int
    name: str
    blockchain: str
    dex_name: str
    sellable: bool = True
    kind: Literal["asset"] = "asset"


Currency = Union[Fiat, Asset]


def is_fiat(currency: Currency) -> bool:
    return currency.kind == "fiat"


@dataclass(frozen=True)
class Fee:
    id: int | None
    label: str
    type: FeeType
    value: float
    direction: FeeDirection | None = None
    account_type: AccountType | None = None
    asset_list: tuple[int, ...] | None = None
    max_tx_volume: float | None = None
    max_usages: int | None = None
    expiry_date: datetime | None = None
    active: bool = True
    discount_code: str | None = None


@dataclass
class UserData:
    id: int
    account_type: AccountType = AccountType.PERSONAL
    individual_fee_list: list[int] = field(default_factory=list)
    # CHF, None means no ceiling
    available_trading_limit: float | None = None


@dataclass(frozen=True)
class TransactionSpecification:
    system: str
    asset: str | None
    direction: TransactionDirection | None
    min_fee: float
    min_volume: float


@dataclass(frozen=True)
class MinAmount:
    amount: float
    asset: str


@dataclass(frozen=True)
class TxSpec:
    min_fee: float
    min_volume: float
    max_volume: float | None = None


@dataclass(frozen=True)
class FeeRequest:
    direction: FeeDirection
    asset: Asset | None
    tx_volume: float | None = None  # EUR


@dataclass(frozen=True)
class FeeResolution:
    fee: float
    expired_fee_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class TargetEstimation:
    exchange_rate: float
    rate: float | None
    fee_amount: float
    estimated_amount: float
    source_amount: float


@dataclass(frozen=True)
class TransactionDetails:
    exchange_rate: float
    rate: float | None
    fee_amount: float
    estimated_amount: float
    source_amount: float
    min_fee: float
    min_volume: float
    min_fee_target: float
    min_volume_target: float
    max_volume: float | None
    max_volume_target: float | None
    fee: float
    is_valid: bool
    error: TransactionError | None = None
