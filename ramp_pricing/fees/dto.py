from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ramp_pricing.core.types import AccountType, FeeDirection, FeeType


class CreateFeeDto(BaseModel):
    label: str = Field(min_length=1)
    type: FeeType
    value: float = Field(ge=0, lt=1)
    direction: FeeDirection | None = None
    account_type: AccountType | None = None
    asset_ids: list[int] | None = None
    max_tx_volume: float | None = Field(default=None, gt=0)
    max_usages: int | None = Field(default=None, gt=0)
    expiry_date: datetime | None = None
    active: bool = True
    create_discount_code: bool = False
