from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timedelta, timezone

import pytest

from ramp_pricing.core.config import SignUpFeesConfig
from ramp_pricing.core.errors import BadRequestError, NotFoundError
from ramp_pricing.core.types import AccountType, FeeDirection, FeeType, UserData
from ramp_pricing.fees.dto import CreateFeeDto
from ramp_pricing.fees.fee_service import FeeService, discount_code_for


def _create(services, **kwargs):
    return asyncio.run(services.fee_service.create_fee(CreateFeeDto(**kwargs)))


def test_create_fee_generates_code(services):
    fee = _create(services, label="welcome", type=FeeType.DISCOUNT, value=0.005, create_discount_code=True)

    assert fee.id is not None
    assert re.fullmatch(r"[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{4}", fee.discount_code)
    assert fee.discount_code == discount_code_for("welcome", FeeType.DISCOUNT)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"label": "b", "type": FeeType.BASE, "value": 0.01, "account_type": AccountType.PERSONAL,
         "asset_ids": [1], "create_discount_code": True},
        {"label": "d", "type": FeeType.DISCOUNT, "value": 0.01, "max_usages": 3},
        {"label": "b", "type": FeeType.BASE, "value": 0.01, "asset_ids": [1]},
        {"label": "b", "type": FeeType.BASE, "value": 0.01, "account_type": AccountType.PERSONAL},
    ],
)
def test_create_fee_rejects_invalid_combinations(services, kwargs):
    with pytest.raises(BadRequestError):
        _create(services, **kwargs)


def test_create_fee_rejects_duplicates_and_unknown_assets(services):
    _create(services, label="base", type=FeeType.BASE, value=0.01, account_type=AccountType.PERSONAL, asset_ids=[1])

    with pytest.raises(BadRequestError):
        _create(services, label="base", type=FeeType.BASE, value=0.02, account_type=AccountType.PERSONAL, asset_ids=[1])
    with pytest.raises(NotFoundError):
        _create(services, label="other", type=FeeType.BASE, value=0.02, account_type=AccountType.PERSONAL, asset_ids=[99])


def test_single_use_code_can_only_be_redeemed_once(services, store):
    fee = _create(
        services, label="once", type=FeeType.DISCOUNT, value=0.005, create_discount_code=True, max_usages=1
    )
    first = UserData(id=1)
    second = UserData(id=2)

    asyncio.run(services.fee_service.add_discount_code_user(first, fee.discount_code))

    assert first.individual_fee_list == [fee.id]
    assert store.count_fee_usages(fee.id) == 1
    with pytest.raises(BadRequestError, match="Max usages"):
        asyncio.run(services.fee_service.add_discount_code_user(second, fee.discount_code))
    assert second.individual_fee_list == []


def test_unknown_code_is_not_found(services):
    with pytest.raises(NotFoundError):
        asyncio.run(services.fee_service.add_discount_code_user(UserData(id=1), "0000-0000-0000"))


def test_expired_and_mismatched_codes_are_rejected(services):
    expired = _create(
        services,
        label="old",
        type=FeeType.DISCOUNT,
        value=0.005,
        create_discount_code=True,
        expiry_date=datetime.now(timezone.utc) - timedelta(hours=1),
    )
    business = _create(
        services,
        label="biz",
        type=FeeType.DISCOUNT,
        value=0.005,
        create_discount_code=True,
        account_type=AccountType.BUSINESS,
    )
    user = UserData(id=1, account_type=AccountType.PERSONAL)

    with pytest.raises(BadRequestError, match="expired"):
        asyncio.run(services.fee_service.add_discount_code_user(user, expired.discount_code))
    with pytest.raises(BadRequestError, match="Account type"):
        asyncio.run(services.fee_service.add_discount_code_user(user, business.discount_code))


def test_sign_up_fees_skip_failures(services, store, caplog):
    good = _create(services, label="signup", type=FeeType.CUSTOM, value=0.008)
    biz = _create(services, label="signup-biz", type=FeeType.CUSTOM, value=0.006, account_type=AccountType.BUSINESS)
    ref = _create(services, label="ref", type=FeeType.DISCOUNT, value=0.002, create_discount_code=True)

    fee_service = FeeService(
        store,
        store,
        services.registry,
        services.janitor,
        sign_up_fees=SignUpFeesConfig(default=[good.id, 999], by_ref={"abc": [biz.id, ref.id]}),
    )
    user = UserData(id=5, account_type=AccountType.PERSONAL)

    with caplog.at_level(logging.WARNING):
        asyncio.run(fee_service.add_custom_sign_up_fees(user, ref="abc"))

    assert user.individual_fee_list == [good.id, ref.id]
    assert sum("Fee mapping error" in r.getMessage() for r in caplog.records) == 2


def test_same_label_codes_in_other_direction_are_rejected(services):
    _create(
        services, label="promo", type=FeeType.DISCOUNT, value=0.002,
        direction=FeeDirection.BUY, create_discount_code=True,
    )

    with pytest.raises(BadRequestError, match="Discount code already exists"):
        _create(
            services, label="promo", type=FeeType.DISCOUNT, value=0.003,
            direction=FeeDirection.SELL, create_discount_code=True,
        )
