from __future__ import annotations

import hashlib
from datetime import datetime, timezone

from ramp_pricing.core.config import PricingConfig, SignUpFeesConfig
from ramp_pricing.core.errors import BadRequestError, InternalError, NotFoundError, PricingError
from ramp_pricing.core.registry import CurrencyRegistry
from ramp_pricing.core.types import AccountType, Fee, FeeRequest, FeeResolution, FeeType, UserData
from ramp_pricing.fees.dto import CreateFeeDto
from ramp_pricing.fees.janitor import FeeAssignmentJanitor
from ramp_pricing.monitoring.logger import get_logger
from ramp_pricing.storage.base import FeeRepository, UserDataStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def discount_code_for(label: str, fee_type: FeeType) -> str:
    h = hashlib.sha256(f"{label}{fee_type.value}".encode("utf-8")).hexdigest().upper()
    return f"{h[0:4]}-{h[4:8]}-{h[8:12]}"


def is_expired_fee(fee: Fee | None, now: datetime | None = None) -> bool:
    if fee is None or not fee.active:
        return True
    if fee.expiry_date is None:
        return False
    expiry = fee.expiry_date
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return expiry < (now or _utcnow())


def is_valid_fee(fee: Fee, request: FeeRequest, account_type: AccountType, now: datetime | None = None) -> bool:
    if is_expired_fee(fee, now):
        return False
    if fee.account_type and fee.account_type != account_type:
        return False
    if fee.direction and fee.direction != request.direction:
        return False
    if fee.asset_list and (request.asset is None or request.asset.id not in fee.asset_list):
        return False
    if fee.max_tx_volume is not None and request.tx_volume is not None and fee.max_tx_volume < request.tx_volume:
        return False
    return True


class FeeService:
    def __init__(
        self,
        fee_repo: FeeRepository,
        user_store: UserDataStore,
        registry: CurrencyRegistry,
        janitor: FeeAssignmentJanitor,
        cfg: PricingConfig | None = None,
        sign_up_fees: SignUpFeesConfig | None = None,
    ) -> None:
        self._fees = fee_repo
        self._users = user_store
        self._registry = registry
        self._janitor = janitor
        self._cfg = cfg or PricingConfig()
        self._sign_up_fees = sign_up_fees or SignUpFeesConfig()
        self._log = get_logger("fee_service")

    # --- administration --- #

    async def create_fee(self, dto: CreateFeeDto) -> Fee:
        if self._fees.find_fee_by_label(dto.label, dto.direction):
            raise BadRequestError("Fee already created")
        if dto.type == FeeType.BASE and dto.create_discount_code:
            raise BadRequestError("Base fees cannot have a discount code")
        if dto.max_usages and not dto.create_discount_code:
            raise BadRequestError("Fees without a discount code cannot have max usages")
        if dto.type == FeeType.BASE and (not dto.account_type or not dto.asset_ids):
            raise BadRequestError("Base fees must have an account type and asset ids")

        asset_list: tuple[int, ...] | None = None
        if dto.asset_ids:
            for asset_id in dto.asset_ids:
                if self._registry.asset_by_id(asset_id) is None:
                    raise NotFoundError(f"Asset with id {asset_id} not found")
            asset_list = tuple(dto.asset_ids)

        discount_code = None
        if dto.create_discount_code:
            discount_code = discount_code_for(dto.label, dto.type)
            if self._fees.find_fee_by_discount_code(discount_code):
                raise BadRequestError("Discount code already exists")

        fee = Fee(
            id=None,
            label=dto.label,
            type=dto.type,
            value=dto.value,
            direction=dto.direction,
            account_type=dto.account_type,
            asset_list=asset_list,
            max_tx_volume=dto.max_tx_volume,
            max_usages=dto.max_usages,
            expiry_date=dto.expiry_date,
            active=dto.active,
            discount_code=discount_code,
        )
        saved = self._fees.save_fee(fee)
        self._log.info("created %s fee %s (%s) id=%s", saved.type.value, saved.label, saved.value, saved.id)
        return saved

    # --- assignments --- #

    async def add_custom_sign_up_fees(
        self,
        user_data: UserData,
        ref: str | None = None,
        wallet_id: int | None = None,
    ) -> None:
        fee_ids = list(self._sign_up_fees.default)
        if ref:
            fee_ids += self._sign_up_fees.by_ref.get(ref, [])
        if wallet_id is not None:
            fee_ids += self._sign_up_fees.by_wallet.get(wallet_id, [])

        for fee_id in dict.fromkeys(fee_ids):
            try:
                await self.add_fee_internal(user_data, fee_id)
            except PricingError as e:
                self._log.warning("Fee mapping error: %s; userDataId: %s; feeId: %s", e, user_data.id, fee_id)
                continue

    async def add_discount_code_user(self, user_data: UserData, discount_code: str) -> Fee:
        fee = await self.get_fee_by_discount_code(discount_code)
        await self._verify_fee(fee, user_data.account_type)
        self._assign(user_data, fee)
        return fee

    async def add_fee_internal(self, user_data: UserData, fee_id: int) -> Fee:
        fee = self._fees.find_fee(fee_id)
        if fee is None:
            raise NotFoundError(f"Fee {fee_id} not found")
        await self._verify_fee(fee, user_data.account_type)
        self._assign(user_data, fee)
        return fee

    async def get_fee_by_discount_code(self, discount_code: str) -> Fee:
        fee = self._fees.find_fee_by_discount_code(discount_code)
        if fee is None:
            raise NotFoundError(f"Discount code {discount_code} not found")
        return fee

    # --- resolution --- #

    async def get_user_fee(self, request: FeeRequest, user_data: UserData) -> float:
        resolution = await self.resolve(request, account_type=user_data.account_type, user_data=user_data)
        self._janitor.dispatch(user_data, resolution.expired_fee_ids)
        return resolution.fee

    async def get_default_fee(self, request: FeeRequest, account_type: AccountType | None = None) -> float:
        resolution = await self.resolve(request, account_type=account_type or self._cfg.default_account_type)
        return resolution.fee

    async def resolve(
        self,
        request: FeeRequest,
        *,
        account_type: AccountType,
        user_data: UserData | None = None,
    ) -> FeeResolution:
        """
        Resolve the effective fee without touching the store.

        Individually assigned fees that turned out expired are returned in
        `expired_fee_ids`; removing them is up to the caller.
        """
        now = _utcnow()
        individual = list(user_data.individual_fee_list) if user_data else []
        candidates = self._fees.find_fee_candidates(individual)

        expired = tuple(f.id for f in candidates if f.id in individual and is_expired_fee(f, now))
        valid = [f for f in candidates if is_valid_fee(f, request, account_type, now)]

        fee = self._calculate_fee(valid, user_data.id if user_data else None)
        return FeeResolution(fee=fee, expired_fee_ids=expired)

    # --- helpers --- #

    def _calculate_fee(self, fees: list[Fee], user_data_id: int | None = None) -> float:
        custom = [f.value for f in fees if f.type == FeeType.CUSTOM]
        if custom:
            return min(custom)

        base = [f.value for f in fees if f.type == FeeType.BASE]
        if not base:
            raise InternalError("Base fee is missing")
        base_fee = min(base)
        discount_fee = max([f.value for f in fees if f.type == FeeType.DISCOUNT] + [0.0])

        if base_fee - discount_fee < 0:
            self._log.warning("User discount higher than base fee; userDataId: %s", user_data_id)
            return base_fee
        return base_fee - discount_fee

    async def _verify_fee(self, fee: Fee, account_type: AccountType) -> None:
        if is_expired_fee(fee):
            raise BadRequestError("Discount code is expired")
        if fee.account_type and fee.account_type != account_type:
            raise BadRequestError("Account type not matching")
        if fee.max_usages and fee.id is not None and self._users.count_fee_usages(fee.id) >= fee.max_usages:
            raise BadRequestError("Max usages for discount code taken")

    def _assign(self, user_data: UserData, fee: Fee) -> None:
        if fee.id is None:
            raise InternalError(f"Fee {fee.label} is not persisted")
        self._users.add_fee(user_data.id, fee.id)
        if fee.id not in user_data.individual_fee_list:
            user_data.individual_fee_list.append(fee.id)
