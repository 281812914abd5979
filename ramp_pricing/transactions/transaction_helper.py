from __future__ import annotations

from ramp_pricing.core.config import PricingConfig
from ramp_pricing.core.errors import BadRequestError
from ramp_pricing.core.registry import CurrencyRegistry
from ramp_pricing.core.types import (
    Asset,
    Currency,
    FeeDirection,
    FeeRequest,
    MinAmount,
    PaymentMethod,
    TargetEstimation,
    TransactionDetails,
    TransactionDirection,
    TransactionError,
    TxSpec,
    UserData,
    ValidationError,
    is_fiat,
)
from ramp_pricing.fees.fee_service import FeeService
from ramp_pricing.pricing.base import PriceProvider
from ramp_pricing.pricing.price import Price
from ramp_pricing.specs.cache import SpecSnapshot, TransactionSpecificationCache
from ramp_pricing.transactions.rounding import round_amount, round_max_amount

FIAT_SYSTEM = "Fiat"


def get_props(currency: Currency) -> tuple[str, str]:
    """(system, asset) key used in transaction specifications."""
    if isinstance(currency, Asset):
        return currency.blockchain, currency.dex_name
    return FIAT_SYSTEM, currency.name


def get_tx_direction(from_: Currency, to: Currency) -> FeeDirection:
    if is_fiat(from_) and not is_fiat(to):
        return FeeDirection.BUY
    if not is_fiat(from_) and is_fiat(to):
        return FeeDirection.SELL
    return FeeDirection.CONVERT


class TransactionHelper:
    def __init__(
        self,
        spec_cache: TransactionSpecificationCache,
        prices: PriceProvider,
        fee_service: FeeService,
        registry: CurrencyRegistry,
        cfg: PricingConfig | None = None,
    ) -> None:
        self._specs = spec_cache
        self._prices = prices
        self._fees = fee_service
        self._cfg = cfg or PricingConfig()
        self._eur = registry.fiat(self._cfg.reference_fiat)
        self._chf = registry.fiat(self._cfg.limit_fiat)

    # --- specifications --- #

    async def validate_input(self, from_: Currency, amount: float) -> ValidationError | None:
        in_spec = await self.get_in_specs(from_)
        if amount < in_spec.min_volume * self._cfg.min_pay_in_factor:
            return ValidationError.PAY_IN_TOO_SMALL

        if not from_.sellable:
            return ValidationError.PAY_IN_NOT_SELLABLE

        return None

    async def get_in_specs(self, from_: Currency) -> TxSpec:
        system, asset = get_props(from_)
        spec = self._specs.snapshot.lookup(system, asset, TransactionDirection.IN, self._specs.default)
        return await self._convert_to_source(from_, TxSpec(min_fee=spec.min_fee, min_volume=spec.min_volume))

    def get_specs(self, from_: Currency, to: Currency, snapshot: SpecSnapshot | None = None) -> TxSpec:
        """Pair floors in the reference fiat (EUR)."""
        from_system, from_asset = get_props(from_)
        to_system, to_asset = get_props(to)
        min_fee, min_deposit = self.get_default_specs(from_system, from_asset, to_system, to_asset, snapshot)
        return TxSpec(min_fee=min_fee.amount, min_volume=min_deposit.amount)

    def get_default_specs(
        self,
        from_system: str,
        from_asset: str | None,
        to_system: str,
        to_asset: str | None,
        snapshot: SpecSnapshot | None = None,
    ) -> tuple[MinAmount, MinAmount]:
        snap = snapshot or self._specs.snapshot
        in_spec = snap.lookup(from_system, from_asset, TransactionDirection.IN, self._specs.default)
        out_spec = snap.lookup(to_system, to_asset, TransactionDirection.OUT, self._specs.default)

        # both legs must clear their floors
        return (
            MinAmount(amount=out_spec.min_fee + in_spec.min_fee, asset=self._eur.name),
            MinAmount(amount=max(out_spec.min_volume, in_spec.min_volume), asset=self._eur.name),
        )

    # --- target estimation --- #

    async def get_tx_details(
        self,
        source_amount: float | None,
        target_amount: float | None,
        from_: Currency,
        to: Currency,
        user_data: UserData | None = None,
        payment_method: PaymentMethod | None = None,
    ) -> TransactionDetails:
        if (source_amount is None) == (target_amount is None):
            raise BadRequestError("Exactly one of source amount and target amount is required")

        specs = self.get_specs(from_, to, self._specs.snapshot)
        direction = get_tx_direction(from_, to)
        limit = user_data.available_trading_limit if user_data else None

        source_spec = await self._convert_to_source(from_, TxSpec(specs.min_fee, specs.min_volume, limit))
        target_spec = await self._convert_to_target(to, TxSpec(specs.min_fee, specs.min_volume, limit))

        fee_asset = to if isinstance(to, Asset) else from_ if isinstance(from_, Asset) else None
        if target_amount is not None:
            tx_currency, tx_volume = to, target_amount
        else:
            tx_currency, tx_volume = from_, source_amount

        fee = await self._get_tx_fee(user_data, direction, fee_asset, tx_currency, tx_volume, payment_method)

        target = await self.get_target_estimation(
            source_amount, target_amount, fee, source_spec.min_fee, from_, to
        )

        if target.source_amount < source_spec.min_volume:
            error: TransactionError | None = TransactionError.AMOUNT_TOO_LOW
        elif source_spec.max_volume is not None and target.source_amount > source_spec.max_volume:
            error = TransactionError.AMOUNT_TOO_HIGH
        else:
            error = None

        return TransactionDetails(
            exchange_rate=target.exchange_rate,
            rate=target.rate,
            fee_amount=target.fee_amount,
            estimated_amount=target.estimated_amount,
            source_amount=target.source_amount,
            min_fee=source_spec.min_fee,
            min_volume=source_spec.min_volume,
            min_fee_target=target_spec.min_fee,
            min_volume_target=target_spec.min_volume,
            max_volume=source_spec.max_volume,
            max_volume_target=target_spec.max_volume,
            fee=fee,
            is_valid=error is None,
            error=error,
        )

    async def get_target_estimation(
        self,
        input_amount: float | None,
        output_amount: float | None,
        fee: float,
        min_fee: float,
        from_: Currency,
        to: Currency,
    ) -> TargetEstimation:
        price = await self._prices.get_price(from_, to)

        if output_amount is not None:
            # gross up so the user still receives output_amount after the fee
            percent_fee_amount = price.invert().convert(output_amount * fee / (1 - fee))
            fee_amount = max(percent_fee_amount, min_fee)
            target_amount = output_amount
            source_amount = price.invert().convert(output_amount) + fee_amount
        elif input_amount is not None:
            fee_amount = max(input_amount * fee, min_fee)
            target_amount = price.convert(max(input_amount - fee_amount, 0))
            source_amount = input_amount
        else:
            raise BadRequestError("Exactly one of source amount and target amount is required")

        return TargetEstimation(
            exchange_rate=round_amount(price.price, from_),
            rate=round_amount(source_amount / target_amount, from_) if target_amount else None,
            fee_amount=round_amount(fee_amount, from_),
            estimated_amount=round_amount(target_amount, to),
            source_amount=round_amount(source_amount, from_),
        )

    # --- helpers --- #

    async def _get_tx_fee(
        self,
        user_data: UserData | None,
        direction: FeeDirection,
        asset: Asset | None,
        tx_currency: Currency,
        tx_volume: float,
        payment_method: PaymentMethod | None,
    ) -> float:
        if payment_method == PaymentMethod.CARD:
            return self._cfg.card_fee

        price = await self._prices.get_price(tx_currency, self._eur)
        request = FeeRequest(direction=direction, asset=asset, tx_volume=price.convert(tx_volume))

        if user_data:
            return await self._fees.get_user_fee(request, user_data)
        return await self._fees.get_default_fee(request)

    async def _convert_to_source(self, from_: Currency, spec: TxSpec) -> TxSpec:
        price = (await self._prices.get_price(from_, self._eur)).invert()

        max_volume = None
        if spec.max_volume is not None:
            if from_.name == self._chf.name:
                max_volume = spec.max_volume
            else:
                limit_price = (await self._prices.get_price(from_, self._chf)).invert()
                max_volume = limit_price.convert(spec.max_volume * (1 - self._cfg.max_volume_haircut))
            max_volume = round_max_amount(max_volume, from_)

        return TxSpec(
            min_fee=self._convert(spec.min_fee, price, from_),
            min_volume=self._convert(spec.min_volume, price, from_),
            max_volume=max_volume,
        )

    async def _convert_to_target(self, to: Currency, spec: TxSpec) -> TxSpec:
        price = await self._prices.get_price(self._eur, to)

        max_volume = None
        if spec.max_volume is not None:
            if to.name == self._chf.name:
                max_volume = spec.max_volume
            else:
                limit_price = await self._prices.get_price(self._chf, to)
                max_volume = limit_price.convert(spec.max_volume * (1 - self._cfg.max_volume_haircut))
            max_volume = round_max_amount(max_volume, to)

        return TxSpec(
            min_fee=self._convert(spec.min_fee, price, to),
            min_volume=self._convert(spec.min_volume, price, to),
            max_volume=max_volume,
        )

    @staticmethod
    def _convert(amount: float, price: Price, currency: Currency) -> float:
        return round_amount(price.convert(amount), currency)
