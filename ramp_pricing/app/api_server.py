from __future__ import annotations

import asyncio
import contextlib
import os
from dataclasses import asdict
from typing import Any, AsyncIterator

import pydantic
from fastapi import FastAPI, HTTPException, Query

from ramp_pricing.app.bootstrap import PricingServices, build_services
from ramp_pricing.core.config import load_config
from ramp_pricing.core.errors import NotFoundError, PricingError
from ramp_pricing.core.types import AccountType, Asset, Fee, FeeDirection, FeeRequest, PaymentMethod, UserData
from ramp_pricing.fees.dto import CreateFeeDto
from ramp_pricing.monitoring.logger import get_logger, setup_logging

log = get_logger("api")


def _http_error(e: PricingError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=str(e))


def _fee_dict(fee: Fee) -> dict[str, Any]:
    d = asdict(fee)
    d["expiry_date"] = fee.expiry_date.isoformat() if fee.expiry_date else None
    return d


def _float_or_none(v: Any) -> float | None:
    if v is None or v == "":
        return None
    try:
        return float(v)
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"invalid amount: {v!r}") from e


def _int_or_none(v: Any) -> int | None:
    if v is None or v == "":
        return None
    try:
        return int(v)
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"invalid id: {v!r}") from e


def _enum(enum_cls: Any, v: Any) -> Any:
    if v is None:
        return None
    try:
        return enum_cls(v)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"invalid {enum_cls.__name__}: {v!r}") from e


def create_app(services: PricingServices) -> FastAPI:
    @contextlib.asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await services.spec_cache.refresh()
        task = asyncio.create_task(
            services.spec_cache.run(interval_sec=services.cfg.pricing.spec_refresh_interval_sec)
        )
        try:
            yield
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            await services.janitor.drain()

    app = FastAPI(title="ramp_pricing", lifespan=lifespan)
    registry = services.registry
    helper = services.transaction_helper
    fees = services.fee_service

    def user_data_or_404(user_data_id: int) -> UserData:
        user_data = services.store.get_user_data(user_data_id)
        if user_data is None:
            raise HTTPException(status_code=404, detail=f"user data {user_data_id} not found")
        return user_data

    def fee_asset_or_none(name: str | None) -> Asset | None:
        if not name:
            return None
        try:
            return registry.asset(name)
        except NotFoundError as e:
            raise _http_error(e) from e

    @app.get("/health")
    def health() -> dict[str, Any]:
        snap = services.spec_cache.snapshot
        return {
            "status": "ok",
            "spec_version": snap.version,
            "spec_loaded_at": snap.loaded_at.isoformat() if snap.loaded_at else None,
        }

    @app.get("/specs/in")
    async def in_specs(asset: str) -> dict[str, Any]:
        try:
            spec = await helper.get_in_specs(registry.get(asset))
        except PricingError as e:
            raise _http_error(e) from e
        return asdict(spec)

    @app.get("/specs")
    def specs(from_: str = Query(alias="from"), to: str = Query()) -> dict[str, Any]:
        try:
            spec = helper.get_specs(registry.get(from_), registry.get(to))
        except PricingError as e:
            raise _http_error(e) from e
        return {"min_fee": spec.min_fee, "min_volume": spec.min_volume, "asset": services.cfg.pricing.reference_fiat}

    @app.post("/quote")
    async def quote(payload: dict[str, Any]) -> dict[str, Any]:
        source_amount = _float_or_none(payload.get("amount"))
        target_amount = _float_or_none(payload.get("target_amount"))
        payment_method = _enum(PaymentMethod, payload.get("payment_method"))
        user_data_id = _int_or_none(payload.get("user_data_id"))
        try:
            from_ = registry.get(str(payload.get("from", "")))
            to = registry.get(str(payload.get("to", "")))
            user_data = user_data_or_404(user_data_id) if user_data_id is not None else None
            details = await helper.get_tx_details(
                source_amount, target_amount, from_, to, user_data=user_data, payment_method=payment_method
            )
        except PricingError as e:
            raise _http_error(e) from e
        out = asdict(details)
        out["error"] = details.error.value if details.error else None
        return out

    @app.post("/validate_input")
    async def validate_input(payload: dict[str, Any]) -> dict[str, Any]:
        amount = _float_or_none(payload.get("amount"))
        if amount is None:
            raise HTTPException(status_code=400, detail="amount is required")
        try:
            result = await helper.validate_input(registry.get(str(payload.get("asset", ""))), amount)
        except PricingError as e:
            raise _http_error(e) from e
        return {"valid": result is None, "error": result.value if result else None}

    @app.get("/fees/default")
    async def default_fee(
        direction: str,
        asset: str | None = None,
        tx_volume: float | None = None,
        account_type: str | None = None,
    ) -> dict[str, Any]:
        request = FeeRequest(
            direction=_enum(FeeDirection, direction),
            asset=fee_asset_or_none(asset),
            tx_volume=tx_volume,
        )
        try:
            fee = await fees.get_default_fee(request, _enum(AccountType, account_type))
        except PricingError as e:
            raise _http_error(e) from e
        return {"fee": fee}

    @app.get("/users/{user_data_id}/fee")
    async def user_fee(
        user_data_id: int,
        direction: str,
        asset: str | None = None,
        tx_volume: float | None = None,
    ) -> dict[str, Any]:
        user_data = user_data_or_404(user_data_id)
        request = FeeRequest(
            direction=_enum(FeeDirection, direction),
            asset=fee_asset_or_none(asset),
            tx_volume=tx_volume,
        )
        try:
            fee = await fees.get_user_fee(request, user_data)
        except PricingError as e:
            raise _http_error(e) from e
        return {"fee": fee}

    @app.post("/users/{user_data_id}/discount_codes")
    async def redeem_discount_code(user_data_id: int, payload: dict[str, Any]) -> dict[str, Any]:
        user_data = user_data_or_404(user_data_id)
        code = str(payload.get("code") or "").strip()
        if not code:
            raise HTTPException(status_code=400, detail="code is required")
        try:
            fee = await fees.add_discount_code_user(user_data, code)
        except PricingError as e:
            raise _http_error(e) from e
        log.info("user data %s redeemed discount code for fee %s", user_data_id, fee.id)
        return {"fee_id": fee.id, "individual_fee_list": user_data.individual_fee_list}

    @app.post("/fees")
    async def create_fee(payload: dict[str, Any]) -> dict[str, Any]:
        try:
            dto = CreateFeeDto.model_validate(payload)
        except pydantic.ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        try:
            fee = await fees.create_fee(dto)
        except PricingError as e:
            raise _http_error(e) from e
        return _fee_dict(fee)

    return app


def app_from_env() -> FastAPI:
    """uvicorn --factory entry point; reads PRICING_CONFIG (default configs/default.yaml)."""
    cfg = load_config(os.getenv("PRICING_CONFIG") or "configs/default.yaml")
    setup_logging(cfg.logging.level)
    return create_app(build_services(cfg))
