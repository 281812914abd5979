from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from typing import Any

from ramp_pricing.app.bootstrap import PricingServices, build_services
from ramp_pricing.core.config import load_config, load_seed
from ramp_pricing.core.errors import PricingError
from ramp_pricing.core.types import (
    AccountType,
    PaymentMethod,
    TransactionDirection,
    TransactionSpecification,
    UserData,
)
from ramp_pricing.fees.dto import CreateFeeDto
from ramp_pricing.monitoring.logger import get_logger, setup_logging

log = get_logger("cli")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ramp_pricing")
    sub = p.add_subparsers(dest="command", required=True)

    q = sub.add_parser("quote", help="Compute transaction details for a pair")
    q.add_argument("--config", required=True, help="Path to YAML config (e.g., configs/default.yaml)")
    q.add_argument("--from", dest="from_", required=True, help="Source currency name (e.g., EUR)")
    q.add_argument("--to", required=True, help="Target currency name (e.g., BTC)")
    amount = q.add_mutually_exclusive_group(required=True)
    amount.add_argument("--amount", type=float, help="Source amount")
    amount.add_argument("--target-amount", type=float, help="Desired target amount")
    q.add_argument("--user-data-id", type=int, default=None)
    q.add_argument("--payment-method", choices=[m.value for m in PaymentMethod], default=None)

    s = sub.add_parser("seed", help="Load fees, specifications and user data into the store")
    s.add_argument("--config", required=True)
    s.add_argument("--seed", required=True, help="Path to seed YAML (e.g., configs/seed.yaml)")
    return p


async def seed_store(services: PricingServices, data: dict[str, Any]) -> dict[str, int]:
    counts = {"fees": 0, "specs": 0, "user_data": 0}

    for raw in data.get("fees") or []:
        dto = CreateFeeDto.model_validate(raw)
        try:
            await services.fee_service.create_fee(dto)
            counts["fees"] += 1
        except PricingError as e:
            log.warning("skipped fee %s: %s", dto.label, e)

    for raw in data.get("transaction_specifications") or []:
        direction = raw.get("direction")
        services.store.save_spec(
            TransactionSpecification(
                system=str(raw["system"]),
                asset=raw.get("asset"),
                direction=TransactionDirection(direction) if direction else None,
                min_fee=float(raw.get("min_fee", 0.0)),
                min_volume=float(raw.get("min_volume", 0.0)),
            )
        )
        counts["specs"] += 1

    for raw in data.get("user_data") or []:
        user_data = UserData(
            id=int(raw["id"]),
            account_type=AccountType(raw.get("account_type", AccountType.PERSONAL.value)),
            available_trading_limit=raw.get("available_trading_limit"),
        )
        services.store.save_user_data(user_data)
        await services.fee_service.add_custom_sign_up_fees(user_data, ref=raw.get("ref"), wallet_id=raw.get("wallet_id"))
        for code in raw.get("discount_codes") or []:
            try:
                await services.fee_service.add_discount_code_user(user_data, code)
            except PricingError as e:
                log.warning("user data %s: discount code %s rejected: %s", user_data.id, code, e)
        counts["user_data"] += 1

    await services.spec_cache.refresh()
    return counts


async def _quote(services: PricingServices, args: argparse.Namespace) -> dict[str, Any]:
    await services.spec_cache.refresh()
    registry = services.registry
    user_data = None
    if args.user_data_id is not None:
        user_data = services.store.get_user_data(args.user_data_id)
        if user_data is None:
            raise PricingError(f"user data {args.user_data_id} not found")
    details = await services.transaction_helper.get_tx_details(
        args.amount,
        args.target_amount,
        registry.get(args.from_),
        registry.get(args.to),
        user_data=user_data,
        payment_method=PaymentMethod(args.payment_method) if args.payment_method else None,
    )
    out = asdict(details)
    out["error"] = details.error.value if details.error else None
    return out


async def _amain(argv: list[str]) -> int:
    args = _build_parser().parse_args(argv)
    cfg = load_config(args.config)
    setup_logging(cfg.logging.level)
    services = build_services(cfg)
    try:
        if args.command == "quote":
            print(json.dumps(await _quote(services, args), indent=2))
        elif args.command == "seed":
            counts = await seed_store(services, load_seed(args.seed))
            print(json.dumps(counts))
    except PricingError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        await services.close()
    return 0


def main() -> None:
    try:
        rc = asyncio.run(_amain(sys.argv[1:]))
    except KeyboardInterrupt:
        rc = 130
    raise SystemExit(rc)


if __name__ == "__main__":
    main()
