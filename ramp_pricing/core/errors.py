from __future__ import annotations


class PricingError(Exception):
    """Base error; status_code maps the failure onto the HTTP layer."""

    status_code: int = 500


class BadRequestError(PricingError):
    status_code = 400


class NotFoundError(PricingError):
    status_code = 404


class InternalError(PricingError):
    """Configuration invariant broken (e.g. no base fee); not a user error."""

    status_code = 500


class PriceNotFoundError(PricingError):
    status_code = 502
