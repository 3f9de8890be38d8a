"""Typed domain errors and the FastAPI handler that renders them.

Every error carries a stable ``kind`` string, an HTTP status, a human message
and a ``context`` dict of the ids involved. Handlers never expose provider
payloads or stack traces to clients.
"""

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from libs.common.logging import get_logger

logger = get_logger(__name__)


class MarketplaceError(Exception):
    """Base class for recoverable-by-caller business errors."""

    kind = "marketplace_error"
    status_code = 400
    default_message = "Request could not be completed"

    def __init__(self, message: Optional[str] = None, **context: Any):
        self.message = message or self.default_message
        self.context = {k: v for k, v in context.items() if v is not None}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "error": self.kind,
            "detail": self.message,
            "context": {k: str(v) for k, v in self.context.items()},
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.message!r} {self.context}>"


class ItemUnavailable(MarketplaceError):
    kind = "item_unavailable"
    status_code = 409
    default_message = "Listing is no longer available in the requested quantity"


class ReservationFailed(MarketplaceError):
    kind = "reservation_failed"
    status_code = 409
    default_message = "Could not reserve every item in the cart"


class CheckoutConflict(MarketplaceError):
    kind = "checkout_conflict"
    status_code = 409
    default_message = "Your order clashed with another checkout. Please try again."


class InsufficientPoints(MarketplaceError):
    kind = "insufficient_points"
    status_code = 400
    default_message = "Not enough loyalty points"


class InsufficientWalletBalance(MarketplaceError):
    kind = "insufficient_wallet_balance"
    status_code = 400
    default_message = "Not enough wallet balance"


class InvalidTransition(MarketplaceError):
    kind = "invalid_transition"
    status_code = 409
    default_message = "Order cannot move to the requested status"


class InvalidReview(MarketplaceError):
    kind = "invalid_review"
    status_code = 409
    default_message = "This order cannot be reviewed"


class InvalidPickupCode(MarketplaceError):
    kind = "invalid_pickup_code"
    status_code = 400
    default_message = "Invalid pickup code"


class OrderNotFound(MarketplaceError):
    kind = "order_not_found"
    status_code = 404
    default_message = "Order not found"


class ReviewNotFound(MarketplaceError):
    kind = "review_not_found"
    status_code = 404
    default_message = "Review not found"


class ListingNotFound(MarketplaceError):
    kind = "listing_not_found"
    status_code = 404
    default_message = "Listing not found"


class BusinessNotFound(MarketplaceError):
    kind = "business_not_found"
    status_code = 404
    default_message = "Business not found"


class WalletNotFound(MarketplaceError):
    kind = "wallet_not_found"
    status_code = 404
    default_message = "Wallet not found"


class TopupNotFound(MarketplaceError):
    kind = "topup_not_found"
    status_code = 404
    default_message = "Top-up not found"


class InvalidTopup(MarketplaceError):
    kind = "invalid_topup"
    status_code = 400
    default_message = "Top-up amount is outside the allowed range"


class InvalidCart(MarketplaceError):
    kind = "invalid_cart"
    status_code = 400
    default_message = "Cart is invalid"


class InvalidListing(MarketplaceError):
    kind = "invalid_listing"
    status_code = 400
    default_message = "Listing data is invalid"


class ListingNotExpired(MarketplaceError):
    kind = "listing_not_expired"
    status_code = 409
    default_message = "Listing pickup window has not ended yet"


class NotAuthorized(MarketplaceError):
    kind = "not_authorized"
    status_code = 403
    default_message = "You are not allowed to perform this action"


class PaymentInitializationFailed(MarketplaceError):
    kind = "payment_initialization_failed"
    status_code = 502
    default_message = "Payment could not be started. Please try again."


class PaymentVerificationFailed(MarketplaceError):
    kind = "payment_verification_failed"
    status_code = 502
    default_message = "Payment could not be verified"


async def marketplace_error_handler(
    request: Request, exc: MarketplaceError
) -> JSONResponse:
    logger.info(
        "Business error %s on %s %s: %s",
        exc.kind,
        request.method,
        request.url.path,
        exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def add_exception_handlers(app: FastAPI) -> None:
    """Register handlers that turn domain errors into structured responses."""
    app.add_exception_handler(MarketplaceError, marketplace_error_handler)
