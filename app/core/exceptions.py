"""Domain errors: each carries an HTTP status and a stable code clients can branch on."""
from collections.abc import Iterable


class DomainError(Exception):
    status_code: int = 400
    code: str = "E_DOMAIN"
    message: str = "Request could not be processed."

    def __init__(self, message: str | None = None):
        self.message = message or type(self).message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "message": self.message, "code": self.code}


class AccessDenied(DomainError):
    status_code = 403
    code = "E_ACCESS_DENIED"
    message = "Access denied."


class ProductNotFound(DomainError):
    code = "PRODUCT_NOT_FOUND"
    message = "Product not found."

    def __init__(self, product_ids: Iterable[int] | None = None):
        self.product_ids = sorted(product_ids or [])
        message = None
        if self.product_ids:
            message = "The following products were not found: " + ", ".join(str(i) for i in self.product_ids)
        super().__init__(message)


class CouponNotFound(DomainError):
    status_code = 404
    code = "COUPON_NOT_FOUND"
    message = "Coupon not found."

    def __init__(self, code: str | None = None):
        super().__init__(f'Coupon "{code}" was not found.' if code else None)


class CouponInactive(DomainError):
    code = "COUPON_INACTIVE"
    message = "Coupon is inactive."

    def __init__(self, code: str | None = None):
        super().__init__(f'Coupon "{code}" is inactive.' if code else None)


class CouponExpired(DomainError):
    code = "COUPON_EXPIRED"
    message = "Coupon is expired or not yet valid."

    def __init__(self, code: str | None = None):
        super().__init__(f'Coupon "{code}" is expired or no longer valid.' if code else None)


class CouponUsageLimitExceeded(DomainError):
    code = "COUPON_USAGE_LIMIT_EXCEEDED"
    message = "Coupon usage limit has been reached."

    def __init__(self, code: str | None = None):
        super().__init__(f'Coupon "{code}" has reached its usage limit.' if code else None)


class CouponMinimumOrderValueNotMet(DomainError):
    code = "COUPON_MINIMUM_ORDER_VALUE_NOT_MET"
    message = "Minimum order value not met."

    def __init__(self, minimum_order_value=None):
        super().__init__(
            f"Minimum order value not met. Minimum: {minimum_order_value:.2f}" if minimum_order_value is not None else None
        )


class CouponUsageLimitTooLow(DomainError):
    code = "COUPON_NEW_USAGE_LIMIT_EQUALS_OR_LOWER_THAN_USAGE_COUNT"
    message = "The new usage limit is equal to or lower than the current usage count."


class OrderNotFound(DomainError):
    status_code = 404
    code = "ORDER_NOT_FOUND"
    message = "Order not found."

    def __init__(self, order_id: int | None = None):
        super().__init__(f'Order "{order_id}" was not found.' if order_id is not None else None)


class OrderAlreadyCancelled(DomainError):
    code = "E_ORDER_ALREADY_CANCELLED"
    message = "Order has already been cancelled."


class OrderCannotBeModified(DomainError):
    code = "E_ORDER_CANNOT_BE_MODIFIED"
    message = "Order has already been processed and cannot be modified."


class PaymentMethodNotSupported(DomainError):
    code = "PAYMENT_METHOD_NOT_SUPPORTED"
    message = "Payment method not supported."

    def __init__(self, method: str | None = None):
        super().__init__(f'Payment method "{method}" is not enabled at the moment.' if method else None)


class ConcurrentModification(DomainError):
    status_code = 409
    code = "E_CONCURRENT_MODIFICATION"
    message = "The resource was modified concurrently. Reload and try again."


class PaymentProviderError(DomainError):
    """A payment provider call failed (API error, bad response or timeout)."""

    status_code = 502
    code = "PAYMENT_PROVIDER_ERROR"
    message = "Payment provider request failed."

    def __init__(self, message: str | None = None, provider: str | None = None):
        self.provider = provider
        super().__init__(message)


class WebhookSignatureError(DomainError):
    code = "WEBHOOK_SIGNATURE_INVALID"
    message = "Webhook signature verification failed."


class PaymentConfigurationError(RuntimeError):
    """Deployment misconfiguration: a payment method or provider has no implementation wired in."""
