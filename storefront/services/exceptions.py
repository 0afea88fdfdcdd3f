# storefront/services/exceptions.py


class ServiceError(Exception):
    """Base class for service-layer errors.

    ``status_code`` and ``code`` describe how the API reports the error;
    ``detail`` is the human-readable reason shown to shoppers.
    """

    status_code = 400
    code = "cart_error"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class InvalidQuantityError(ServiceError):
    """Raised when a quantity is out of the accepted range."""
    code = "invalid_quantity"


class InsufficientStockError(ServiceError):
    """Raised when the catalog cannot cover the requested quantity."""
    code = "insufficient_stock"


class DomainValidationError(ServiceError):
    """Invalid domain input."""
    status_code = 422
    code = "invalid_request"


class ResourceNotFoundError(ServiceError):
    """Resource not found."""
    status_code = 404
    code = "not_found"


class ConflictError(ServiceError):
    """State conflict for the operation."""
    status_code = 409
    code = "cart_full"


class CouponError(ServiceError):
    """Coupon cannot be applied; ``detail`` carries the reason."""
    code = "coupon_rejected"

    def __init__(self, detail: str, *, coupon_code: str | None = None):
        self.coupon_code = coupon_code
        super().__init__(detail)


class CartRequestError(ServiceError):
    """The cart API answered with a non-success status."""
    code = "cart_request_failed"

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        super().__init__(detail)


class CartTransportError(ServiceError):
    """The cart API could not be reached."""
    status_code = 503
    code = "cart_unreachable"
