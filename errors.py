"""
Store errors

Services raise these and the API layer turns them into
``{"success": false, "message": ...}`` responses with the matching status.
"""


class StoreError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailure(StoreError):
    status_code = 400
    default_message = "Invalid request"


class EmptyCart(ValidationFailure):
    default_message = "Cart is empty"


class InsufficientStock(ValidationFailure):
    default_message = "Insufficient stock"

    def __init__(self, product_name=None):
        self.product_name = product_name
        message = f"Insufficient stock for {product_name}" if product_name else None
        super().__init__(message)


class DuplicateEntity(StoreError):
    status_code = 400
    default_message = "Already exists"


class DuplicateReview(DuplicateEntity):
    default_message = "You have already reviewed this product"


class Unauthorized(StoreError):
    status_code = 401
    default_message = "Not authorized"


class Forbidden(StoreError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(StoreError):
    status_code = 404
    default_message = "Not found"


class Unconfigured(StoreError):
    status_code = 503
    default_message = "Service is not configured"
