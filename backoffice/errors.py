"""Typed failures raised by the variant and stock services.

Services raise these; the admin blueprint translates them into HTTP
responses. Only ConcurrencyConflictError is worth retrying automatically.
"""


class VariantEngineError(Exception):
    code = "error"
    status_code = 500

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        body = {"error": self.code, "message": self.message}
        body.update(self.details)
        return body


class ValidationError(VariantEngineError):
    """Malformed input: missing attribute value, negative stock, bad patch."""

    code = "validation_error"
    status_code = 400


class NotFoundError(VariantEngineError):
    code = "not_found"
    status_code = 404


class ConflictError(VariantEngineError):
    """SKU/selection collision, or a delete with outstanding reservations."""

    code = "conflict"
    status_code = 409


class InsufficientStockError(VariantEngineError):
    code = "insufficient_stock"
    status_code = 400

    def __init__(self, variant_id, requested, available):
        self.variant_id = variant_id
        self.requested = requested
        self.available = available
        self.shortfall = -(available + requested)
        super().__init__(
            f"Variant {variant_id} has {available} in stock, "
            f"cannot apply {requested:+d} (short by {self.shortfall})",
            variant_id=variant_id,
            requested=requested,
            available=available,
            shortfall=self.shortfall,
        )


class ConcurrencyConflictError(VariantEngineError):
    code = "concurrency_conflict"
    status_code = 409

    def __init__(self, variant_id, attempts):
        self.variant_id = variant_id
        self.attempts = attempts
        super().__init__(
            f"Stock for variant {variant_id} kept changing; "
            f"gave up after {attempts} attempts",
            variant_id=variant_id,
            attempts=attempts,
        )
