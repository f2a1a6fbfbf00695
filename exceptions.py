"""Errors raised by the quote workflow.

The pricing engine itself never raises; these cover catalogue lookups,
input validation at submission and edits to quotes that are no longer drafts.
"""


class QuoteError(Exception):
    """Base class for quote workflow errors."""


class UnknownProductError(QuoteError, LookupError):
    """A product id that isn't in the catalogue."""

    def __init__(self, kind, product_id):
        self.kind = kind
        self.product_id = product_id
        super().__init__(f"Unknown {kind} product: {product_id}")


class QuoteLockedError(QuoteError):
    """Edit or status change not allowed in the quote's current status."""


class QuoteValidationError(QuoteError, ValueError):
    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class QuoteNotFoundError(QuoteError, KeyError):
    def __init__(self, quote_id):
        self.quote_id = quote_id
        super().__init__(quote_id)

    def __str__(self):
        return f"Quote not found: {self.quote_id}"
