"""Error taxonomy shared by the billing services."""


class BillingValidationError(ValueError):
    """Input rejected before any state was touched."""


class StorageError(RuntimeError):
    """A persistence call failed; the surrounding transaction was rolled back."""


class IssuanceError(Exception):
    """The external invoicing provider refused, failed or timed out."""
