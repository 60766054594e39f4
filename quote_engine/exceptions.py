"""
Error taxonomy for the quote pipeline.

Import errors are fatal to one import and nothing is committed.
Configuration errors are raised at the point of entry; the caller keeps its
previous valid state. ReconciliationBlocked is only raised by finalization;
the unbalanced state itself is always readable from the reconciler.
"""

from .money import format_brl


class QuoteEngineError(Exception):
    """Base class for every error raised by the quote pipeline."""

    code = "quote_engine_error"


class BomImportError(QuoteEngineError):
    code = "bom_import_error"


class NoPriceableItemsFound(BomImportError):
    code = "no_priceable_items"

    def __init__(self, message: str = "No item with a price was found in the document."):
        super().__init__(message)


class MalformedDocument(BomImportError):
    code = "malformed_document"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Could not read the CAD export: {reason}")


class ConfigurationError(QuoteEngineError):
    code = "configuration_error"


class ReconciliationBlocked(QuoteEngineError):
    code = "reconciliation_blocked"

    def __init__(self, remainder: float, tolerance: float):
        self.remainder = remainder
        self.tolerance = tolerance
        super().__init__(
            f"Payment schedule does not match the final value "
            f"(remainder {format_brl(remainder)}, tolerance {format_brl(tolerance)})"
        )
