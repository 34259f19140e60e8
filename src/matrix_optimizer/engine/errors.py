"""
Error types surfaced by the optimizer.

Ingestion failures abort the whole ingest; row-level problems are only
counted. Pin and matrix errors reject a single edit.
"""


class IngestError(ValueError):
    """Fatal ingestion failure. No partial record set accompanies it."""
    code = "INGEST_ERROR"
    default_message = "Error parsing CSV file. Please ensure it is properly formatted."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class NoHeaderFound(IngestError):
    code = "NO_HEADER_FOUND"
    default_message = (
        'Could not find a valid header row (looking for "Cost", "Price", or "Qty"). '
        'Please check your CSV.'
    )


class NoCostColumn(IngestError):
    code = "NO_COST_COLUMN"
    default_message = (
        'Could not find a "Unit Cost" or "Buy Price" column in the CSV. '
        'Please ensure your file has cost data.'
    )


class NoValidRows(IngestError):
    code = "NO_VALID_ROWS"
    default_message = (
        'No valid parts data found. Please check your CSV format. '
        'Make sure you have a "Unit Cost" column with numeric values.'
    )


class InvalidPinError(ValueError):
    """A manual multiplier pin was rejected; the ledger is unchanged."""
    code = "INVALID_PIN"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class MatrixError(ValueError):
    """An edit to the tier matrix was refused."""
    code = "INVALID_MATRIX_EDIT"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}
