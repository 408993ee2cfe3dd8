"""Error categories surfaced to API and CLI callers."""


class InvoiceFlowError(Exception):
    """Base class for failures a caller can act on."""

    status_code = 500
    code = "internal_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class Unauthorized(InvoiceFlowError):
    """No valid session or identity."""

    status_code = 401
    code = "unauthorized"


class NotFound(InvoiceFlowError):
    """A referenced record does not exist."""

    status_code = 404
    code = "not_found"


class Conflict(InvoiceFlowError):
    status_code = 409
    code = "conflict"


class InvalidInput(InvoiceFlowError):
    """Malformed invoice or line-item structure."""

    status_code = 422
    code = "invalid_input"


class ExternalToolFailure(InvoiceFlowError):
    """The PDF conversion step failed."""

    status_code = 502
    code = "external_tool_failure"


class StoreFailure(InvoiceFlowError):
    """The user data store could not be read or written."""

    status_code = 503
    code = "store_failure"
