"""
Catalog Feed Sync - Custom Exceptions
Exception classes separating item-level failures from run-level (fatal) failures.
"""


class FeedSyncError(Exception):
    """Base exception for all Catalog Feed Sync errors."""

    def __init__(self, message: str, context: dict = None):
        super().__init__(message)
        self.context = context or {}

    def __str__(self):
        base = super().__str__()
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{base} [{context_str}]"
        return base


class FeedError(FeedSyncError):
    """Errors reading the vendor feed."""

    def __init__(self, message: str, source: str = None, line_number: int = None):
        context = {}
        if source:
            context["source"] = source
        if line_number:
            context["line"] = line_number
        super().__init__(message, context)
        self.source = source
        self.line_number = line_number


class CatalogAPIError(FeedSyncError):
    """Errors from the remote catalog API."""

    def __init__(self, message: str, status_code: int = None, business_key: str = None):
        context = {}
        if status_code:
            context["status"] = status_code
        if business_key:
            context["key"] = business_key
        super().__init__(message, context)
        self.status_code = status_code
        self.business_key = business_key

    @property
    def is_client_error(self) -> bool:
        """4xx errors - client should not retry."""
        return bool(self.status_code and 400 <= self.status_code < 500)

    @property
    def is_server_error(self) -> bool:
        """5xx errors - server issue, may retry."""
        return bool(self.status_code and self.status_code >= 500)

    @property
    def is_retryable(self) -> bool:
        """Network errors (no status), server errors, timeouts and rate limits."""
        if self.status_code is None:
            return True
        return self.is_server_error or self.status_code in (408, 429)


class CatalogNotFoundError(CatalogAPIError):
    """The remote object does not exist (404)."""

    def __init__(self, message: str, business_key: str = None):
        super().__init__(message, status_code=404, business_key=business_key)


class StructuralCatalogError(CatalogAPIError):
    """
    A remote object the sync depends on is missing or malformed.

    Points at a data-quality problem rather than a transient outage,
    e.g. a product without variant or without inventory levels.
    """

    def __init__(self, reason: str, remote_id: str = None, business_key: str = None):
        super().__init__(reason, business_key=business_key)
        if remote_id:
            self.context["remote_id"] = remote_id
        self.reason = reason
        self.remote_id = remote_id

    @property
    def is_retryable(self) -> bool:
        return False


class FatalSyncError(FeedSyncError):
    """Run-level failure: every following call would fail the same way."""


class CatalogAuthError(FatalSyncError, CatalogAPIError):
    """Authentication/authorization rejected by the remote catalog (401/403)."""

    def __init__(self, message: str, status_code: int = 401):
        CatalogAPIError.__init__(self, message, status_code=status_code)


class ItemSyncError(FeedSyncError):
    """
    A single item failed to reconcile.

    Raised by reconciliation operations after the failure status has been
    persisted, so callers only need to count and log it.
    """

    def __init__(self, business_key: str, operation: str, reason: str):
        super().__init__(f"{operation} failed: {reason}", {"key": business_key})
        self.business_key = business_key
        self.operation = operation
        self.reason = reason


class ItemNotFoundError(FeedSyncError):
    """Business key is not present in the local store."""

    def __init__(self, business_key: str):
        super().__init__("Item not found", {"key": business_key})
        self.business_key = business_key


class ParameterError(FeedSyncError):
    """Invalid trigger parameters (e.g. single-item mode without a key)."""

    def __init__(self, message: str, parameter: str = None):
        context = {"parameter": parameter} if parameter else {}
        super().__init__(message, context)
        self.parameter = parameter


class DatabaseError(FeedSyncError):
    """Errors with SQLite item store operations."""

    def __init__(self, message: str, table: str = None, business_key: str = None):
        context = {}
        if table:
            context["table"] = table
        if business_key:
            context["key"] = business_key
        super().__init__(message, context)
        self.table = table
        self.business_key = business_key


class ConfigurationError(FeedSyncError):
    """Errors in configuration (missing .env values, etc)."""

    def __init__(self, message: str, setting: str = None):
        context = {"setting": setting} if setting else {}
        super().__init__(message, context)
        self.setting = setting
