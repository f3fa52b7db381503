"""
Domain exceptions.
Raised by infrastructure adapters, converted to outcomes by domain services.
"""


class AssetDashboardError(Exception):
    """Base class for all engine errors"""
    pass


class QuoteFetchError(AssetDashboardError):
    """Raised when a quote request fails (network error or non-success status)"""

    def __init__(self, symbol: str, reason: str):
        super().__init__(f"Quote failed for {symbol}: {reason}")
        self.symbol = symbol
        self.reason = reason


class InvalidSymbolError(QuoteFetchError):
    """Raised when the quote provider reports no price for a symbol"""

    def __init__(self, symbol: str):
        super().__init__(symbol, "invalid_symbol")


class StoreError(AssetDashboardError):
    """Raised when the remote portfolio store rejects or fails an operation"""
    pass


class ImportFormatError(AssetDashboardError):
    """Raised when an import document does not have the expected shape"""
    pass


class AuthError(AssetDashboardError):
    """Raised when the identity provider rejects a request"""

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message)
        self.status_code = status_code
