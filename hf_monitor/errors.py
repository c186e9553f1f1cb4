"""Exception types raised by the monitor's collaborators."""


class MonitorError(Exception):
    """Base class for monitor errors."""


class LoanSourceError(MonitorError):
    """Loan or market data could not be fetched from the lending protocol."""


class PriceProviderError(MonitorError):
    """Prices could not be obtained from a price provider."""


class PriceMirrorError(MonitorError):
    """The price mirror database rejected or failed a request."""
