"""Error taxonomy shared by the payment handlers.

Services raise these; controllers catch ``MarketError``, log it and turn it
into a JSON body carrying ``status_code``.
"""


class MarketError(Exception):
    status_code = 500


class ValidationError(MarketError):
    """Required input is missing or malformed."""

    status_code = 400


class NotFoundError(MarketError):
    """The referenced order or product does not exist."""

    status_code = 404


class ConfigurationError(MarketError):
    """A credential or setting needed for the call is not configured."""


class StorageError(MarketError):
    """A database read or write failed."""


class UpstreamError(MarketError):
    """The payment provider could not be reached or returned a failure."""
