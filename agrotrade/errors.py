# agrotrade/errors.py


class LedgerError(Exception):
    """Base for errors that map onto a `{success: false, message}` response."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    status_code = 400


class NotFound(LedgerError):
    status_code = 404


class AuctionClosed(LedgerError):
    status_code = 400

    def __init__(self, message: str = "Auction is closed"):
        super().__init__(message)


class BidTooLow(LedgerError):
    status_code = 400


class InternalError(LedgerError):
    status_code = 500


class RepositoryError(InternalError):
    """Raised by a repository when the crop collection cannot be saved."""
