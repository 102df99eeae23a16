class PosLedgerError(Exception):
    """Base class for errors raised by the ledger core."""


class TaxValidationError(PosLedgerError, ValueError):
    pass


class LedgerWriteError(PosLedgerError):
    """A completed sale could not be written to the local ledger."""


class SaleNotFound(PosLedgerError, LookupError):
    pass


class PaymentMethodLocked(PosLedgerError):
    """The payment method of a sale was already corrected once."""


class SyncError(PosLedgerError):
    pass
