# services/oracle/errors.py


class OracleError(Exception):
    pass


class TransientFetchError(OracleError):
    """Market-data call failed (network, timeout, non-2xx, bad JSON)."""


class SubmissionError(OracleError):
    """Ledger rejected the update or could not be reached."""


class PriceValidationError(OracleError):
    """Manual submission payload is unusable."""


class LedgerNotConfiguredError(OracleError):
    """Provider secret or contract id is missing."""

    def __init__(self, provider: bool, contract: bool):
        super().__init__("Oracle not fully configured")
        self.provider = provider
        self.contract = contract
