# collateral/errors.py


class FetchError(Exception):
    """The contract query failed as a whole; aborts the cycle."""


class TransportError(FetchError):
    pass


class RequestFailed(FetchError):
    def __init__(self, status: int):
        super().__init__(f"Request failed with status: {status}")
        self.status = status


class InvalidResponse(FetchError):
    pass


class PriceError(Exception):
    pass


class PriceUnavailable(PriceError):
    def __init__(self, denom: str):
        super().__init__(f"no price available for {denom!r}")
        self.denom = denom


class ValuationError(Exception):
    """Raised when a position can't be valued. Wraps the underlying PriceError."""
