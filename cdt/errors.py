"""Error types for Coffee Donation Tracker."""

from typing import Any, Optional


# EIP-1193 / MetaMask provider error codes
USER_REJECTED_CODE = 4001
UNAUTHORIZED_CODE = 4100
UNRECOGNIZED_CHAIN_CODE = 4902


class WalletRequestError(Exception):
    """Exception raised by the wallet transport for an error response."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data


class CoffeeError(Exception):
    """Base class for errors surfaced to the user as a status message."""

    pass


class NoWalletError(CoffeeError):
    """No wallet is available to connect to."""

    def __init__(self, message: str = "No wallet is available. Install or configure a wallet first."):
        super().__init__(message)


class UserRejectedError(CoffeeError):
    """The user rejected or ignored a wallet request."""

    pass


class NetworkSwitchError(CoffeeError):
    """The wallet could not be moved to the target chain."""

    pass


class UnsupportedChainError(CoffeeError):
    """No contract is registered for the chain."""

    def __init__(self, chain_id: int):
        super().__init__(f"No donation contract is registered for chain {chain_id}")
        self.chain_id = chain_id


class ValidationError(CoffeeError):
    """Local input validation failed. Raised before any network call."""

    pass


class SubmissionInProgressError(ValidationError):
    """A donation from the same draft is still waiting for confirmation."""

    def __init__(self, message: str = "A donation is already being submitted"):
        super().__init__(message)


class InsufficientFundsError(CoffeeError):
    """The signer cannot cover the donation amount."""

    pass


class RpcError(CoffeeError):
    """A remote call failed or a transaction reverted."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data

    @classmethod
    def from_wallet_error(cls, error: WalletRequestError, context: str = "") -> "RpcError":
        """Wrap a transport error, keeping its code and data."""
        message = f"{context}: {error}" if context else str(error)
        return cls(message, code=error.code, data=error.data)


def is_user_rejection(error: WalletRequestError) -> bool:
    """Check whether a wallet error means the user declined the request."""
    return error.code in (USER_REJECTED_CODE, UNAUTHORIZED_CODE)


def is_insufficient_funds(error: WalletRequestError) -> bool:
    """Check whether a wallet error reports an underfunded sender."""
    return "insufficient funds" in str(error).lower()
