"""
Sale-specific exception hierarchy for Legion sales.

Provides typed exceptions for sale operations so callers can tell apart
authorization failures, lifecycle violations, bad input, replayed
authorizations and cryptographic or Merkle proof failures, and correct and
resubmit using the structured details attached to every error.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class SaleError(Exception):
    """Base exception for all sale-related errors.

    Attributes:
        message: Human-readable error description
        details: Structured context (expected vs. actual values, addresses)
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ==================== Authorization Errors ====================


class AuthorizationError(SaleError):
    """Raised when the caller or signer is not the expected party."""
    pass


class NotCalledByPlatformAdmin(AuthorizationError):
    pass


class NotCalledByProjectAdmin(AuthorizationError):
    pass


class NotCalledByAdmin(AuthorizationError):
    """Raised when neither the project admin nor the platform admin called."""
    pass


class NotPositionOwner(AuthorizationError):
    pass


class InvalidSignature(AuthorizationError):
    """Raised when a signature does not verify against the expected signer."""
    pass


class NotCalledByRegistryOwner(AuthorizationError):
    pass


# ==================== State Errors ====================


class StateError(SaleError):
    """Raised when an action is invoked in the wrong lifecycle phase."""
    pass


class SaleHasEnded(StateError):
    pass


class SaleIsCanceled(StateError):
    pass


class RefundPeriodIsOver(StateError):
    pass


class RefundPeriodIsNotOver(StateError):
    pass


class SaleResultsAlreadyPublished(StateError):
    pass


class SaleResultsNotPublished(StateError):
    pass


class CapitalRaisedAlreadyPublished(StateError):
    pass


class CapitalRaisedNotPublished(StateError):
    pass


class CapitalAlreadyWithdrawn(StateError):
    pass


class TokensAlreadySupplied(StateError):
    pass


class TokensNotSupplied(StateError):
    pass


class SaleIsNotCanceled(StateError):
    pass


class AlreadySettled(StateError):
    pass


class InvestorHasRefunded(StateError):
    pass


class InvestorHasClaimedExcess(StateError):
    pass


class InvestorPositionDoesNotExist(StateError):
    pass


class VestingHolderDoesNotExist(StateError):
    pass


class MerkleRootAlreadySet(StateError):
    pass


class MerkleRootNotSet(StateError):
    pass


class AcceptedCapitalNotSet(StateError):
    pass


class PrivateKeyNotPublished(StateError):
    pass


class PrefundAllocationPeriodNotEnded(StateError):
    pass


# ==================== Validation Errors ====================


class ValidationError(SaleError):
    """Raised when input data fails validation rules."""
    pass


class ZeroAddressProvided(ValidationError):
    pass


class ZeroValueProvided(ValidationError):
    pass


class InvalidPeriodConfig(ValidationError):
    pass


class InvalidFeeConfig(ValidationError):
    pass


class InvestmentAmountLessThanMinimum(ValidationError):
    pass


class InvalidPositionAmount(ValidationError):
    """Raised when invested capital would exceed the authorized cap."""
    pass


class InvalidWithdrawAmount(ValidationError):
    pass


class InvalidTokenAmountSupplied(ValidationError):
    pass


class InvalidFeeAmount(ValidationError):
    """Raised when a caller-supplied fee differs from the recomputed fee."""

    def __init__(
        self,
        message: str,
        expected: int,
        actual: int,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.expected = expected
        self.actual = actual
        self.details.setdefault("expected", expected)
        self.details.setdefault("actual", actual)


class InvalidVestingConfig(ValidationError):
    pass


class UnableToTransferInvestorPosition(ValidationError):
    pass


class UnableToMergeInvestorPosition(ValidationError):
    pass


class InvalidSaleToken(ValidationError):
    pass


class TokenError(ValidationError):
    """Raised when a token ledger cannot apply a transfer, approval or mint."""
    pass


# ==================== Replay Errors ====================


class ReplayError(SaleError):
    """Raised when a single-use authorization is presented again."""
    pass


class SignatureAlreadyUsed(ReplayError):
    pass


class ExcessCapitalAlreadyClaimed(ReplayError):
    pass


class ReferrerFeeAlreadyClaimed(ReplayError):
    pass


# ==================== Crypto Errors ====================


class CryptoError(SaleError):
    """Raised for sealed-bid key failures."""
    pass


class InvalidBidPublicKey(CryptoError):
    pass


class InvalidBidPrivateKey(CryptoError):
    pass


# ==================== Merkle Errors ====================


class MerkleError(SaleError):
    """Raised when a Merkle proof does not resolve to the stored root."""
    pass


class InvalidProof(MerkleError):
    pass


# ==================== Utility Functions ====================


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, category and details
    """
    context: Dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, SaleError):
        for category in (
            AuthorizationError,
            StateError,
            ValidationError,
            ReplayError,
            CryptoError,
            MerkleError,
        ):
            if isinstance(exc, category):
                context["category"] = category.__name__
                break
        if exc.details:
            context["details"] = exc.details

    return context
