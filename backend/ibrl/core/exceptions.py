"""
Domain errors and their safe HTTP rendering.

SECURITY PRINCIPLE: Don't expose internal details to callers.
Use generic error messages externally, detailed logging internally.
A proposal or automation owned by another wallet is reported exactly like
one that does not exist (no existence leak).

Taxonomy:
    ValidationError          schema / policy violation, nothing persisted
    InsufficientFundsError   policy subtype, carries the exact shortfall
    UpstreamUnavailable      oracle / quote / build / simulate failed, retry next tick
    StateConflict            decision on a non-pending proposal (idempotent no-op)
    NotFoundError            StateConflict for an unknown id, or one owned by someone else
    SimulationFailed         informational; the proposal is still recorded
"""
import logging
from typing import Optional

from fastapi import HTTPException, status

logger = logging.getLogger(__name__)


class IBRLError(Exception):
    """Base class for engine errors."""


class ValidationError(IBRLError):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class InsufficientFundsError(ValidationError):
    def __init__(self, asset: str, requested_base_units: int, spendable_base_units: int):
        self.asset = asset
        self.requested_base_units = requested_base_units
        self.spendable_base_units = spendable_base_units
        self.shortfall_base_units = requested_base_units - spendable_base_units
        super().__init__(
            f"Requested {requested_base_units} {asset} base units exceeds safe spend "
            f"(95% of balance = {spendable_base_units}); shortfall {self.shortfall_base_units}"
        )


class UpstreamUnavailable(IBRLError):
    def __init__(self, collaborator: str, detail: str = ""):
        self.collaborator = collaborator
        self.detail = detail
        super().__init__(f"{collaborator} unavailable" + (f": {detail}" if detail else ""))


class StateConflict(IBRLError):
    def __init__(self, detail: str, current_status: Optional[str] = None):
        super().__init__(detail)
        self.current_status = current_status


class NotFoundError(StateConflict):
    def __init__(self, resource: str, resource_id: str, reason: str = ""):
        super().__init__(f"{resource} {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id
        self.reason = reason


class SimulationFailed(IBRLError):
    """Never raised out of the engine; used to label unsendable proposals."""

    def __init__(self, err):
        super().__init__(f"simulation failed: {err}")
        self.err = err


class BusinessError:
    """Safe (non-leaky) HTTP exceptions."""

    @staticmethod
    def not_found(resource: str = "Resource", reason: str = "") -> HTTPException:
        """
        Generic 404 that doesn't confirm resource existence.

        Returns the same response whether the resource doesn't exist or
        belongs to another owner.
        """
        if reason:
            logger.warning(f"Access denied / not found: {resource} - {reason}")

        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )

    @staticmethod
    def bad_request(detail) -> HTTPException:
        """
        400 for input validation / policy errors.

        OK to include specific details here since the caller caused the issue.
        """
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

    @staticmethod
    def upstream_unavailable(detail: str) -> HTTPException:
        """502 when the oracle, router or chain could not serve the request."""
        logger.warning(f"Upstream unavailable: {detail}")
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
        )

    @staticmethod
    def server_error(original_error: Exception = None) -> HTTPException:
        """
        Generic 500 - logs actual error internally, hides from caller.
        """
        if original_error:
            logger.error(
                f"Internal server error: {type(original_error).__name__}: {str(original_error)}",
                exc_info=True
            )
        else:
            logger.error("Internal server error occurred", exc_info=True)

        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An internal error occurred. Please try again later.",
        )

    @staticmethod
    def from_domain(error: IBRLError) -> HTTPException:
        """Map an engine error raised on a user-triggered path."""
        if isinstance(error, InsufficientFundsError):
            return BusinessError.bad_request({
                "error": "insufficient_funds",
                "reason": error.reason,
                "asset": error.asset,
                "requested_base_units": error.requested_base_units,
                "spendable_base_units": error.spendable_base_units,
                "shortfall_base_units": error.shortfall_base_units,
            })
        if isinstance(error, ValidationError):
            return BusinessError.bad_request(error.reason)
        if isinstance(error, NotFoundError):
            return BusinessError.not_found(error.resource, error.reason)
        if isinstance(error, UpstreamUnavailable):
            return BusinessError.upstream_unavailable(str(error))
        if isinstance(error, StateConflict):
            return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
        return BusinessError.server_error(error)
