"""
Test domain error -> HTTP mapping (no existence leak, exact shortfall).
"""
from ibrl.core.exceptions import (
    BusinessError,
    IBRLError,
    InsufficientFundsError,
    NotFoundError,
    StateConflict,
    UpstreamUnavailable,
    ValidationError,
)


def test_insufficient_funds_carries_shortfall():
    err = InsufficientFundsError("SOL", 1_000_000_000, 950_000_000)
    http = BusinessError.from_domain(err)

    assert http.status_code == 400
    assert http.detail["shortfall_base_units"] == 50_000_000
    assert isinstance(err, ValidationError)


def test_not_found_hides_reason():
    http = BusinessError.from_domain(NotFoundError("Proposal", "abc", reason="owner=someone-else"))
    assert http.status_code == 404
    assert http.detail == "Proposal not found"


def test_other_mappings():
    assert BusinessError.from_domain(ValidationError("bad")).status_code == 400
    assert BusinessError.from_domain(UpstreamUnavailable("swap_router", "no quote")).status_code == 502
    assert BusinessError.from_domain(StateConflict("already SENT", "SENT")).status_code == 409
    assert BusinessError.from_domain(IBRLError("boom")).status_code == 500
    assert isinstance(NotFoundError("Automation", "x"), StateConflict)
