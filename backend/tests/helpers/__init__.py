"""Test helpers for the IBRL test suite"""

from tests.helpers.collaborator_stubs import (
    OWNER,
    OTHER_OWNER,
    T0,
    FakeGroq,
    StubChain,
    StubOracle,
    StubRouter,
    lamports,
    micro_usdc,
)

__all__ = [
    "OWNER",
    "OTHER_OWNER",
    "T0",
    "FakeGroq",
    "StubChain",
    "StubOracle",
    "StubRouter",
    "lamports",
    "micro_usdc",
]
