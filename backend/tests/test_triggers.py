"""
Test automation due-ness: price thresholds, 15-minute throttle, DCA cadence.
"""
from ibrl.agent.triggers import automation_due
from ibrl.core.clock import MINUTE_MS
from ibrl.schemas.intent import parse_intent
from tests.helpers import T0

EXIT_AT_120 = parse_intent({
    "kind": "PRICE_TRIGGER_EXIT",
    "amount": {"value": "0.5", "unit": "SOL"},
    "thresholdUsd": "120",
})
ENTRY_AT_100 = parse_intent({
    "kind": "PRICE_TRIGGER_ENTRY",
    "amount": {"value": "10", "unit": "USDC"},
    "thresholdUsd": "100",
})
DCA_HOURLY = parse_intent({
    "kind": "DCA_SWAP",
    "from": "USDC",
    "to": "SOL",
    "amount": {"value": "5", "unit": "USDC"},
    "intervalMinutes": 60,
})


def test_price_trigger_fires_at_or_below_threshold():
    assert not automation_due(EXIT_AT_120, None, 120.01, T0)
    assert automation_due(EXIT_AT_120, None, 120.0, T0)
    assert automation_due(EXIT_AT_120, None, 95.5, T0)
    assert automation_due(ENTRY_AT_100, None, 99.99, T0)
    assert not automation_due(ENTRY_AT_100, None, 101, T0)


def test_price_trigger_throttled_for_fifteen_minutes():
    assert not automation_due(EXIT_AT_120, T0 - 14 * MINUTE_MS, 110.0, T0)
    assert automation_due(EXIT_AT_120, T0 - 15 * MINUTE_MS, 110.0, T0)


def test_price_trigger_without_price_never_fires():
    assert not automation_due(EXIT_AT_120, None, None, T0)


def test_dca_interval():
    assert automation_due(DCA_HOURLY, None, None, T0)
    assert not automation_due(DCA_HOURLY, T0 - 59 * MINUTE_MS, 150.0, T0)
    assert automation_due(DCA_HOURLY, T0 - 60 * MINUTE_MS, 150.0, T0)


def test_one_shot_kinds_are_never_due():
    swap = parse_intent({"kind": "SWAP", "from": "SOL", "to": "USDC", "amount": {"value": "1", "unit": "SOL"}})
    assert not automation_due(swap, None, 1.0, T0)
