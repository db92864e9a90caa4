"""
Test intent extraction: deterministic local parser first, LLM fallback second.
"""
import json
from decimal import Decimal

import pytest

from ibrl.schemas.intent import (
    Asset,
    ChatIntent,
    DcaSwapIntent,
    ExitToUsdcIntent,
    PortfolioQaIntent,
    PriceTriggerEntryIntent,
    PriceTriggerExitIntent,
    SwapIntent,
    UnsupportedIntent,
)
from ibrl_ai import IntentExtractor, parse_intent_locally
from ibrl_ai.intent_parser import _extract_json, normalize_llm_intent
from tests.helpers import FakeGroq


def test_swap():
    intent = parse_intent_locally("Swap 0.1 SOL to USDC")
    assert isinstance(intent, SwapIntent)
    assert (intent.from_asset, intent.to_asset) == (Asset.SOL, Asset.USDC)
    assert intent.amount.value == Decimal("0.1")
    assert intent.slippage_bps == 50


def test_swap_usd_alias_and_slippage():
    intent = parse_intent_locally("convert 5 usd into sol with 30 bps slippage")
    assert isinstance(intent, SwapIntent)
    assert intent.from_asset == Asset.USDC
    assert intent.amount.unit == Asset.USDC
    assert intent.slippage_bps == 30


def test_exit():
    intent = parse_intent_locally("Exit 0.25 SOL")
    assert isinstance(intent, ExitToUsdcIntent)
    assert intent.amount.value == Decimal("0.25")


def test_price_trigger_exit():
    intent = parse_intent_locally("Sell 0.5 SOL if SOL drops below 120")
    assert isinstance(intent, PriceTriggerExitIntent)
    assert intent.amount.value == Decimal("0.5")
    assert intent.threshold_usd == Decimal("120")


def test_price_trigger_entry():
    intent = parse_intent_locally("Buy SOL with 10 USDC when SOL below $100")
    assert isinstance(intent, PriceTriggerEntryIntent)
    assert intent.amount.unit == Asset.USDC
    assert intent.threshold_usd == Decimal("100")


@pytest.mark.parametrize("prompt, minutes", [
    ("DCA 5 USDC to SOL every 60 minutes", 60),
    ("dca 5 usdc to sol every 2 hours", 120),
    ("DCA 0.1 SOL to USDC every 15 min", 15),
])
def test_dca(prompt, minutes):
    intent = parse_intent_locally(prompt)
    assert isinstance(intent, DcaSwapIntent)
    assert intent.interval_minutes == minutes


def test_out_of_range_becomes_unsupported():
    intent = parse_intent_locally("DCA 5 USDC to SOL every 2 minutes")
    assert isinstance(intent, UnsupportedIntent)
    assert intent.reason.startswith("Out-of-range value")


@pytest.mark.parametrize("prompt, kind", [
    ("hello", ChatIntent),
    ("gm!", ChatIntent),
    ("show my portfolio", PortfolioQaIntent),
    ("How much SOL do I have?", PortfolioQaIntent),
])
def test_conversational(prompt, kind):
    assert isinstance(parse_intent_locally(prompt), kind)


def test_unsupported_reasons():
    assert parse_intent_locally("swap sol").reason.startswith("Missing amount or destination")
    assert parse_intent_locally("what's the weather").reason.startswith("Could not interpret intent")
    assert parse_intent_locally("   ").reason.startswith("Empty prompt")


# ---------------------------------------------------------------------------
# LLM fallback
# ---------------------------------------------------------------------------

def test_local_match_never_calls_llm():
    groq = FakeGroq(response="{}")
    intent = IntentExtractor(groq).extract("Swap 0.1 SOL to USDC")
    assert isinstance(intent, SwapIntent)
    assert groq.prompts == []


def test_llm_fills_in_and_is_normalized():
    groq = FakeGroq(response=json.dumps({
        "kind": "swap",
        "from": "usd",
        "to": "SOL",
        "amount": {"value": "5", "unit": "usd"},
        "slippageBps": "40",
    }))

    intent = IntentExtractor(groq).extract("please flip five bucks into sol")

    assert isinstance(intent, SwapIntent)
    assert intent.from_asset == Asset.USDC
    assert intent.slippage_bps == 40
    assert "please flip five bucks into sol" in groq.prompts[0]


@pytest.mark.parametrize("response", [
    None,
    "not json at all",
    json.dumps({"kind": "SWAP", "from": "SOL", "to": "BONK", "amount": {"value": "1", "unit": "SOL"}}),
])
def test_llm_failures_fall_back_to_local(response):
    intent = IntentExtractor(FakeGroq(response=response)).extract("please flip five bucks into sol")
    assert isinstance(intent, UnsupportedIntent)
    assert intent.reason.startswith("Could not interpret intent")


def test_unavailable_llm_is_skipped():
    groq = FakeGroq(response="{}", available=False)
    extractor = IntentExtractor(groq)
    assert not extractor.llm_available
    assert isinstance(extractor.extract("flip it"), UnsupportedIntent)
    assert groq.prompts == []


def test_extract_json_from_markdown():
    assert _extract_json('```json\n{"kind": "CHAT", "message": "hi"}\n```') == {"kind": "CHAT", "message": "hi"}
    assert _extract_json('Sure! {"kind": "CHAT", "message": "hi"} done') == {"kind": "CHAT", "message": "hi"}
    assert _extract_json("nope") is None


def test_normalize_passes_through_non_dicts():
    assert normalize_llm_intent(["x"]) == ["x"]
    assert normalize_llm_intent({"kind": " dca_swap ", "intervalMinutes": "30"}) == {
        "kind": "DCA_SWAP",
        "intervalMinutes": 30,
    }
