"""
Deterministic intent parser. Runs first on every prompt.

Reliable even when the LLM is down: common phrasings map straight onto the
intent schema, and anything it cannot read becomes UNSUPPORTED with a hint.
Output is always validated by the same pydantic schema the LLM path uses.
"""
import logging
import re

from pydantic import ValidationError as SchemaError

from ibrl.schemas.intent import ChatIntent, UnsupportedIntent, parse_intent

logger = logging.getLogger(__name__)

AMOUNT = r"(\d+(?:\.\d+)?)"
ASSET = r"(sol|usdc|usd)"
ARROW = r"(?:to|->|into|for)"
BELOW = r"(?:drops?\s+)?(?:below|under|<=|<|at)"

GREETINGS = ("hi", "hello", "hey", "gm")

PORTFOLIO_PATTERNS = [
    r"\b(balance|balances|portfolio|holdings)\b",
    r"\bhow much (sol|usdc)\b",
    r"\bwhat do i (have|hold|own)\b",
]

PRICE_EXIT_RE = re.compile(
    rf"^(?:sell|exit|swap)\s+{AMOUNT}\s*sol(?:\s+{ARROW}\s+usdc?)?\s+(?:if|when)\s+sol\s+(?:price\s+)?{BELOW}\s*\$?{AMOUNT}",
    re.IGNORECASE,
)
PRICE_ENTRY_RE = re.compile(
    rf"^buy\s+sol\s+with\s+{AMOUNT}\s*usdc?\s+(?:if|when)\s+sol\s+(?:price\s+)?{BELOW}\s*\$?{AMOUNT}",
    re.IGNORECASE,
)
DCA_RE = re.compile(
    rf"^(?:dca|swap|convert|buy)\s+{AMOUNT}\s*{ASSET}\s*{ARROW}\s*{ASSET}\s+every\s+(\d+)\s*(m|min|mins|minutes?|h|hr|hrs|hours?)\b",
    re.IGNORECASE,
)
SWAP_RE = re.compile(rf"^(?:swap|sell|convert)\s+{AMOUNT}\s*{ASSET}\s*{ARROW}\s*{ASSET}\b", re.IGNORECASE)
EXIT_RE = re.compile(rf"^exit\s+{AMOUNT}\s*sol(?:\s*{ARROW}\s*(?:usdc|usd))?\b", re.IGNORECASE)
SLIPPAGE_RE = re.compile(r"(\d+)\s*bps\b", re.IGNORECASE)

ACTION_VERBS = ("swap", "sell", "convert", "exit", "buy", "dca")

HINT = 'Try: "Swap 0.1 SOL to USDC", "Exit 0.25 SOL", "Sell 0.5 SOL if SOL drops below 120" or "DCA 5 USDC to SOL every 60 minutes".'


def _asset(token: str) -> str:
    token = token.upper()
    return "USDC" if token == "USD" else token


def _is_greeting(text: str) -> bool:
    t = text.strip().lower().rstrip("!.")
    return t in GREETINGS or any(t.startswith(g + " ") for g in GREETINGS)


def _with_slippage(data: dict, text: str) -> dict:
    match = SLIPPAGE_RE.search(text)
    if match:
        data["slippageBps"] = int(match.group(1))
    return data


def _minutes(value: str, unit: str) -> int:
    return int(value) * 60 if unit.lower().startswith("h") else int(value)


def _match(text: str):
    """Raw intent dict for the first pattern that matches, else None."""
    m = PRICE_EXIT_RE.match(text)
    if m:
        return {
            "kind": "PRICE_TRIGGER_EXIT",
            "amount": {"value": m.group(1), "unit": "SOL"},
            "thresholdUsd": m.group(2),
        }

    m = PRICE_ENTRY_RE.match(text)
    if m:
        return {
            "kind": "PRICE_TRIGGER_ENTRY",
            "amount": {"value": m.group(1), "unit": "USDC"},
            "thresholdUsd": m.group(2),
        }

    m = DCA_RE.match(text)
    if m:
        src = _asset(m.group(2))
        return {
            "kind": "DCA_SWAP",
            "from": src,
            "to": _asset(m.group(3)),
            "amount": {"value": m.group(1), "unit": src},
            "intervalMinutes": _minutes(m.group(4), m.group(5)),
        }

    m = SWAP_RE.match(text)
    if m:
        src = _asset(m.group(2))
        return {
            "kind": "SWAP",
            "from": src,
            "to": _asset(m.group(3)),
            "amount": {"value": m.group(1), "unit": src},
        }

    m = EXIT_RE.match(text)
    if m:
        return {
            "kind": "EXIT_TO_USDC",
            "amount": {"value": m.group(1), "unit": "SOL"},
        }

    return None


def parse_intent_locally(prompt: str):
    """Map a prompt onto a typed intent without any network call."""
    text = (prompt or "").strip()
    if not text:
        return UnsupportedIntent(reason=f"Empty prompt. {HINT}")

    if _is_greeting(text):
        return ChatIntent(message=f"Hello. Give me an intent. {HINT}")

    lower = text.lower()
    if any(re.search(p, lower) for p in PORTFOLIO_PATTERNS):
        return parse_intent({"kind": "PORTFOLIO_QA", "question": text})

    raw = _match(text)
    if raw is not None:
        try:
            intent = parse_intent(_with_slippage(raw, text))
        except SchemaError as e:
            logger.info(f"🔄 Local parse rejected by schema: {e.errors()[0].get('msg')}")
            return UnsupportedIntent(reason=f"Out-of-range value: {e.errors()[0].get('msg')}")
        logger.info(f"🔄 Local parsed: kind={intent.kind}")
        return intent

    if lower.startswith(ACTION_VERBS):
        return UnsupportedIntent(reason=f"Missing amount or destination. {HINT}")

    return UnsupportedIntent(reason=f"Could not interpret intent. {HINT}")
