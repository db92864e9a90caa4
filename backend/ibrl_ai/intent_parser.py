"""
Intent Extractor: local parser first, Groq LLM as fallback.

================================================================================
WHAT LLM DOES (INTENT PLANNER ONLY):
- Maps phrasing the local parser can't read onto the intent schema
- NOTHING ELSE

LLM OUTPUT IS NEVER TRUSTED BLINDLY:
- Aliases normalised (USD -> USDC, string numbers -> numbers)
- Validated against the pydantic intent union
- Any failure returns the local parser's result instead
================================================================================
"""

import json
import logging
from typing import Optional

from pydantic import ValidationError as SchemaError

from ibrl.schemas.intent import IntentKind, parse_intent

from .fallback import parse_intent_locally
from .groq_client import GroqClient
from .prompts import build_prompt

logger = logging.getLogger(__name__)

ASSET_FIELDS = ("from", "to")


def _asset(value) -> str:
    s = str(value or "").strip().upper()
    return "USDC" if s == "USD" else s


def normalize_llm_intent(raw):
    """Tidy common LLM deviations before schema validation."""
    if not isinstance(raw, dict):
        return raw
    data = dict(raw)
    if isinstance(data.get("kind"), str):
        data["kind"] = data["kind"].strip().upper()
    for key in ASSET_FIELDS:
        if key in data:
            data[key] = _asset(data[key])
    amount = data.get("amount")
    if isinstance(amount, dict):
        amount = dict(amount)
        if "unit" in amount:
            amount["unit"] = _asset(amount["unit"])
        data["amount"] = amount
    for key in ("slippageBps", "intervalMinutes"):
        if isinstance(data.get(key), str) and data[key].strip().isdigit():
            data[key] = int(data[key].strip())
    return data


def _extract_json(llm_response: str) -> Optional[dict]:
    """Pull the JSON object out of a response that may be wrapped in markdown."""
    text = llm_response.strip()
    if text.startswith("```"):
        lines = text.split("\n")[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines).strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        first, last = text.find("{"), text.rfind("}")
        if first != -1 and last > first:
            try:
                return json.loads(text[first:last + 1])
            except json.JSONDecodeError:
                pass
    logger.warning("Invalid JSON from LLM")
    return None


class IntentExtractor:
    def __init__(self, groq_client: Optional[GroqClient] = None):
        self.groq_client = groq_client

    @property
    def llm_available(self) -> bool:
        return self.groq_client is not None and self.groq_client.is_available()

    def extract(self, prompt: str):
        """Typed intent for a prompt. Never raises for bad input; returns UNSUPPORTED."""
        local = parse_intent_locally(prompt)
        if local.kind != IntentKind.UNSUPPORTED.value:
            return local

        if not self.llm_available:
            return local

        llm_response = self.groq_client.extract_intent(build_prompt(prompt.strip()))
        if not llm_response:
            logger.debug("LLM returned None - using local result")
            return local

        raw = _extract_json(llm_response)
        if raw is None:
            return local

        try:
            intent = parse_intent(normalize_llm_intent(raw))
        except SchemaError as e:
            logger.warning(f"LLM intent failed schema validation: {e.error_count()} error(s)")
            return local

        logger.info(f"✅ LLM parsed: kind={intent.kind}")
        return intent
