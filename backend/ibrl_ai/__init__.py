"""AI Module for natural-language intent extraction.

The deterministic local parser runs first; Groq's LLM is an OPTIONAL fallback
for phrasing it cannot read. Output is always a validated, typed intent.
It never decides, builds or sends anything.
"""

from .fallback import parse_intent_locally
from .groq_client import GroqClient
from .intent_parser import IntentExtractor

__all__ = ["IntentExtractor", "GroqClient", "parse_intent_locally"]
