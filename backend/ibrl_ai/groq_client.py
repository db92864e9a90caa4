"""
Groq API Client: secure wrapper for LLM intent extraction.

================================================================================
CRITICAL: LLM ROLE IS INTENT PLANNER ONLY
================================================================================

This client calls Groq's llama-3.3-70b-versatile model for ONE purpose:
- Turn a free-form trading request into intent JSON when the local parser can't

THIS CLIENT DOES NOT:
- Read balances or prices
- Build, sign or send transactions
- Access the database

Its output is validated against the pydantic intent schema by the caller,
and every intent still passes the Policy Gate and a wallet signature.
================================================================================
"""

import logging
import time
from typing import Optional

from groq import APIError, APITimeoutError, Groq, RateLimitError

# Configure logging (NEVER log API keys)
logger = logging.getLogger(__name__)


class GroqClient:
    """
    Minimal, secure wrapper for Groq API.

    - Model: llama-3.3-70b-versatile
    - Temperature: 0 (deterministic output for same input)
    - Max tokens: 256 (intent JSON is small, limits abuse)
    - Retries: 2 for timeouts and rate limits

    Returns raw JSON text, or None on any error (triggers local fallback).
    """

    MODEL = "llama-3.3-70b-versatile"
    TEMPERATURE = 0  # Deterministic: same input = same output
    MAX_TOKENS = 256  # Intent JSON is small; limits prompt injection impact
    TIMEOUT_SECONDS = 5

    def __init__(self, api_key: str = ""):
        if not api_key:
            logger.warning(
                "⚠️ GROQ_API_KEY not set. "
                "LLM intent extraction is DISABLED; local parser only."
            )
            self.client = None
        else:
            try:
                self.client = Groq(api_key=api_key, timeout=self.TIMEOUT_SECONDS)
                logger.info("✅ Groq client initialized successfully")
            except Exception as e:
                logger.error(f"❌ Failed to initialize Groq client: {e}")
                self.client = None

    def is_available(self) -> bool:
        return self.client is not None

    def extract_intent(self, prompt: str, max_retries: int = 2) -> Optional[str]:
        """
        Call Groq LLM to extract intent as JSON with retry logic.

        Returns:
            Raw response string from LLM, or None if error
        """
        if not self.is_available():
            logger.debug("Groq client not available - skipping LLM call")
            return None

        for attempt in range(max_retries + 1):
            try:
                response = self.client.chat.completions.create(
                    model=self.MODEL,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=self.TEMPERATURE,
                    max_tokens=self.MAX_TOKENS,
                    response_format={"type": "json_object"},
                    stream=False,  # No streaming - we need complete JSON
                )

                if response.choices:
                    content = response.choices[0].message.content
                    logger.debug(f"LLM response received: {len(content or '')} chars (attempt {attempt+1})")
                    return content
                logger.warning("LLM returned empty response")
                return None

            except APITimeoutError:
                if attempt < max_retries:
                    wait_time = 0.5 * (2 ** attempt)  # Exponential backoff: 0.5s, 1s
                    logger.warning(f"⏱️ Groq timeout, retry {attempt+1}/{max_retries} after {wait_time}s")
                    time.sleep(wait_time)
                else:
                    logger.warning(f"⏱️ Groq API timeout after {max_retries} retries")
                    return None

            except RateLimitError:
                if attempt < max_retries:
                    wait_time = 1.0 * (2 ** attempt)  # Exponential backoff: 1s, 2s
                    logger.warning(f"⚠️ Groq rate limit, retry {attempt+1}/{max_retries} after {wait_time}s")
                    time.sleep(wait_time)
                else:
                    logger.warning("⚠️ Groq API rate limit exceeded after retries")
                    return None

            except APIError as e:
                logger.error(f"❌ Groq API error (permanent): {e}")
                return None  # Don't retry permanent errors

        return None
