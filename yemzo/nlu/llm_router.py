"""Language-model parser for order instructions.

Posts a fixed two-message prompt to an OpenAI-compatible chat completions
endpoint and expects a JSON object back, optionally wrapped in a code fence.
Every failure is reported as UpstreamUnavailable so the caller can fall back
to the rule-based parser.
"""
import json
import re
from typing import Any, Dict

import requests

from ..app.config import Config
from ..app.errors import UpstreamUnavailable

SYSTEM_PROMPT = '''You are an assistant that extracts structured constraints from a user's food-ordering instruction.
Return a JSON object only with these keys: dishName (string or empty), maxPrice (number or null), minRating (number or null),
hotelName (string or empty), quantity (integer, default 1), intent (one of "order", "search", "info").
Example input and outputs:
Input: "Order me a biryani with rating above 4.5 under ₹180" => {"dishName":"biryani","maxPrice":180,"minRating":4.5,"hotelName":"","quantity":1,"intent":"order"}
Input: "Get me the highest-rated pizza below 200 from Royal Treat hotel" => {"dishName":"pizza","maxPrice":200,"minRating":null,"hotelName":"Royal Treat","quantity":1,"intent":"order"}'''

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def strip_code_fence(text: str) -> str:
    return _FENCE.sub("", text.strip()).strip()


def parse_json_object(text: str) -> Dict[str, Any]:
    cleaned = strip_code_fence(text)
    try:
        parsed = json.loads(cleaned)
    except ValueError:
        # Try to extract JSON from surrounding prose
        json_match = re.search(r"\{.*\}", cleaned, re.DOTALL)
        if not json_match:
            raise
        parsed = json.loads(json_match.group())
    if not isinstance(parsed, dict):
        raise ValueError("expected a JSON object")
    return parsed


class LLMParser:
    """Client for the remote order-instruction parser."""

    def __init__(self, api_key: str = None, api_url: str = None, model: str = None, timeout: float = None):
        self.api_key = api_key or Config.OPENAI_API_KEY
        self.api_url = api_url or Config.OPENAI_API_URL
        self.model = model or Config.OPENAI_MODEL
        self.timeout = timeout or Config.LLM_TIMEOUT

    def build_payload(self, message: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f'User: "{message}"\n\nReturn the JSON only.'},
            ],
            "temperature": 0,
            "max_tokens": 400,
        }

    def parse(self, message: str) -> Dict[str, Any]:
        if not self.api_key:
            raise UpstreamUnavailable("language model API key is not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = requests.post(self.api_url, headers=headers, json=self.build_payload(message), timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
            text = (data["choices"][0]["message"]["content"] or "").strip()
        except requests.exceptions.RequestException as e:
            raise UpstreamUnavailable(f"language model call failed: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise UpstreamUnavailable(f"unexpected language model response: {e}") from e

        if not text:
            raise UpstreamUnavailable("empty language model response")
        try:
            return parse_json_object(text)
        except ValueError as e:
            raise UpstreamUnavailable(f"language model returned malformed JSON: {e}") from e
