"""
Gemini API Client

Gemini exposes an OpenAI-compatible endpoint, so we use the openai library
pointed at Google's base URL.

- One call per generation; the prompt asks for a single JSON object
- Output is parsed defensively by the question service
"""
import json

from openai import OpenAI

from nextrounds.core.config import get_settings
from nextrounds.core.logging_config import get_logger

settings = get_settings()
logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are an expert interview coach. Respond with a single valid JSON object "
    "and nothing else."
)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences the model sometimes wraps JSON in."""
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


class GeminiClient:
    """
    Wrapper for the Gemini chat-completions endpoint.
    """

    def __init__(self, api_key: str = None, model: str = None):
        self.client = OpenAI(
            api_key=api_key or settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            timeout=settings.ai_timeout_seconds,
            max_retries=0
        )
        self.model = model or settings.gemini_model

    def _call_api(self, system_prompt: str, user_content: str, max_tokens: int = 4000) -> str:
        """
        Internal method to call the Gemini API.
        Returns raw text response.
        """
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content}
            ],
            max_tokens=max_tokens,
            temperature=0.7
        )
        return response.choices[0].message.content or ""

    def _extract_json(self, text: str):
        """
        Extract JSON from API response.
        Raises json.JSONDecodeError when the text is not JSON.
        """
        return json.loads(strip_code_fences(text))

    def generate_questions(self, prompt: str):
        """
        Send the interview prompt and return the decoded JSON payload.

        Raises:
            openai.APITimeoutError: the model did not answer in time
            json.JSONDecodeError: the answer was not JSON
        """
        response = self._call_api(SYSTEM_PROMPT, prompt)
        logger.debug(f"Gemini response length: {len(response)}")
        return self._extract_json(response)

    def test_connection(self) -> bool:
        """Test if the Gemini API is reachable"""
        try:
            response = self._call_api(
                "You are a test assistant.",
                "Reply with exactly: OK",
                max_tokens=10
            )
            return "OK" in response.upper()
        except Exception as e:
            logger.warning(f"Gemini connection failed: {e}")
            return False


# Singleton instance
_gemini_client: GeminiClient = None


def get_gemini_client() -> GeminiClient:
    """Get or create Gemini client (singleton pattern)"""
    global _gemini_client
    if _gemini_client is None:
        _gemini_client = GeminiClient()
    return _gemini_client
