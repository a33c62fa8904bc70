"""Google Gemini API wrapper that reports failures as typed AI errors."""

import logging

from google import genai
from google.genai import errors, types

from config import settings
from services.ai_queue import AIRequestError, PermanentAIError, RETRYABLE_MARKERS

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 503})

_SAFETY_CATEGORIES = (
    types.HarmCategory.HARM_CATEGORY_HARASSMENT,
    types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
)


def classify_api_error(exc: errors.APIError) -> AIRequestError:
    """Map a google-genai API error onto the retryable/permanent taxonomy."""
    message = str(exc)
    retryable = exc.code in RETRYABLE_STATUS_CODES or any(
        marker in message.lower() for marker in RETRYABLE_MARKERS
    )
    return AIRequestError(message, retryable=retryable)


class GeminiTextClient:
    """Plain-text completions from a Gemini model.

    Generation parameters and safety thresholds are fixed at construction.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        temperature: float = 0.7,
        top_k: int = 40,
        top_p: float = 0.95,
        max_output_tokens: int = 1024,
    ):
        self.model = model
        self._client = genai.Client(api_key=api_key) if api_key else None
        self._config = types.GenerateContentConfig(
            temperature=temperature,
            top_k=top_k,
            top_p=top_p,
            max_output_tokens=max_output_tokens,
            safety_settings=[
                types.SafetySetting(
                    category=category,
                    threshold=types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
                )
                for category in _SAFETY_CATEGORIES
            ],
        )

    @property
    def configured(self) -> bool:
        return self._client is not None

    async def generate_text(self, prompt: str) -> str:
        """Send a prompt to Gemini and return the response text."""
        if self._client is None:
            raise PermanentAIError("Gemini API not configured")

        try:
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=self._config,
            )
        except errors.APIError as e:
            raise classify_api_error(e) from e

        text = (response.text or "").strip()
        if not text:
            # Blocked by safety settings or an empty candidate list
            raise PermanentAIError("Gemini returned an empty response")
        return text


_client: GeminiTextClient | None = None


def get_client() -> GeminiTextClient:
    global _client
    if _client is None:
        if not settings.gemini_api_key:
            logger.warning("No GEMINI_API_KEY set - AI assistant features disabled")
        _client = GeminiTextClient(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            temperature=settings.gemini_temperature,
            top_k=settings.gemini_top_k,
            top_p=settings.gemini_top_p,
            max_output_tokens=settings.gemini_max_output_tokens,
        )
    return _client
