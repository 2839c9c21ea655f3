"""Client for the Gemini ``generateContent`` REST endpoint.

One call per invocation; no retries here. Failures are raised as
``ProviderError`` already classified, so the dispatcher decides whether to
rotate credentials.
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from websy.core.config import Settings
from websy.core.exceptions import ProviderError, ProviderErrorKind

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-1.5-flash"

# Lower-cased fragments that mark a quota / rate-limit response body
RATE_LIMIT_PHRASES = (
    "rate limit",
    "quota",
    "too many requests",
    "resource_exhausted",
    "límite de solicitudes",
)

_STATUS_KINDS: dict[int, ProviderErrorKind] = {
    400: ProviderErrorKind.BAD_REQUEST,
    401: ProviderErrorKind.UNAUTHORIZED,
    403: ProviderErrorKind.FORBIDDEN,
    429: ProviderErrorKind.RATE_LIMITED,
}

_KIND_MESSAGES: dict[ProviderErrorKind, str] = {
    ProviderErrorKind.BAD_REQUEST: "Invalid request. Check the message format.",
    ProviderErrorKind.UNAUTHORIZED: "Invalid or expired API key. Check your configuration.",
    ProviderErrorKind.FORBIDDEN: "Access denied. Check the permissions of your API key.",
    ProviderErrorKind.RATE_LIMITED: "Request limit exceeded for this API key.",
    ProviderErrorKind.SERVER_ERROR: "Provider internal error. Try again.",
}


@dataclass(frozen=True)
class GenerationConfig:
    """Sampling parameters sent with every request."""

    temperature: float = 0.7
    max_output_tokens: int = 2048
    top_p: float = 0.8
    top_k: int = 10

    @classmethod
    def from_settings(cls, settings: Settings) -> "GenerationConfig":
        return cls(
            temperature=settings.GEMINI_TEMPERATURE,
            max_output_tokens=settings.GEMINI_MAX_OUTPUT_TOKENS,
            top_p=settings.GEMINI_TOP_P,
            top_k=settings.GEMINI_TOP_K,
        )

    def to_provider(self) -> dict[str, Any]:
        return {
            "temperature": self.temperature,
            "maxOutputTokens": self.max_output_tokens,
            "topP": self.top_p,
            "topK": self.top_k,
        }


def classify_failure(status_code: int | None, body: str = "") -> ProviderErrorKind:
    """Map an HTTP status and response body to a failure kind.

    Quota phrasing in the body wins over the status code, since some
    gateways report exhausted quota as 403 or 400.
    """
    lowered = (body or "").lower()
    if status_code == 429 or any(phrase in lowered for phrase in RATE_LIMIT_PHRASES):
        return ProviderErrorKind.RATE_LIMITED
    if status_code in _STATUS_KINDS:
        return _STATUS_KINDS[status_code]
    if status_code is not None and 500 <= status_code < 600:
        return ProviderErrorKind.SERVER_ERROR
    return ProviderErrorKind.UNKNOWN


def extract_answer_text(payload: Any) -> str:
    """Pull the answer text out of a ``generateContent`` response.

    Raises:
        ProviderError: ``MALFORMED_RESPONSE`` if candidates/content/parts are
            missing or the text is empty.
    """
    try:
        parts = payload["candidates"][0]["content"]["parts"]
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
    except (KeyError, IndexError, TypeError) as e:
        raise ProviderError(
            ProviderErrorKind.MALFORMED_RESPONSE, "Invalid response from the AI provider"
        ) from e
    if not text.strip():
        raise ProviderError(ProviderErrorKind.MALFORMED_RESPONSE, "The AI response is empty")
    return text


class GeminiClient:
    """Async client for the provider's content generation endpoint."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        timeout: float = 60.0,
        generation_config: GenerationConfig | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            http_client: Shared ``httpx.AsyncClient``; one is created lazily if omitted.
            base_url: API root, without trailing slash.
            model: Model identifier.
            timeout: Transport timeout in seconds.
            generation_config: Sampling parameters.
        """
        self._http_client = http_client
        self._owns_client = http_client is None
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout = timeout
        self.generation_config = generation_config or GenerationConfig()

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: httpx.AsyncClient | None = None
    ) -> "GeminiClient":
        return cls(
            http_client=http_client,
            base_url=settings.GEMINI_BASE_URL,
            model=settings.GEMINI_MODEL,
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
            generation_config=GenerationConfig.from_settings(settings),
        )

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/models/{self._model}:generateContent"

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def aclose(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def generate_content(self, api_key: str, contents: list[dict[str, Any]]) -> str:
        """Send one request and return the answer text.

        Args:
            api_key: Credential for this attempt.
            contents: Role-tagged turns in provider format.

        Returns:
            Non-empty answer text.

        Raises:
            ProviderError: Classified failure (HTTP status, transport or payload).
        """
        body = {"contents": contents, "generationConfig": self.generation_config.to_provider()}
        try:
            response = await self._client().post(
                self.endpoint,
                params={"key": api_key},
                json=body,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            raise ProviderError(ProviderErrorKind.UNKNOWN, "Provider request timed out") from e
        except httpx.TransportError as e:
            raise ProviderError(ProviderErrorKind.UNKNOWN, f"Provider unreachable: {e}") from e

        if response.is_error:
            kind = classify_failure(response.status_code, response.text)
            message = _KIND_MESSAGES.get(
                kind, f"API error: {response.status_code} {response.reason_phrase}"
            )
            raise ProviderError(kind, message, provider_status=response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderError(
                ProviderErrorKind.MALFORMED_RESPONSE, "Provider returned invalid JSON"
            ) from e
        return extract_answer_text(payload)
