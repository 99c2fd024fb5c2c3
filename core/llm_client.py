# core/llm_client.py
from typing import Any, Dict, Optional
import httpx
from config.settings import Settings
from core.retry import RetryPolicy, is_transient, linear_backoff, raise_for_status, with_retry
from util.enums import GenerationProvider
from util.errors import GenerationError, NonRetryableRemoteError
from util.timing import timed
import logging

logger = logging.getLogger(__name__)


class GenerationClient:
    """
    One prompt in, one completion out. Adapters differ only in wire format;
    retry and error translation are shared.
    """

    provider: str = "base"

    def __init__(
        self,
        *,
        temperature: float = 0.2,
        max_output_tokens: int = 800,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._temperature = temperature
        self._max_tokens = max_output_tokens
        self._policy = retry_policy or RetryPolicy(
            max_attempts=3,
            backoff=linear_backoff(1.0),
            retryable=is_transient,
            name="generate",
        )
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def _complete(self, system: str, prompt: str) -> str:
        raise NotImplementedError

    async def generate(self, prompt: str, *, system: str = "") -> str:
        """
        Returns the stripped completion text. Raises GenerationError once retries are
        exhausted, immediately for auth/permission/quota rejections.
        """

        async def _once() -> str:
            text = await self._complete(system, prompt)
            if not text or not text.strip():
                raise GenerationError("generation API returned an empty answer")
            return text.strip()

        try:
            with timed(logger, "ai.generate", provider=self.provider):
                return await with_retry(_once, self._policy)
        except GenerationError:
            raise
        except NonRetryableRemoteError as e:
            raise GenerationError(str(e)) from e
        except httpx.HTTPError as e:
            raise GenerationError(
                f"failed to generate response after {self._policy.max_attempts} attempts: {e}"
            ) from e

    async def aclose(self) -> None:
        await self._client.aclose()


class GeminiGenerationClient(GenerationClient):
    """
    Gemini `generateContent`.
    Response shape: {"candidates": [{"content": {"parts": [{"text": "..."}]}}]}
    """

    provider = "gemini"

    def __init__(self, *, url: str, api_key: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self._url = url
        self._api_key = api_key

    async def _complete(self, system: str, prompt: str) -> str:
        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self._temperature,
                "maxOutputTokens": self._max_tokens,
            },
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        resp = await self._client.post(
            self._url,
            headers={"x-goog-api-key": self._api_key, "content-type": "application/json"},
            json=payload,
        )
        raise_for_status(resp, "generation API")
        try:
            data = resp.json()
        except ValueError as e:
            raise GenerationError("generation API returned invalid JSON") from e

        candidates = data.get("candidates") or []
        if not candidates:
            reason = (data.get("promptFeedback") or {}).get("blockReason")
            raise GenerationError(f"generation API returned no candidates (blockReason={reason})")
        parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
        return "".join(str(p.get("text") or "") for p in parts if isinstance(p, dict))


class AnthropicGenerationClient(GenerationClient):
    """
    Anthropic Messages API.
    Response shape: {"content": [{"type": "text", "text": "..."}]}
    """

    provider = "anthropic"

    def __init__(
        self, *, url: str, api_key: str, model: str, version: str, **kwargs
    ) -> None:
        super().__init__(**kwargs)
        self._url = url
        self._api_key = api_key
        self._model = model
        self._version = version

    async def _complete(self, system: str, prompt: str) -> str:
        headers = {
            "x-api-key": self._api_key,
            "anthropic-version": self._version,
            "content-type": "application/json",
        }
        payload: Dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self._temperature,
        }
        if system:
            payload["system"] = system
        resp = await self._client.post(self._url, headers=headers, json=payload)
        raise_for_status(resp, "generation API")
        try:
            data = resp.json()
        except ValueError as e:
            raise GenerationError("generation API returned invalid JSON") from e

        content = data.get("content") or []
        return "".join(
            str(node.get("text") or "")
            for node in content
            if isinstance(node, dict) and node.get("type") == "text"
        )


def build_generation_client(cfg: Settings) -> GenerationClient:
    common = dict(
        temperature=cfg.GEN_TEMPERATURE,
        max_output_tokens=cfg.GEN_MAX_OUTPUT_TOKENS,
        retry_policy=RetryPolicy(
            max_attempts=cfg.REMOTE_MAX_ATTEMPTS,
            backoff=linear_backoff(cfg.GEN_RETRY_BASE_SECONDS),
            retryable=is_transient,
            name="generate",
        ),
        timeout=cfg.HTTP_TIMEOUT_SECONDS,
    )
    if cfg.GENERATION_PROVIDER == GenerationProvider.ANTHROPIC:
        return AnthropicGenerationClient(
            url=cfg.ANTHROPIC_API_URL,
            api_key=cfg.ANTHROPIC_API_KEY or "",
            model=cfg.ANTHROPIC_MODEL,
            version=cfg.ANTHROPIC_VERSION,
            **common,
        )
    return GeminiGenerationClient(
        url=cfg.GEMINI_GEN_URL or "",
        api_key=cfg.GEMINI_API_KEY or "",
        **common,
    )
