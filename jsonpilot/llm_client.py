# jsonpilot/llm_client.py

import asyncio
import logging
import random
import threading
import time
import traceback
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from openai import OpenAI

from jsonpilot.config import Settings
from jsonpilot.errors import MaxRetryErrorsException, TokenFetchError
from jsonpilot.token_cache import CopilotTokenCache

logger = logging.getLogger("jsonpilot_backend")

T = TypeVar("T")

COPILOT_HEADERS = {
    "Editor-Version": "ZED/1.1.1",
    "Copilot-Integration-Id": "vscode-chat",
}

# Global backoff state (shared across all clients)
_global_backoff_lock = threading.Lock()
_global_wait_until = 0.0
_global_backoff_seconds = 30.0
_GLOBAL_BACKOFF_MAX = 600.0


def call_with_retries_sync(
    fn: Callable[[], T],
    *,
    retries: int = 3,
    log: Callable[[str], None] | None = None,
) -> T:
    """
    Run a sync LLM call with global 429/timeout backoff + retries.
    """
    last_exception: Exception | None = None

    def _is_timeout_error(e: Exception) -> bool:
        if isinstance(e, asyncio.TimeoutError):
            return True
        msg = repr(e)
        return "TimeoutError" in msg or "timed out" in msg.lower()

    def _is_resource_exhausted_error(e: Exception) -> bool:
        msg = str(e)
        return "429" in msg or "Too Many Requests" in msg or "rate limit" in msg.lower()

    def _respect_global_backoff() -> None:
        while True:
            with _global_backoff_lock:
                wait = _global_wait_until - time.monotonic()
            if wait <= 0:
                return
            time.sleep(min(wait, 1.0))

    def _register_429_and_get_delay() -> float:
        global _global_wait_until, _global_backoff_seconds

        with _global_backoff_lock:
            now = time.monotonic()
            base = _global_backoff_seconds
            delay = random.uniform(base * 0.95, base * 1.35)
            _global_backoff_seconds = min(_global_backoff_seconds * 2, _GLOBAL_BACKOFF_MAX)
            _global_wait_until = max(_global_wait_until, now + delay)
            return delay

    def _reset_backoff_on_success() -> None:
        global _global_backoff_seconds
        with _global_backoff_lock:
            _global_backoff_seconds = max(1.0, _global_backoff_seconds * 0.5)

    for attempt in range(retries):
        _respect_global_backoff()
        start_time = time.time()
        try:
            result = fn()
            _reset_backoff_on_success()
            return result
        except Exception as e:
            elapsed = time.time() - start_time
            last_exception = e

            if _is_resource_exhausted_error(e) or _is_timeout_error(e):
                delay = _register_429_and_get_delay()
                msg = f"Attempt {attempt+1} got 429/timeout, backing off ~{delay:.1f}s."
            else:
                msg = f"Attempt {attempt+1} failed."

            if log:
                log(f"{msg} (elapsed={elapsed:.2f}s): {e}\n{traceback.format_exc()}")

    raise MaxRetryErrorsException(f"All {retries} retry attempts failed.") from last_exception


def build_openai_client(
    settings: Settings,
    token_cache: Optional[CopilotTokenCache] = None,
    *,
    additional_headers: Optional[Dict[str, str]] = None,
) -> OpenAI:
    """
    Copilot-backed client when USE_COPILOT_API is on (falling back to direct
    OpenAI if the Copilot token cannot be obtained), direct OpenAI otherwise.
    """
    client_kwargs: Dict[str, Any] = {"max_retries": 0}
    if settings.llm_timeout is not None:
        client_kwargs["timeout"] = settings.llm_timeout

    if settings.use_copilot_api and token_cache is not None:
        try:
            copilot_token = token_cache.get_token()
            logger.info("[llm] Using GitHub Copilot API")
            return OpenAI(
                api_key=copilot_token,
                base_url=settings.copilot_base_url,
                default_headers={
                    "Authorization": f"Bearer {copilot_token}",
                    **COPILOT_HEADERS,
                    **(additional_headers or {}),
                },
                **client_kwargs,
            )
        except TokenFetchError as e:
            logger.warning(f"[llm] Failed to initialize Copilot API, falling back to OpenAI: {e}")

    if not settings.openai_api_key:
        raise ValueError("OPENAI_API_KEY is required when the Copilot API is disabled or unavailable")

    logger.info("[llm] Using direct OpenAI API")
    return OpenAI(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        default_headers=additional_headers or None,
        **client_kwargs,
    )


class ChatLlmClient:
    """
    Minimal wrapper for chat-style use:

        for chunk in chat_llm.stream([...]): ...

    Under the hood: OpenAI Chat Completions with role/content messages.
    """

    def __init__(self, client: Any, model_name: str, *, temperature: float = 0.0, retries: int = 3):
        if not model_name:
            raise ValueError("A model name is required (set JSON_FIX_MODEL or OPENAI_MODEL)")
        self._client = client
        self.model_name = model_name
        self.temperature = temperature
        self.retries = retries

    def _to_openai_messages(self, messages: List[BaseMessage]) -> List[Dict[str, str]]:
        out: List[Dict[str, str]] = []
        for m in messages:
            if isinstance(m, SystemMessage):
                role = "system"
            elif isinstance(m, HumanMessage):
                role = "user"
            elif isinstance(m, AIMessage):
                role = "assistant"
            else:
                role = "user"
            out.append({"role": role, "content": str(m.content)})
        return out

    def _create(self, messages: List[BaseMessage], stream: bool = True):
        return call_with_retries_sync(
            lambda: self._client.chat.completions.create(
                model=self.model_name,
                messages=self._to_openai_messages(messages),
                temperature=self.temperature,
                stream=stream,
            ),
            retries=self.retries,
            log=lambda msg: logger.warning(f"[CHAT-LLM-RETRY] {msg}"),
        )

    def stream(self, messages: List[BaseMessage]) -> Iterator[str]:
        """
        Yields text deltas as they arrive. Retries cover opening the stream only.
        """
        response = self._create(messages, stream=True)
        try:
            for chunk in response:
                choices = getattr(chunk, "choices", None) or []
                if not choices:
                    continue
                content = getattr(choices[0].delta, "content", None)
                if content:
                    yield content
        finally:
            # early exit from the consumer must release the HTTP connection
            close = getattr(response, "close", None)
            if callable(close):
                close()
