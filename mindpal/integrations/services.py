"""Client for the generative-text, speech-synthesis and translation APIs.

The services are opaque request/response endpoints. Every call is gated on
the network being online and wrapped in the shared retry policy: network
errors and 5xx responses retry, 4xx responses do not.

Example:
    >>> services = ServiceClient(get_config().services, monitor)
    >>> reply = await services.generate_text("How can I relax tonight?")
    >>> audio = await services.synthesize_speech(reply)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from mindpal.config import ServicesSettings
from mindpal.errors import ServiceError, config_missing, offline, validation_required
from mindpal.reliability.connectivity import ConnectivityMonitor
from mindpal.reliability.retry import RetryPolicy, with_retry
from mindpal.reliability.signatures import is_retryable
from mindpal.utils.async_utils import run_in_thread

logger = logging.getLogger(__name__)

T = TypeVar("T")

FALLBACK_REPLY = "I'm here to help! Could you please rephrase your question?"

SERVICE_POLICY = RetryPolicy(max_attempts=2, base_delay=0.5)


def is_service_retryable(error: Exception) -> bool:
    """Network errors and 5xx retry; any 4xx is final."""
    if isinstance(error, ServiceError) and error.status is not None and 400 <= error.status < 500:
        return False
    return is_retryable(error)


def _create_session() -> requests.Session:
    session = requests.Session()
    # Retries are handled by with_retry
    adapter = HTTPAdapter(max_retries=Retry(total=0))
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({"User-Agent": "MindPal-ServiceClient/1.0"})
    return session


class ServiceClient:
    """Async wrapper over the third-party AI and speech HTTP APIs."""

    def __init__(
        self,
        settings: ServicesSettings,
        monitor: ConnectivityMonitor | None = None,
        policy: RetryPolicy | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._settings = settings
        self._monitor = monitor
        self._policy = policy or SERVICE_POLICY
        self._http = session or _create_session()
        self._timeout = (settings.connect_timeout_seconds, settings.read_timeout_seconds)

    def _post(self, url: str, **kwargs: Any) -> requests.Response:
        return self._http.post(url, timeout=self._timeout, **kwargs)

    async def _call(self, service: str, url: str, parse: Callable[[requests.Response], T], **kwargs: Any) -> T:
        if self._monitor is not None and not self._monitor.state.is_online:
            raise offline(service)

        async def once() -> T:
            try:
                response = await run_in_thread(self._post, url, **kwargs)
            except requests.exceptions.RequestException as e:
                raise ServiceError(f"{service} request failed: {e}", service=service, cause=e) from e
            if response.status_code >= 400:
                raise ServiceError(
                    f"{service} returned HTTP {response.status_code}",
                    service=service,
                    status=response.status_code,
                )
            return parse(response)

        return await with_retry(once, self._policy, retryable=is_service_retryable, name=service)

    async def generate_text(self, prompt: str) -> str:
        """Send a prompt to the generative-text API and return the reply text."""
        if not prompt.strip():
            raise validation_required("prompt")
        if not self._settings.text_api_key:
            raise config_missing("MINDPAL_GEMINI_API_KEY")

        def parse(response: requests.Response) -> str:
            data = response.json()
            try:
                return data["candidates"][0]["content"]["parts"][0]["text"] or FALLBACK_REPLY
            except (KeyError, IndexError, TypeError):
                logger.warning("Generative-text response had no candidates")
                return FALLBACK_REPLY

        return await self._call(
            "generate_text",
            self._settings.text_url,
            parse,
            params={"key": self._settings.text_api_key},
            json={"contents": [{"parts": [{"text": prompt}]}]},
        )

    async def synthesize_speech(self, text: str, voice_id: str | None = None) -> bytes:
        """Return MPEG audio for ``text``."""
        if not text.strip():
            raise validation_required("text")
        if not self._settings.speech_api_key:
            raise config_missing("MINDPAL_ELEVENLABS_API_KEY")

        voice = voice_id or self._settings.speech_voice_id
        return await self._call(
            "synthesize_speech",
            f"{self._settings.speech_url.rstrip('/')}/{voice}",
            lambda response: response.content,
            headers={"Accept": "audio/mpeg", "xi-api-key": self._settings.speech_api_key},
            json={"text": text, "model_id": self._settings.speech_model_id},
        )

    async def translate(self, text: str, target_language: str, source_language: str = "auto") -> str:
        """Translate ``text``; English targets and blank text are returned as-is."""
        if not text.strip() or target_language == "en":
            return text
        if not self._settings.translate_api_key:
            raise config_missing("MINDPAL_LINGO_API_KEY")

        def parse(response: requests.Response) -> str:
            return response.json().get("translatedText") or text

        return await self._call(
            "translate",
            self._settings.translate_url,
            parse,
            headers={"x-api-key": self._settings.translate_api_key},
            json={"q": text, "source": source_language, "target": target_language, "format": "text"},
        )

    def close(self) -> None:
        self._http.close()
