from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..errors import ProviderError, RateLimitError


LOG = logging.getLogger("askcode.llm")


def _build_session(retry_statuses: Tuple[int, ...] = ()) -> requests.Session:
    session = requests.Session()
    retry = Retry(
        total=2 if retry_statuses else 0,
        backoff_factor=0.5,
        status_forcelist=retry_statuses,
        allowed_methods=frozenset(["POST", "GET"]),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=10)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def _retry_after(resp: requests.Response) -> Optional[float]:
    raw = resp.headers.get("Retry-After")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _error_detail(resp: requests.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return (resp.text or "")[:300]
    if isinstance(payload, dict):
        return str(payload.get("message") or payload.get("detail") or payload)[:300]
    return str(payload)[:300]


def raise_for_provider_status(resp: requests.Response) -> None:
    if resp.status_code == 429:
        raise RateLimitError(_error_detail(resp) or "Rate limit exceeded", retry_after=_retry_after(resp))
    if resp.status_code >= 400:
        raise ProviderError(
            f"Mistral API error {resp.status_code}: {_error_detail(resp)}",
            status_code=resp.status_code,
        )


class MistralClient:
    """Thin HTTP client for the Mistral chat completion and embedding endpoints.

    Chat streams are opened without transport-level retries: rate limiting is
    surfaced as :class:`RateLimitError` so the caller's policy decides.
    """

    def __init__(
        self,
        base_url: str = "https://api.mistral.ai/v1",
        connect_timeout: float = 3.0,
        read_timeout: float = 60.0,
        session: Optional[requests.Session] = None,
        embedding_session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = (connect_timeout, read_timeout)
        self._session = session or _build_session()
        self._embedding_session = embedding_session or _build_session((429, 500, 502, 503, 504))

    @staticmethod
    def _headers(api_key: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def open_chat_stream(
        self,
        api_key: str,
        model: str,
        temperature: float,
        max_tokens: int,
        messages: List[Dict[str, str]],
    ) -> Iterator[str]:
        """Send the request and check its status; return an iterator over text deltas.

        Errors raised here happen before any chunk is read and are safe to
        retry. Errors raised while iterating are not.
        """

        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": True,
        }
        LOG.debug("mistral_stream_open", extra={"model": model, "base_url": self.base_url})
        try:
            resp = self._session.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers={**self._headers(api_key), "Accept": "text/event-stream"},
                timeout=self._timeout,
                stream=True,
            )
        except requests.exceptions.RequestException as exc:
            raise ProviderError(f"Mistral API unreachable: {exc}") from exc
        try:
            raise_for_provider_status(resp)
        except ProviderError:
            resp.close()
            raise
        return self._iter_deltas(resp)

    @staticmethod
    def _iter_deltas(resp: requests.Response) -> Iterator[str]:
        try:
            for raw_line in resp.iter_lines():
                if not raw_line:
                    continue
                line = raw_line.decode("utf-8") if isinstance(raw_line, bytes) else raw_line
                if not line.startswith("data: "):
                    continue
                data = line[6:].strip()
                if data == "[DONE]":
                    break
                try:
                    parsed: Dict[str, Any] = json.loads(data)
                except json.JSONDecodeError:
                    continue
                choices = parsed.get("choices") or [{}]
                delta = choices[0].get("delta") or {}
                token = delta.get("content") or ""
                if isinstance(token, str) and token:
                    yield token
        except requests.exceptions.RequestException as exc:
            raise ProviderError(f"Mistral stream interrupted: {exc}") from exc
        finally:
            resp.close()

    def embed(self, api_key: str, model: str, text: str) -> List[float]:
        try:
            resp = self._embedding_session.post(
                f"{self.base_url}/embeddings",
                json={"model": model, "input": [text]},
                headers=self._headers(api_key),
                timeout=self._timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise ProviderError(f"Mistral API unreachable: {exc}") from exc
        raise_for_provider_status(resp)
        data = resp.json().get("data") or []
        if not data or not isinstance(data[0].get("embedding"), list):
            raise ProviderError("Mistral embeddings response missing vector")
        return [float(x) for x in data[0]["embedding"]]
