"""HTTP transport for the push platform REST API."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pymobilepush._constants import USER_AGENT
from pymobilepush._redact import redact_for_log
from pymobilepush.config import PushConfig
from pymobilepush.exceptions import PushTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def post_json(self, endpoint: str, body: Mapping[str, Any]) -> dict[str, Any]:
        ...


class HttpTransport:
    """JSON-over-HTTPS transport with bearer token authentication."""

    def __init__(
        self,
        config: PushConfig,
        http_session: aiohttp.ClientSession,
    ) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    async def post_json(self, endpoint: str, body: Mapping[str, Any]) -> dict[str, Any]:
        """POST *body* as JSON and return the decoded JSON reply.

        An empty reply body decodes to ``{}``.
        """
        headers: dict[str, str] = {
            "accept": "application/json",
            "authorization": f"Bearer {self._config.access_token}",
            "content-type": "application/json; charset=UTF-8",
            "user-agent": USER_AGENT,
        }

        url = f"{self._config.base_url}{endpoint}"
        data = json.dumps(body, separators=(",", ":"))

        _logger.debug("POST %s", url)
        if self._config.api_trace_enabled:
            _logger.debug("POST %s body=%s", endpoint, redact_for_log(body))

        try:
            async with self._http.post(url, data=data, headers=headers, timeout=self._timeout) as resp:
                text = await resp.text()
                if not 200 <= resp.status < 300:
                    raise PushTransportError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except PushTransportError:
            raise
        except TimeoutError as exc:
            raise PushTransportError(
                f"Request to {endpoint} timed out after {self._config.request_timeout}s",
                endpoint=endpoint,
            ) from exc
        except aiohttp.ClientError as exc:
            raise PushTransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        if not text.strip():
            return {}

        try:
            result = json.loads(text)
        except json.JSONDecodeError:
            # The request was accepted; a non-JSON body carries nothing we need.
            _logger.debug("Non-JSON 2xx body from %s: %s", endpoint, text[:64])
            return {"text": text[:200]}

        if not isinstance(result, dict):
            return {"data": result}

        if self._config.api_trace_enabled:
            _logger.debug("Response %s body=%s", endpoint, redact_for_log(result))
        return result
