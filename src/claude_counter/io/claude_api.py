"""claude.ai web API client for usage and conversation-tree payloads.

Returns raw decoded JSON; normalization happens in claude_counter.core.
"""

from __future__ import annotations

import json
import ssl
import urllib.error
import urllib.parse
import urllib.request

import truststore

CLAUDE_BASE_URL = "https://claude.ai"
USER_AGENT = "claude-counter"


class ClaudeApiError(RuntimeError):
    """Transport, HTTP, or decoding failure talking to claude.ai."""


def _quote(segment: str) -> str:
    return urllib.parse.quote(segment, safe="")


class ClaudeApiClient:
    def __init__(
        self,
        session_key: str,
        *,
        base_url: str = CLAUDE_BASE_URL,
        timeout_seconds: float = 20.0,
    ) -> None:
        self._session_key = session_key
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds

    def _headers(self) -> dict[str, str]:
        return {
            "accept": "application/json",
            "cookie": f"sessionKey={self._session_key}",
            "user-agent": USER_AGENT,
        }

    def _get_json(self, path: str) -> object:
        request = urllib.request.Request(
            f"{self._base_url}{path}",
            headers=self._headers(),
            method="GET",
        )
        try:
            ctx = truststore.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            with urllib.request.urlopen(
                request, context=ctx, timeout=self._timeout_seconds
            ) as response:
                body = response.read()
        except urllib.error.HTTPError as exc:
            raise ClaudeApiError(f"GET {path} failed: HTTP {exc.code}") from exc
        except (urllib.error.URLError, OSError) as exc:
            raise ClaudeApiError(f"GET {path} failed: {exc}") from exc
        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ClaudeApiError(f"GET {path} returned invalid JSON") from exc

    def fetch_usage(self, org_id: str) -> object:
        return self._get_json(f"/api/organizations/{_quote(org_id)}/usage")

    def fetch_conversation(self, org_id: str, conversation_id: str) -> object:
        query = urllib.parse.urlencode(
            {"tree": "true", "rendering_mode": "messages", "render_all_tools": "true"}
        )
        return self._get_json(
            f"/api/organizations/{_quote(org_id)}/chat_conversations/{_quote(conversation_id)}?{query}"
        )
