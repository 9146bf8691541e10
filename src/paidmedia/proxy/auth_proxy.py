"""
proxy/auth_proxy.py — Local Auth-Translating Proxy

The agent subprocess speaks the standard Anthropic wire format and sends
its key in an `x-api-key` header. The upstream LLM proxy expects
`Authorization: <scheme> <key>` instead. This listener bridges the two:

    agent subprocess → http://127.0.0.1:<port>/v1/messages
        → header translated → https://<llm-proxy>/v1/messages

Per request:
  - the body is read fully (bounded JSON, not uploads)
  - host, the vendor key header and hop-by-hop headers are dropped
  - Authorization is set from the vendor key when one was sent
  - the upstream response is streamed back chunk by chunk with its status,
    headers and raw (still encoded) body bytes

The target URL is read once per request. update_target() swaps it without
a restart or a lock; last writer wins.

Usage:
    proxy = AuthProxy("https://llm-proxy.example.com", auth_scheme="TD1")
    base_url = await proxy.start()
    ...
    await proxy.stop()
"""

from __future__ import annotations

import asyncio
from typing import Optional

import httpx
from aiohttp import web

from paidmedia.exceptions import ProxyUpstreamError
from paidmedia.observability.logger import get_logger

log = get_logger(__name__)

LISTEN_HOST = "127.0.0.1"

# Inbound bodies are whole conversations; aiohttp's 1 MB default is too small.
_MAX_REQUEST_BYTES = 64 * 1024 * 1024

_HOP_BY_HOP = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "proxy-connection",
    "te",
    "trailer",
    "trailers",
    "transfer-encoding",
    "upgrade",
})

# Recomputed by the HTTP client / server on each side.
_REQUEST_DROP = _HOP_BY_HOP | {"host", "content-length"}
_RESPONSE_DROP = _HOP_BY_HOP | {"content-length"}


def _strip_slash(url: str) -> str:
    return url.strip().rstrip("/")


class AuthProxy:
    """One loopback listener per runtime. start() is idempotent."""

    def __init__(
        self,
        target_url: str,
        *,
        api_key_header: str = "x-api-key",
        auth_scheme: str = "Bearer",
        upstream_timeout: float = 600.0,
        connect_timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._target_url = _strip_slash(target_url)
        self._api_key_header = api_key_header.lower()
        self._auth_scheme = auth_scheme
        self._timeout = httpx.Timeout(upstream_timeout, connect=connect_timeout)
        self._transport = transport

        self._runner: Optional[web.AppRunner] = None
        self._client: Optional[httpx.AsyncClient] = None
        self._local_url: Optional[str] = None
        self._start_lock = asyncio.Lock()

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def target_url(self) -> str:
        return self._target_url

    @property
    def local_url(self) -> Optional[str]:
        return self._local_url

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def start(self, target_url: Optional[str] = None) -> str:
        """Bind 127.0.0.1 on an ephemeral port and return the local base URL."""
        if target_url:
            self.update_target(target_url)

        async with self._start_lock:
            if self._runner is not None and self._local_url:
                return self._local_url

            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=False,
                transport=self._transport,
            )

            app = web.Application(client_max_size=_MAX_REQUEST_BYTES)
            app.router.add_route("*", "/{tail:.*}", self._handle)

            runner = web.AppRunner(app, access_log=None)
            await runner.setup()
            site = web.TCPSite(runner, LISTEN_HOST, 0)
            try:
                await site.start()
            except OSError:
                await runner.cleanup()
                await self._client.aclose()
                self._client = None
                raise

            port = runner.addresses[0][1]
            self._runner = runner
            self._local_url = f"http://{LISTEN_HOST}:{port}"

        log.info("proxy.started", local_url=self._local_url, target=self._target_url)
        return self._local_url

    def update_target(self, new_url: str) -> None:
        """Point future requests at a new upstream. No restart."""
        self._target_url = _strip_slash(new_url)
        log.info("proxy.target_updated", target=self._target_url)

    async def stop(self) -> None:
        if self._runner is None:
            return
        await self._runner.cleanup()
        if self._client is not None:
            await self._client.aclose()
        self._runner = None
        self._client = None
        self._local_url = None
        log.info("proxy.stopped")

    # ── Request handling ──────────────────────────────────────────────────────

    def _forward_headers(self, inbound) -> list[tuple[str, str]]:
        api_key = inbound.get(self._api_key_header)
        headers = []
        for key, value in inbound.items():
            lower = key.lower()
            if lower in _REQUEST_DROP or lower == self._api_key_header:
                continue
            if api_key and lower == "authorization":
                continue
            headers.append((key, value))
        if api_key:
            headers.append(("Authorization", f"{self._auth_scheme} {api_key}"))
        return headers

    async def _handle(self, request: web.Request) -> web.StreamResponse:
        target = self._target_url
        body = await request.read()
        url = f"{target}{request.raw_path}"

        client = self._client
        if client is None:
            err = ProxyUpstreamError(target, "upstream client is closed")
            log.warning("proxy.not_ready", method=request.method, path=request.path)
            return self._error_response(err)

        upstream_request = client.build_request(
            request.method,
            url,
            headers=self._forward_headers(request.headers),
            content=body or None,
        )

        try:
            upstream = await client.send(upstream_request, stream=True)
        except httpx.HTTPError as e:
            err = ProxyUpstreamError(target, str(e) or type(e).__name__)
            log.warning(
                "proxy.upstream_error",
                method=request.method,
                path=request.path,
                target=target,
                error=err.reason,
            )
            return self._error_response(err)

        try:
            response = web.StreamResponse(
                status=upstream.status_code,
                reason=upstream.reason_phrase or None,
            )
            for key, value in upstream.headers.multi_items():
                if key.lower() not in _RESPONSE_DROP:
                    response.headers.add(key, value)

            await response.prepare(request)
            async for chunk in upstream.aiter_raw():
                await response.write(chunk)
            await response.write_eof()
        except ConnectionResetError:
            log.debug("proxy.client_disconnected", path=request.path)
        finally:
            await upstream.aclose()

        log.debug(
            "proxy.forwarded",
            method=request.method,
            path=request.path,
            status=upstream.status_code,
        )
        return response

    @staticmethod
    def _error_response(err: ProxyUpstreamError) -> web.Response:
        return web.json_response(
            {
                "type": "error",
                "error": {
                    "type": "api_error",
                    "message": f"Auth proxy error: {err.reason}",
                },
            },
            status=502,
        )

    def __repr__(self) -> str:
        state = self._local_url or "stopped"
        return f"<AuthProxy {state} -> {self._target_url}>"
