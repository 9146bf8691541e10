"""
runtime.py — Orchestration Core Factory

Wires the full pipeline from settings:

    AuthProxy → AgentClient → SessionManager → ChatController
                                                 ├── StreamAccumulator
                                                 └── SkillEngine → brief DocumentStore

Every component is an explicit handle on the returned Runtime. There are no
module-level "current proxy" / "current session" globals.

Usage:
    from paidmedia.runtime import build_runtime
    runtime = build_runtime(settings)
    await runtime.start()
    ...
    await runtime.shutdown()
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from paidmedia.agent.client import AgentClient, AgentConfig
from paidmedia.agent.prompts import build_system_prompt
from paidmedia.config.settings import Settings
from paidmedia.documents.brief import new_brief_store
from paidmedia.documents.store import DocumentStore
from paidmedia.gateway.controller import ChatController
from paidmedia.observability.logger import get_logger
from paidmedia.proxy.auth_proxy import AuthProxy
from paidmedia.session.manager import SessionManager
from paidmedia.skills.catalog import default_registry
from paidmedia.skills.merge import SkillEngine
from paidmedia.skills.registry import SkillRegistry

log = get_logger(__name__)


@dataclass
class Runtime:
    """All wired components returned by build_runtime()."""
    settings: Settings
    proxy: AuthProxy
    client: AgentClient
    sessions: SessionManager
    registry: SkillRegistry
    engine: SkillEngine
    brief: DocumentStore
    controller: ChatController

    async def start(self) -> Optional[str]:
        """Start the auth proxy when a key is configured. Returns its local URL."""
        if not self.client.is_configured():
            log.warning("runtime.no_api_key")
            return None
        return await self.client.ensure_proxy()

    async def shutdown(self) -> None:
        await self.sessions.dispose_session()
        await self.proxy.stop()
        log.info("runtime.stopped")


def build_runtime(
    settings: Settings,
    *,
    query_fn=None,
    proxy_transport: Optional[httpx.AsyncBaseTransport] = None,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
    registry: Optional[SkillRegistry] = None,
    brief: Optional[DocumentStore] = None,
) -> Runtime:
    """
    Build the runtime from settings.

    Args:
        settings:         Loaded Settings object.
        query_fn:         Agent SDK query function override (tests).
        proxy_transport:  httpx transport for the proxy's upstream calls (tests).
        http_transport:   httpx transport for the connection test (tests).
        registry:         Skill registry; defaults to the built-in catalogue.
        brief:            Brief document store; defaults to an empty brief.
    """
    if registry is None:
        registry = default_registry()
    if brief is None:
        brief = new_brief_store()

    proxy = AuthProxy(
        settings.proxy.llm_proxy_url,
        api_key_header=settings.proxy.api_key_header,
        auth_scheme=settings.proxy.auth_scheme,
        upstream_timeout=settings.proxy.upstream_timeout_seconds,
        transport=proxy_transport,
    )
    client = AgentClient(
        AgentConfig.from_settings(settings),
        proxy,
        system_prompt=build_system_prompt(registry.list_specs()),
        query_fn=query_fn,
        http_transport=http_transport,
    )
    sessions = SessionManager(stall_timeout=settings.stall_timeout)
    engine = SkillEngine(registry)
    controller = ChatController(sessions, client, engine, brief)

    log.info(
        "runtime.built",
        upstream=settings.proxy.llm_proxy_url,
        skills=len(registry),
        brief_sections=len(brief.section_keys),
    )
    return Runtime(
        settings=settings,
        proxy=proxy,
        client=client,
        sessions=sessions,
        registry=registry,
        engine=engine,
        brief=brief,
        controller=controller,
    )
