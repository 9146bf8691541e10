"""Loopback proxy that translates the agent's API-key header for the upstream."""

from paidmedia.proxy.auth_proxy import AuthProxy

__all__ = ["AuthProxy"]
