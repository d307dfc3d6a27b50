"""
Authenticator Transports
========================
HTTP and gRPC clients for the Authenticator service.
"""

from urllib.parse import urlsplit

from ..exceptions import ChannelCreationError
from .base import TRANSPORT_GRPC, TRANSPORT_HTTP, ReconnectBackoff, Verifier
from .http import HTTPVerifier
from .rpc import AuthenticatorStub, GRPCVerifier
from .errors import translate_authenticator_error


def build_verifier(
    transport: str,
    endpoint: str,
    backoff: ReconnectBackoff,
    timeout: float,
) -> Verifier:
    """
    Create a verifier for the configured transport.

    Raises:
        ChannelCreationError: If the endpoint is unusable for the transport
    """
    if transport == TRANSPORT_HTTP:
        parts = urlsplit(endpoint)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ChannelCreationError(endpoint, "HTTP transport needs an http(s) URL")
        return HTTPVerifier(endpoint, timeout=timeout)
    if transport == TRANSPORT_GRPC:
        return GRPCVerifier(endpoint, backoff, timeout=timeout)
    raise ChannelCreationError(endpoint, f"unknown transport {transport!r}")


__all__ = [
    "AuthenticatorStub",
    "GRPCVerifier",
    "HTTPVerifier",
    "ReconnectBackoff",
    "Verifier",
    "build_verifier",
    "translate_authenticator_error",
]
