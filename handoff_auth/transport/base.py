"""
Verifier Interface
==================
Common interface for the Authenticator transports.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..models import AuthResult, VerificationRequest

TRANSPORT_GRPC = "grpc"
TRANSPORT_HTTP = "http"


@dataclass(frozen=True)
class ReconnectBackoff:
    """Reconnect backoff for the underlying gRPC channel, in milliseconds."""
    initial_ms: int
    min_ms: int
    max_ms: int

    def channel_options(self) -> List[Tuple[str, int]]:
        return [
            ("grpc.initial_reconnect_backoff_ms", self.initial_ms),
            ("grpc.min_reconnect_backoff_ms", self.min_ms),
            ("grpc.max_reconnect_backoff_ms", self.max_ms),
        ]


class Verifier(ABC):
    """
    A connection to the Authenticator service.

    Implementations never raise for remote failures; they return an
    AuthFailure classified as TRANSPORT, AUTH or INTERNAL.
    """

    transport: str = ""

    def __init__(self, endpoint: str, timeout: float):
        self.endpoint = endpoint
        self.timeout = timeout

    @abstractmethod
    async def verify(self, request: VerificationRequest) -> AuthResult:
        """Ask the Authenticator whether a request is authentic."""

    async def get_signing_key(self, authorization: str, trans_id: str) -> Optional[bytes]:
        """Fetch the per-request signing key for a chunked upload."""
        return None

    @abstractmethod
    async def aclose(self) -> None:
        """Release the underlying connection."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(endpoint={self.endpoint!r})"
