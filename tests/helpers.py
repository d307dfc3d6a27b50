"""
Test Helpers
============
Fake verifiers and transaction builders for handoff tests.
"""

import asyncio
from typing import Dict, List, Optional

from handoff_auth.exceptions import ChannelCreationError
from handoff_auth.models import AuthFailure, AuthResult, AuthSuccess, ErrorCode
from handoff_auth.transaction import InboundTransaction
from handoff_auth.transport.base import Verifier

V4_AUTH = (
    "AWS4-HMAC-SHA256 Credential=AKID/20230710/us-east-1/s3/aws4_request,"
    "SignedHeaders=host,Signature=abc123"
)
V2_AUTH = "AWS AKID:sig"


class FakeVerifier(Verifier):
    """Verifier that accepts a fixed set of Authorization values."""

    transport = "fake"

    def __init__(
        self,
        accept: Optional[Dict[str, str]] = None,
        signing_key: Optional[bytes] = None,
        endpoint: str = "fake:1",
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        super().__init__(endpoint, timeout=1.0)
        self.accept = accept if accept is not None else {}
        self.signing_key = signing_key
        self.error = error
        self.gate = gate
        self.calls = []
        self.key_calls = []
        self.closed = False

    async def verify(self, request) -> AuthResult:
        self.calls.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if request.authorization in self.accept:
            return AuthSuccess(user_id=self.accept[request.authorization])
        return AuthFailure.auth("signature mismatch", ErrorCode.SIGNATURE_NO_MATCH)

    async def get_signing_key(self, authorization, trans_id):
        self.key_calls.append((authorization, trans_id))
        if self.closed:
            return None
        return self.signing_key

    async def aclose(self):
        self.closed = True


class RecordingFactory:
    """Verifier factory that remembers every build and rejects ``bad`` endpoints."""

    def __init__(self, **verifier_kwargs):
        self.verifier_kwargs = verifier_kwargs
        self.built: List[FakeVerifier] = []
        self.backoffs = []

    def __call__(self, transport, endpoint, backoff, timeout):
        if endpoint.startswith("bad"):
            raise ChannelCreationError(endpoint, "rejected by test factory")
        verifier = FakeVerifier(endpoint=endpoint, **self.verifier_kwargs)
        self.built.append(verifier)
        self.backoffs.append(backoff)
        return verifier


def make_tx(
    url: str = "/bucket/key",
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    client_io: object = "cio",
    trans_id: str = "tx-0001",
) -> InboundTransaction:
    return InboundTransaction.from_url(
        trans_id=trans_id,
        method=method,
        url=url,
        headers=headers,
        client_io=client_io,
    )
