"""
gRPC Verifier
=============
Authenticator client over gRPC (``authenticator.v1.AuthenticatorService``).
"""

from typing import Optional

import grpc
import structlog

from ..exceptions import ChannelCreationError
from ..models import AuthResult, AuthSuccess, AuthFailure, VerificationRequest
from . import protocol
from .base import ReconnectBackoff, Verifier
from .errors import translate_authenticator_error

logger = structlog.get_logger(__name__)

_SECURE_SCHEMES = ("https://", "grpcs://")
_INSECURE_SCHEMES = ("http://", "grpc://")


class AuthenticatorStub:
    """Client stub for AuthenticatorService on an aio channel."""

    def __init__(self, channel: grpc.aio.Channel):
        self.AuthenticateREST = channel.unary_unary(
            protocol.AUTHENTICATE_REST_METHOD,
            request_serializer=protocol.AuthenticateRESTRequest.SerializeToString,
            response_deserializer=protocol.AuthenticateRESTResponse.FromString,
        )
        self.GetSigningKey = channel.unary_unary(
            protocol.GET_SIGNING_KEY_METHOD,
            request_serializer=protocol.GetSigningKeyRequest.SerializeToString,
            response_deserializer=protocol.GetSigningKeyResponse.FromString,
        )


def create_channel(endpoint: str, backoff: ReconnectBackoff) -> grpc.aio.Channel:
    """
    Open an aio channel to ``endpoint``.

    ``https://`` and ``grpcs://`` endpoints use TLS with default roots;
    ``http://``, ``grpc://`` and bare ``host:port`` targets are plaintext.

    Raises:
        ChannelCreationError: If the endpoint is empty or grpc rejects it
    """
    if not endpoint:
        raise ChannelCreationError(endpoint, "empty endpoint")
    options = backoff.channel_options()
    try:
        for scheme in _SECURE_SCHEMES:
            if endpoint.startswith(scheme):
                return grpc.aio.secure_channel(
                    endpoint[len(scheme):],
                    grpc.ssl_channel_credentials(),
                    options=options,
                )
        target = endpoint
        for scheme in _INSECURE_SCHEMES:
            if endpoint.startswith(scheme):
                target = endpoint[len(scheme):]
        if not target:
            raise ChannelCreationError(endpoint, "empty target")
        return grpc.aio.insecure_channel(target, options=options)
    except (ValueError, TypeError, grpc.RpcError) as e:
        raise ChannelCreationError(endpoint, str(e)) from e


def build_authenticate_request(request: VerificationRequest):
    """Build an AuthenticateRESTRequest, adding context fields when present."""
    req = protocol.AuthenticateRESTRequest(
        transaction_id=request.trans_id,
        string_to_sign=request.string_to_sign,
        authorization_header=request.authorization,
    )
    ctx = request.context
    if ctx is not None and ctx.valid:
        req.http_method = protocol.http_method_value(ctx.method)
        if ctx.bucket_name:
            req.bucket_name = ctx.bucket_name
        if ctx.object_key_name:
            req.object_key = ctx.object_key_name
        for key, value in ctx.http_headers.items():
            req.x_amz_headers[key] = value
        for key, value in ctx.query_params.items():
            req.query_parameters[key] = value
    return req


class GRPCVerifier(Verifier):
    """
    Authenticator client over gRPC.

    Example:
        verifier = GRPCVerifier("authenticator:8002", backoff, timeout=5.0)
        result = await verifier.verify(request)
    """

    transport = "grpc"

    def __init__(
        self,
        endpoint: str,
        backoff: ReconnectBackoff,
        timeout: float = 5.0,
        stub: Optional[AuthenticatorStub] = None,
    ):
        super().__init__(endpoint, timeout)
        self.backoff = backoff
        self._channel: Optional[grpc.aio.Channel] = None
        if stub is None:
            self._channel = create_channel(endpoint, backoff)
            stub = AuthenticatorStub(self._channel)
        self.stub = stub

    async def aclose(self):
        if self._channel is not None:
            await self._channel.close()

    async def verify(self, request: VerificationRequest) -> AuthResult:
        req = build_authenticate_request(request)
        try:
            resp = await self.stub.AuthenticateREST(req, timeout=self.timeout)
        except grpc.aio.AioRpcError as e:
            logger.info(
                "authenticate_rpc_failed",
                endpoint=self.endpoint,
                grpc_code=e.code().name,
                details=e.details(),
            )
            return translate_authenticator_error(e.details() or "", e.trailing_metadata())
        except (grpc.RpcError, grpc.aio.UsageError) as e:
            logger.warning("authenticate_rpc_error", endpoint=self.endpoint, error=str(e))
            return AuthFailure.transport(f"authenticator call failed: {type(e).__name__}")

        return AuthSuccess(user_id=resp.user_id)

    async def get_signing_key(self, authorization: str, trans_id: str) -> Optional[bytes]:
        req = protocol.GetSigningKeyRequest(
            authorization_header=authorization,
            transaction_id=trans_id,
        )
        try:
            resp = await self.stub.GetSigningKey(req, timeout=self.timeout)
        except (grpc.RpcError, grpc.aio.UsageError) as e:
            details = e.details() if isinstance(e, grpc.aio.AioRpcError) else str(e)
            logger.warning("signing_key_rpc_failed", endpoint=self.endpoint, error=details)
            return None
        if not resp.signing_key:
            logger.warning("signing_key_empty", endpoint=self.endpoint)
            return None
        return resp.signing_key
