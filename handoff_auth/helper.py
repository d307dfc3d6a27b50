"""
Handoff Helper
==============
Authenticates inbound S3 requests by handing their credentials to an
external Authenticator service.

Pipeline, each step a hard gate:

1. The transaction must have a client I/O channel.
2. Find the credential (header, or synthesized from a presigned URL) and,
   for presigned URLs with the expiry check enabled, reject expired URLs.
3. Reject V2 credentials when V2 signatures are disabled.
4. Gather the authorization context according to the configured policy.
5. Reject streaming (chunked) uploads when they are disabled.
6. Verify with the Authenticator.
7. For chunked uploads, fetch and attach the signing key.
"""

import time
from typing import Callable, Optional

import structlog
from structlog.contextvars import bound_contextvars

from .config.observer import ConfigObserver
from .config.runtime import RuntimeConfig, RuntimeSnapshot, VerifierFactory
from .config.settings import HandoffSettings
from .context import AuthContext
from .credentials.expiry import valid_presigned_time as _valid_presigned_time
from .credentials.header import classify_credential, get_authorization
from .credentials.header import synthesize_auth_header as _synthesize_auth_header
from .metrics import record_auth
from .models import (
    AuthFailure,
    AuthParamMode,
    AuthResult,
    CredentialVersion,
    ErrorCode,
    VerificationRequest,
)
from .signing_key import fetch_signing_key
from .transaction import InboundTransaction

logger = structlog.get_logger(__name__)

CONTENT_SHA256_ENV = "HTTP_X_AMZ_CONTENT_SHA256"
STREAMING_PAYLOAD = "STREAMING-AWS4-HMAC-SHA256-PAYLOAD"


def _unix_now() -> int:
    return int(time.time())


def is_chunked_upload(tx: InboundTransaction) -> bool:
    return tx.header(CONTENT_SHA256_ENV) == STREAMING_PAYLOAD


class HandoffHelper:
    """
    Entry point for delegated authentication.

    Example:
        helper = HandoffHelper(HandoffSettings.from_env())
        await helper.init()

        result = await helper.auth(
            tx,
            session_token=token,
            access_key_id=key_id,
            string_to_sign=sts,
            signature=sig,
        )
        if result.is_err:
            deny(result.code, result.message)
    """

    def __init__(
        self,
        settings: Optional[HandoffSettings] = None,
        verifier_factory: Optional[VerifierFactory] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.settings = settings or HandoffSettings.from_env()
        self.config = RuntimeConfig(self.settings, verifier_factory)
        self.observer = ConfigObserver(self.config)
        self._clock = clock or _unix_now

    async def init(self, endpoint: Optional[str] = None) -> None:
        """
        Open the initial Authenticator channel.

        Args:
            endpoint: Overrides the configured endpoint

        Raises:
            ChannelCreationError: If the channel cannot be built
        """
        endpoint = endpoint or self.settings.endpoint
        await self.config.set_channel_uri(endpoint, fatal=True)
        logger.info(
            "handoff_helper_initialized",
            transport=self.settings.transport,
            endpoint=endpoint,
        )

    async def aclose(self) -> None:
        await self.config.aclose()

    def synthesize_auth_header(self, tx: InboundTransaction) -> Optional[str]:
        return _synthesize_auth_header(tx.args)

    def valid_presigned_time(self, tx: InboundTransaction, now: int) -> bool:
        return _valid_presigned_time(tx.args, now)

    async def auth(
        self,
        tx: InboundTransaction,
        *,
        session_token: str = "",
        access_key_id: str = "",
        string_to_sign: str = "",
        signature: str = "",
    ) -> AuthResult:
        """
        Authenticate one transaction.

        Never raises: unexpected errors are logged and returned as INTERNAL
        failures.

        Args:
            tx: The inbound transaction
            session_token: STS session token, empty if none
            access_key_id: Access key the front end extracted
            string_to_sign: Canonical string the signature covers
            signature: Unused; the Authorization header carries it

        Returns:
            AuthSuccess or AuthFailure
        """
        started = time.perf_counter()
        with bound_contextvars(trans_id=tx.trans_id):
            try:
                async with self.config.acquire() as snapshot:
                    result = await self._run(
                        tx, snapshot, session_token, access_key_id, string_to_sign
                    )
            except Exception:
                logger.exception("handoff_auth_unexpected_error")
                result = AuthFailure.internal(
                    "unexpected error during authentication", ErrorCode.INTERNAL_ERROR
                )

            if result.is_ok:
                logger.info(
                    "handoff_auth_success",
                    access_key_id=access_key_id,
                    user_id=result.user_id,
                    signing_key=result.has_signing_key,
                )
            else:
                logger.info(
                    "handoff_auth_failure",
                    access_key_id=access_key_id,
                    error_type=result.err_type.value,
                    code=result.code.name,
                    message=result.message,
                )

        elapsed = time.perf_counter() - started
        record_auth(self.config.transport, result.is_ok, result.err_type.value, elapsed)
        return result

    async def _run(
        self,
        tx: InboundTransaction,
        snapshot: RuntimeSnapshot,
        session_token: str,
        access_key_id: str,
        string_to_sign: str,
    ) -> AuthResult:
        toggles = snapshot.toggles

        if tx.client_io is None:
            return AuthFailure.internal("missing client I/O channel (cio)")

        authorization, synthesized = get_authorization(tx)
        if not authorization:
            return AuthFailure.auth("missing Authorization header and insufficient query parameters")
        if synthesized and toggles.presigned_expiry_check:
            if not _valid_presigned_time(tx.args, self._clock()):
                return AuthFailure.auth("presigned URL expired")

        version = classify_credential(authorization)
        if version is None:
            logger.info("credential_unrecognized")
        if version is CredentialVersion.V2 and not toggles.enable_signature_v2:
            return AuthFailure.auth("access denied (V2 signatures disabled)")

        context = self._gather_context(tx, toggles.authorization_mode, session_token)

        chunked = is_chunked_upload(tx)
        if chunked and not toggles.enable_chunked_upload:
            return AuthFailure.auth("chunked upload disabled")

        channel = snapshot.channel
        if channel is None:
            return AuthFailure.internal("transport channel not set")

        request = VerificationRequest(
            trans_id=tx.trans_id,
            string_to_sign=string_to_sign,
            access_key_id=access_key_id,
            authorization=authorization,
            context=context,
        )
        result = await channel.verifier.verify(request)

        if chunked and result.is_ok:
            key = await fetch_signing_key(channel.verifier, authorization, tx.trans_id)
            if key is None:
                return AuthFailure.auth("failed to fetch signing key for chunked upload")
            result = result.with_signing_key(key)
        return result

    def _gather_context(
        self,
        tx: InboundTransaction,
        mode: AuthParamMode,
        session_token: str,
    ) -> Optional[AuthContext]:
        if mode is AuthParamMode.NEVER:
            return None
        if mode is AuthParamMode.WITHTOKEN and not session_token:
            return None
        context = AuthContext.from_transaction(tx)
        if not context.valid:
            logger.warning("auth_context_dropped")
            return None
        logger.debug("auth_context_gathered", context=str(context))
        return context
