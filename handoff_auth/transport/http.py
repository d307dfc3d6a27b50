"""
HTTP Verifier
=============
JSON over HTTP transport for the Authenticator service.

POSTs the verification request to ``<endpoint>/verify`` and maps the status
code to a result.
"""

import base64
from typing import Dict, Optional

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..context import AuthContext
from ..models import (
    AuthFailure,
    AuthResult,
    AuthSuccess,
    ErrorCode,
    VerificationRequest,
)
from .base import Verifier

logger = structlog.get_logger(__name__)

VERIFY_PATH = "verify"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EAKParameters(_CamelModel):
    """Request context in the JSON body."""
    method: str
    bucket_name: str = ""
    object_key_name: Optional[str] = None
    request_path: str = ""
    headers: Dict[str, str] = {}
    query_parameters: Dict[str, str] = {}

    @classmethod
    def from_context(cls, ctx: AuthContext) -> "EAKParameters":
        return cls(
            method=ctx.method,
            bucket_name=ctx.bucket_name,
            object_key_name=ctx.object_key_name or None,
            request_path=ctx.request_path,
            headers=ctx.http_headers,
            query_parameters=ctx.query_params,
        )


class VerifyRequestBody(_CamelModel):
    """Body of ``POST /verify``. ``string_to_sign`` is base64 encoded."""
    string_to_sign: str
    access_key_id: str
    authorization: str
    eak_parameters: Optional[EAKParameters] = None

    @classmethod
    def from_request(cls, request: VerificationRequest) -> "VerifyRequestBody":
        eak = None
        if request.context is not None and request.context.valid:
            eak = EAKParameters.from_context(request.context)
        return cls(
            string_to_sign=base64.b64encode(request.string_to_sign.encode("utf-8")).decode("ascii"),
            access_key_id=request.access_key_id,
            authorization=request.authorization,
            eak_parameters=eak,
        )


class VerifyResponseBody(BaseModel):
    """Body of a successful ``POST /verify``."""
    uid: str = Field(min_length=1)
    message: str = ""


class HTTPVerifier(Verifier):
    """
    Authenticator client over JSON/HTTP.

    Example:
        verifier = HTTPVerifier("http://authenticator:8080", timeout=5.0)
        result = await verifier.verify(request)
    """

    transport = "http"

    def __init__(
        self,
        endpoint: str,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(endpoint, timeout)
        base_url = endpoint if endpoint.endswith("/") else endpoint + "/"
        self.client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={
                "User-Agent": "handoff-auth",
                "Accept": "application/json",
            },
        )

    async def aclose(self):
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def verify(self, request: VerificationRequest) -> AuthResult:
        body = VerifyRequestBody.from_request(request)
        try:
            response = await self.client.post(
                VERIFY_PATH,
                json=body.model_dump(by_alias=True, exclude_none=True),
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.warning(
                "verify_http_error",
                endpoint=self.endpoint,
                error=str(e),
                error_class=type(e).__name__,
            )
            return AuthFailure.transport(f"authenticator request failed: {type(e).__name__}")

        status = response.status_code
        logger.debug("verify_http_status", endpoint=self.endpoint, status=status)

        if status == 200:
            return self._parse_success(response)
        if status == 401:
            return AuthFailure.auth("signature mismatch", ErrorCode.SIGNATURE_NO_MATCH)
        if status == 404:
            return AuthFailure.auth("unknown access key", ErrorCode.INVALID_ACCESS_KEY)

        logger.warning("verify_http_unexpected_status", endpoint=self.endpoint, status=status)
        return AuthFailure.transport(f"authenticator returned HTTP {status}")

    def _parse_success(self, response: httpx.Response) -> AuthResult:
        try:
            parsed = VerifyResponseBody.model_validate(response.json())
        except ValueError as e:
            logger.error("verify_http_malformed_response", endpoint=self.endpoint, error=str(e))
            return AuthFailure.internal("malformed authenticator response", ErrorCode.INTERNAL_ERROR)
        return AuthSuccess(user_id=parsed.uid, message=parsed.message)
