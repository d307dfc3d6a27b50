"""
Authenticator Error Translation
===============================
Maps the Authenticator's rich gRPC errors to local results.

Errors use the gRPC richer error model: a ``google.rpc.Status`` in the
``grpc-status-details-bin`` trailer whose ``details`` may hold an
``S3ErrorDetails`` message.
"""

from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

import structlog
from google.protobuf.message import DecodeError
from google.rpc import status_pb2

from ..models import AuthFailure, ErrorCode
from .protocol import S3ErrorDetails, S3ErrorType

logger = structlog.get_logger(__name__)

STATUS_DETAILS_KEY = "grpc-status-details-bin"

_TYPE_TO_CODE = (
    ("ACCESS_DENIED", ErrorCode.ACCESS_DENIED),
    ("AUTHORIZATION_HEADER_MALFORMED", ErrorCode.INVALID_REQUEST),
    ("EXPIRED_TOKEN", ErrorCode.ACCESS_DENIED),
    ("INTERNAL_ERROR", ErrorCode.INTERNAL_ERROR),
    ("INVALID_ACCESS_KEY_ID", ErrorCode.INVALID_ACCESS_KEY),
    ("INVALID_REQUEST", ErrorCode.INVALID_REQUEST),
    ("INVALID_SECURITY", ErrorCode.INVALID_ARGUMENT),
    ("INVALID_TOKEN", ErrorCode.INVALID_IDENTITY_TOKEN),
    ("INVALID_URI", ErrorCode.INVALID_REQUEST),
    ("METHOD_NOT_ALLOWED", ErrorCode.METHOD_NOT_ALLOWED),
    ("MISSING_SECURITY_HEADER", ErrorCode.INVALID_REQUEST),
    ("REQUEST_TIME_TOO_SKEWED", ErrorCode.REQUEST_TIME_SKEWED),
    ("SIGNATURE_DOES_NOT_MATCH", ErrorCode.SIGNATURE_NO_MATCH),
    ("TOKEN_REFRESH_REQUIRED", ErrorCode.INVALID_REQUEST),
)

# Keyed by wire enum value.
AUTHENTICATOR_ERROR_MAP: Mapping[int, ErrorCode] = MappingProxyType({
    S3ErrorType.Value(f"TYPE_{name}"): code for name, code in _TYPE_TO_CODE
})

_HTTP_STATUS_FALLBACK = {
    400: ErrorCode.INVALID_REQUEST,
    404: ErrorCode.NOT_FOUND,
}


def translate_error_type(error_type: int, http_status_code: int, message: str) -> AuthFailure:
    """
    Map an S3ErrorDetails classification to an AUTH failure.

    Unmapped classifications fall back to the Authenticator's HTTP status:
    400 and 404 keep their meaning, anything else is access denied.
    """
    code = AUTHENTICATOR_ERROR_MAP.get(error_type)
    if code is None:
        code = _HTTP_STATUS_FALLBACK.get(http_status_code, ErrorCode.ACCESS_DENIED)
        logger.info(
            "authenticator_error_type_unmapped",
            error_type=error_type,
            http_status_code=http_status_code,
            code=code.name,
        )
    return AuthFailure.auth(message, code)


def find_status_details(metadata: Optional[Iterable[Tuple[str, object]]]) -> Optional[bytes]:
    """Return the serialized rich status from trailing metadata, if any."""
    for key, value in metadata or ():
        if key == STATUS_DETAILS_KEY:
            return value if isinstance(value, bytes) else str(value).encode("latin-1")
    return None


def translate_authenticator_error(
    message: str,
    trailing_metadata: Optional[Iterable[Tuple[str, object]]],
) -> AuthFailure:
    """
    Classify a failed Authenticator call.

    Args:
        message: The gRPC status message
        trailing_metadata: Trailing metadata of the failed call

    Returns:
        AUTH failure when an S3ErrorDetails is present, INTERNAL when the
        rich status cannot be decoded, TRANSPORT otherwise
    """
    details = find_status_details(trailing_metadata)
    if not details:
        return AuthFailure.transport(message)

    status = status_pb2.Status()
    try:
        status.ParseFromString(details)
    except DecodeError as e:
        logger.error("authenticator_status_undecodable", error=str(e))
        return AuthFailure.internal(
            "failed to deserialize gRPC error_details, error message follows: " + message
        )

    for detail in status.details:
        if detail.Is(S3ErrorDetails.DESCRIPTOR):
            s3_details = S3ErrorDetails()
            if detail.Unpack(s3_details):
                return translate_error_type(s3_details.type, s3_details.http_status_code, message)

    return AuthFailure.transport("S3ErrorDetails not found, error message follows: " + message)
