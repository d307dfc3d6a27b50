"""
Handoff Models
==============
Result types, error codes and request payloads for delegated authentication.
"""

from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Optional, Union

from .exceptions import ResultAccessError

if TYPE_CHECKING:
    from .context import AuthContext


class ErrorKind(str, Enum):
    """Broad classification of an authentication outcome."""
    NONE = "none"
    TRANSPORT = "transport"
    AUTH = "auth"
    INTERNAL = "internal"


class ErrorCode(IntEnum):
    """Local error codes forwarded to the HTTP error mapping layer."""
    OK = 0
    ACCESS_DENIED = 1
    INVALID_REQUEST = 2
    INVALID_ARGUMENT = 3
    INTERNAL_ERROR = 4
    INVALID_ACCESS_KEY = 5
    INVALID_IDENTITY_TOKEN = 6
    METHOD_NOT_ALLOWED = 7
    REQUEST_TIME_SKEWED = 8
    SIGNATURE_NO_MATCH = 9
    NOT_FOUND = 10

    @property
    def http_status(self) -> int:
        return _HTTP_ERRORS[self][0]

    @property
    def s3_code(self) -> str:
        return _HTTP_ERRORS[self][1]


_HTTP_ERRORS = {
    ErrorCode.OK: (200, ""),
    ErrorCode.ACCESS_DENIED: (403, "AccessDenied"),
    ErrorCode.INVALID_REQUEST: (400, "InvalidRequest"),
    ErrorCode.INVALID_ARGUMENT: (400, "InvalidArgument"),
    ErrorCode.INTERNAL_ERROR: (500, "InternalError"),
    ErrorCode.INVALID_ACCESS_KEY: (403, "InvalidAccessKeyId"),
    ErrorCode.INVALID_IDENTITY_TOKEN: (400, "InvalidIdentityToken"),
    ErrorCode.METHOD_NOT_ALLOWED: (405, "MethodNotAllowed"),
    ErrorCode.REQUEST_TIME_SKEWED: (403, "RequestTimeTooSkewed"),
    ErrorCode.SIGNATURE_NO_MATCH: (403, "SignatureDoesNotMatch"),
    ErrorCode.NOT_FOUND: (404, "NoSuchKey"),
}


class AuthParamMode(str, Enum):
    """When to gather request context and send it with verification."""
    NEVER = "never"
    WITHTOKEN = "withtoken"
    ALWAYS = "always"


class CredentialVersion(str, Enum):
    """AWS signature scheme a credential is encoded with."""
    V2 = "v2"
    V4 = "v4"


@dataclass(frozen=True)
class AuthSuccess:
    """Verification accepted; carries the authenticated subject."""
    user_id: str
    message: str = ""
    signing_key: Optional[bytes] = field(default=None, repr=False)

    is_ok = True
    is_err = False

    @property
    def code(self) -> ErrorCode:
        return ErrorCode.OK

    @property
    def err_type(self) -> ErrorKind:
        return ErrorKind.NONE

    @property
    def has_signing_key(self) -> bool:
        return self.signing_key is not None

    def with_signing_key(self, key: bytes) -> "AuthSuccess":
        """Return a copy of this result carrying the chunked-upload key."""
        return replace(self, signing_key=key)


@dataclass(frozen=True)
class AuthFailure:
    """Verification denied or could not be completed."""
    code: ErrorCode
    message: str
    err_type: ErrorKind

    is_ok = False
    is_err = True

    @property
    def user_id(self) -> str:
        raise ResultAccessError("user_id is not available on a failed result")

    @property
    def signing_key(self) -> bytes:
        raise ResultAccessError("signing_key is not available on a failed result")

    @property
    def has_signing_key(self) -> bool:
        return False

    @classmethod
    def auth(cls, message: str, code: ErrorCode = ErrorCode.ACCESS_DENIED) -> "AuthFailure":
        return cls(code=code, message=message, err_type=ErrorKind.AUTH)

    @classmethod
    def transport(cls, message: str, code: ErrorCode = ErrorCode.ACCESS_DENIED) -> "AuthFailure":
        return cls(code=code, message=message, err_type=ErrorKind.TRANSPORT)

    @classmethod
    def internal(cls, message: str, code: ErrorCode = ErrorCode.ACCESS_DENIED) -> "AuthFailure":
        return cls(code=code, message=message, err_type=ErrorKind.INTERNAL)


AuthResult = Union[AuthSuccess, AuthFailure]


@dataclass(frozen=True)
class VerificationRequest:
    """Everything the Authenticator needs to check one request."""
    trans_id: str
    string_to_sign: str = field(repr=False)
    access_key_id: str = ""
    authorization: str = field(default="", repr=False)
    context: Optional["AuthContext"] = None
