"""
Handoff Auth
============
Delegated authentication for S3-compatible gateways.

Credentials on inbound requests (AWS Signature V2 and V4, header or
presigned URL) are handed to an external Authenticator service over HTTP
or gRPC, and its answer is returned as a typed result.
"""

from .models import (
    AuthFailure,
    AuthParamMode,
    AuthResult,
    AuthSuccess,
    CredentialVersion,
    ErrorCode,
    ErrorKind,
    VerificationRequest,
)
from .exceptions import (
    ChannelCreationError,
    ContextAccessError,
    HandoffError,
    ResultAccessError,
)
from .transaction import InboundTransaction, normalize_query_args, parse_query_string
from .context import AuthContext
from .credentials import (
    classify_credential,
    get_authorization,
    parse_credential,
    synthesize_auth_header,
    valid_presigned_time,
)
from .config import ConfigObserver, HandoffSettings, RuntimeConfig
from .transport import GRPCVerifier, HTTPVerifier, Verifier, build_verifier
from .helper import HandoffHelper

__version__ = "0.1.0"

__all__ = [
    # Results
    "AuthFailure",
    "AuthParamMode",
    "AuthResult",
    "AuthSuccess",
    "CredentialVersion",
    "ErrorCode",
    "ErrorKind",
    "VerificationRequest",
    # Exceptions
    "ChannelCreationError",
    "ContextAccessError",
    "HandoffError",
    "ResultAccessError",
    # Requests
    "InboundTransaction",
    "normalize_query_args",
    "parse_query_string",
    "AuthContext",
    # Credentials
    "classify_credential",
    "get_authorization",
    "parse_credential",
    "synthesize_auth_header",
    "valid_presigned_time",
    # Configuration
    "ConfigObserver",
    "HandoffSettings",
    "RuntimeConfig",
    # Transports
    "GRPCVerifier",
    "HTTPVerifier",
    "Verifier",
    "build_verifier",
    # Orchestration
    "HandoffHelper",
]
