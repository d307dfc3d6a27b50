"""
Credential Header Codec
=======================
Locate, synthesize and classify AWS Authorization credentials.

A request carries its credential either in the ``Authorization`` header or,
for presigned URLs, in query parameters. Presigned parameters are turned
into the equivalent header so the Authenticator only ever sees one form.
"""

import re
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple, Union

import structlog

from ..models import CredentialVersion
from ..transaction import InboundTransaction

logger = structlog.get_logger(__name__)

AUTHORIZATION_ENV = "HTTP_AUTHORIZATION"

V2_PREFIX = "AWS "
V4_ALGORITHM = "AWS4-HMAC-SHA256"

# V2 presigned parameters.
V2_ACCESS_KEY_PARAM = "AWSAccessKeyId"
V2_SIGNATURE_PARAM = "Signature"
V2_EXPIRES_PARAM = "Expires"

# V4 presigned parameters, stored lowercase.
V4_CREDENTIAL_PARAM = "x-amz-credential"
V4_SIGNED_HEADERS_PARAM = "x-amz-signedheaders"
V4_SIGNATURE_PARAM = "x-amz-signature"
V4_DATE_PARAM = "x-amz-date"
V4_EXPIRES_PARAM = "x-amz-expires"

_V2_HEADER_RE = re.compile(r"^AWS (?P<key_id>[^:\s]+):(?P<signature>\S+)$")

_V4_HEADER_RE = re.compile(
    r"^AWS4-HMAC-SHA256\s+"
    r"Credential=(?P<key_id>[^/,\s]+)/(?P<scope>[^,\s]+),\s*"
    r"SignedHeaders=(?P<signed_headers>[^,\s]+),\s*"
    r"Signature=(?P<signature>[0-9a-fA-F]+)$"
)


@dataclass(frozen=True)
class V2Credential:
    """Parsed ``AWS <key>:<signature>`` credential."""
    access_key_id: str
    signature: str = field(repr=False)

    version = CredentialVersion.V2


@dataclass(frozen=True)
class V4Credential:
    """Parsed ``AWS4-HMAC-SHA256`` credential."""
    access_key_id: str
    scope: str
    signed_headers: Tuple[str, ...]
    signature: str = field(repr=False)

    version = CredentialVersion.V4

    @property
    def date(self) -> str:
        return self._scope_part(0)

    @property
    def region(self) -> str:
        return self._scope_part(1)

    @property
    def service(self) -> str:
        return self._scope_part(2)

    def _scope_part(self, index: int) -> str:
        parts = self.scope.split("/")
        return parts[index] if index < len(parts) else ""


Credential = Union[V2Credential, V4Credential]


def classify_credential(authorization: str) -> Optional[CredentialVersion]:
    """
    Classify an Authorization value by its scheme prefix.

    Returns:
        CredentialVersion.V2, CredentialVersion.V4, or None if unrecognized
    """
    if authorization.startswith(V4_ALGORITHM + " "):
        return CredentialVersion.V4
    if authorization.startswith(V2_PREFIX):
        return CredentialVersion.V2
    return None


def parse_credential(authorization: str) -> Optional[Credential]:
    """Split an Authorization value into its fields, or None if malformed."""
    version = classify_credential(authorization)
    if version is CredentialVersion.V2:
        m = _V2_HEADER_RE.match(authorization)
        if m:
            return V2Credential(m.group("key_id"), m.group("signature"))
    elif version is CredentialVersion.V4:
        m = _V4_HEADER_RE.match(authorization)
        if m:
            return V4Credential(
                access_key_id=m.group("key_id"),
                scope=m.group("scope"),
                signed_headers=tuple(m.group("signed_headers").split(";")),
                signature=m.group("signature"),
            )
    return None


def synthesize_v2_header(args: Mapping[str, str]) -> Optional[str]:
    """Build ``AWS <AWSAccessKeyId>:<Signature>`` from presigned parameters."""
    access_key_id = args.get(V2_ACCESS_KEY_PARAM)
    if not access_key_id:
        logger.info("presigned_param_missing", version="v2", param=V2_ACCESS_KEY_PARAM)
        return None
    signature = args.get(V2_SIGNATURE_PARAM)
    if not signature:
        logger.info("presigned_param_missing", version="v2", param=V2_SIGNATURE_PARAM)
        return None
    return f"{V2_PREFIX}{access_key_id}:{signature}"


def synthesize_v4_header(args: Mapping[str, str]) -> Optional[str]:
    """Build the ``AWS4-HMAC-SHA256`` header from presigned parameters."""
    values = []
    for param in (V4_CREDENTIAL_PARAM, V4_SIGNED_HEADERS_PARAM, V4_SIGNATURE_PARAM):
        value = args.get(param)
        if not value:
            logger.info("presigned_param_missing", version="v4", param=param)
            return None
        values.append(value)
    credential, signed_headers, signature = values
    return (
        f"{V4_ALGORITHM} Credential={credential}, "
        f"SignedHeaders={signed_headers}, Signature={signature}"
    )


def synthesize_auth_header(args: Mapping[str, str]) -> Optional[str]:
    """
    Build an Authorization header from presigned URL query parameters.

    ``AWSAccessKeyId`` selects V2, otherwise ``x-amz-credential`` selects V4.
    A header is only returned when every required parameter is present.

    Args:
        args: Normalized query arguments

    Returns:
        The synthesized header, or None
    """
    if V2_ACCESS_KEY_PARAM in args:
        return synthesize_v2_header(args)
    if V4_CREDENTIAL_PARAM in args:
        return synthesize_v4_header(args)
    logger.info("presigned_params_insufficient")
    return None


def get_authorization(tx: InboundTransaction) -> Tuple[Optional[str], bool]:
    """
    Find the credential for a transaction.

    Returns:
        Tuple of (authorization or None, whether it was synthesized)
    """
    header = tx.header(AUTHORIZATION_ENV)
    if header:
        return header, False
    return synthesize_auth_header(tx.args), True
