"""
Credentials
===========
AWS credential location, synthesis, classification and expiry.
"""

from .header import (
    AUTHORIZATION_ENV,
    Credential,
    V2Credential,
    V4Credential,
    classify_credential,
    get_authorization,
    parse_credential,
    synthesize_auth_header,
    synthesize_v2_header,
    synthesize_v4_header,
)
from .expiry import parse_amz_date, presigned_expiry, valid_presigned_time

__all__ = [
    "AUTHORIZATION_ENV",
    "Credential",
    "V2Credential",
    "V4Credential",
    "classify_credential",
    "get_authorization",
    "parse_credential",
    "synthesize_auth_header",
    "synthesize_v2_header",
    "synthesize_v4_header",
    "parse_amz_date",
    "presigned_expiry",
    "valid_presigned_time",
]
