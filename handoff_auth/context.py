"""
Authorization Context
=====================
Request details sent alongside a credential so the Authenticator can make
policy decisions: method, bucket, object key, ``x-amz-*`` headers and
query parameters.
"""

from typing import Dict, Mapping, Optional

import structlog

from .exceptions import ContextAccessError
from .transaction import InboundTransaction

logger = structlog.get_logger(__name__)

VENDOR_HEADER_PREFIX = "HTTP_X_AMZ_"

_REDACTED_PARAMS = frozenset({"Signature", "x-amz-signature", "x-amz-security-token"})


def vendor_header_name(environ_key: str) -> str:
    """``HTTP_X_AMZ_DATE`` -> ``x-amz-date``."""
    return environ_key[len("HTTP_"):].replace("_", "-").lower()


class AuthContext:
    """
    Request details gathered from an inbound transaction.

    An invalid context has no readable fields: every accessor raises
    ContextAccessError. Use ``valid`` before reading.

    Example:
        ctx = AuthContext.from_transaction(tx)
        if ctx.valid:
            bucket = ctx.bucket_name
    """

    def __init__(
        self,
        method: str = "",
        bucket_name: str = "",
        object_key_name: str = "",
        http_headers: Optional[Mapping[str, str]] = None,
        query_params: Optional[Mapping[str, str]] = None,
        request_path: str = "",
        valid: bool = True,
    ):
        self._method = method
        self._bucket_name = bucket_name
        self._object_key_name = object_key_name
        self._http_headers: Dict[str, str] = dict(http_headers or {})
        self._query_params: Dict[str, str] = dict(query_params or {})
        self._request_path = request_path
        self._valid = valid

    @classmethod
    def invalid(cls) -> "AuthContext":
        return cls(valid=False)

    @classmethod
    def from_transaction(cls, tx: InboundTransaction) -> "AuthContext":
        """
        Gather context from a transaction.

        The first path segment of ``relative_uri`` is the bucket and the rest
        is the object key. Virtual-host style requests have already had the
        bucket moved into the path by the front end.

        Args:
            tx: The inbound transaction

        Returns:
            A valid context, or an invalid one if the method is empty or the
            relative URI does not start with ``/``
        """
        if not tx.method:
            logger.warning("auth_context_invalid", reason="empty request method")
            return cls.invalid()
        if not tx.relative_uri.startswith("/"):
            logger.warning("auth_context_invalid", reason="relative_uri missing leading slash")
            return cls.invalid()

        headers = {
            vendor_header_name(key): value
            for key, value in tx.environ.items()
            if key.startswith(VENDOR_HEADER_PREFIX)
        }
        query_params = dict(tx.args)

        bucket, _, key = tx.relative_uri[1:].partition("/")
        if not bucket and not key:
            logger.debug("auth_context_empty_path")

        return cls(
            method=tx.method,
            bucket_name=bucket,
            object_key_name=key,
            http_headers=headers,
            query_params=query_params,
            request_path=tx.request_uri,
        )

    @property
    def valid(self) -> bool:
        return self._valid

    def _require_valid(self) -> None:
        if not self._valid:
            raise ContextAccessError("AuthContext is invalid")

    @property
    def method(self) -> str:
        self._require_valid()
        return self._method

    @property
    def bucket_name(self) -> str:
        self._require_valid()
        return self._bucket_name

    @property
    def object_key_name(self) -> str:
        self._require_valid()
        return self._object_key_name

    @property
    def http_headers(self) -> Dict[str, str]:
        self._require_valid()
        return dict(self._http_headers)

    @property
    def query_params(self) -> Dict[str, str]:
        self._require_valid()
        return dict(self._query_params)

    @property
    def request_path(self) -> str:
        self._require_valid()
        return self._request_path

    def __str__(self) -> str:
        # Never includes the object key or signature values.
        if not self._valid:
            return "AuthContext(INVALID)"
        headers = ",".join(f"{k}={v}" for k, v in sorted(self._http_headers.items())) or "none"
        params = ",".join(
            f"{k}={'***' if k in _REDACTED_PARAMS else v}"
            for k, v in sorted(self._query_params.items())
        ) or "none"
        return (
            f"AuthContext(method={self._method}, bucket={self._bucket_name}, "
            f"key_present={bool(self._object_key_name)}, headers=[{headers}], "
            f"query_params=[{params}])"
        )

    __repr__ = __str__
