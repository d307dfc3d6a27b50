"""
Inbound Transaction
===================
Read-only view of the HTTP request being authenticated.

Headers are held CGI style (``HTTP_AUTHORIZATION``,
``HTTP_X_AMZ_CONTENT_SHA256``) the way the front-end server hands them over.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, unquote

AMZ_QUERY_PREFIX = "x-amz-"


def normalize_query_args(pairs: Iterable[Tuple[str, str]]) -> Dict[str, str]:
    """
    Build the query argument map, lowercasing ``X-Amz-*`` names.

    Presigned V4 URLs use mixed case (``X-Amz-Credential``); every lookup in
    this package uses the lowercase form. Other names are kept verbatim.
    The first occurrence of a repeated name wins.
    """
    args: Dict[str, str] = {}
    for name, value in pairs:
        if name.lower().startswith(AMZ_QUERY_PREFIX):
            name = name.lower()
        args.setdefault(name, value)
    return args


def parse_query_string(query: str) -> Dict[str, str]:
    """Decode a raw query string into a normalized argument map."""
    return normalize_query_args(parse_qsl(query, keep_blank_values=True))


def header_to_environ_key(name: str) -> str:
    """``x-amz-date`` -> ``HTTP_X_AMZ_DATE``."""
    return "HTTP_" + name.upper().replace("-", "_")


@dataclass(frozen=True)
class InboundTransaction:
    """A single inbound request as seen by the authentication core."""
    trans_id: str
    method: str
    request_uri: str
    relative_uri: str = ""
    decoded_uri: str = ""
    environ: Mapping[str, str] = field(default_factory=dict)
    args: Mapping[str, str] = field(default_factory=dict)
    client_io: Optional[Any] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_url(
        cls,
        trans_id: str,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        client_io: Optional[Any] = None,
    ) -> "InboundTransaction":
        """
        Build a transaction from a request target and plain header names.

        Args:
            trans_id: Transaction identifier used for log correlation
            method: HTTP method
            url: Request target, e.g. ``/bucket/key?X-Amz-Date=...``
            headers: Header map using wire names (``Authorization``)
            client_io: Handle to the client connection

        Returns:
            InboundTransaction
        """
        path, _, query = url.partition("?")
        environ = {header_to_environ_key(k): v for k, v in (headers or {}).items()}
        return cls(
            trans_id=trans_id,
            method=method,
            request_uri=path,
            relative_uri=path,
            decoded_uri=unquote(path),
            environ=environ,
            args=parse_query_string(query),
            client_io=client_io,
        )

    def header(self, key: str) -> Optional[str]:
        """Look up a CGI-style header, e.g. ``HTTP_AUTHORIZATION``."""
        return self.environ.get(key)

    def arg(self, name: str) -> Optional[str]:
        return self.args.get(name)
