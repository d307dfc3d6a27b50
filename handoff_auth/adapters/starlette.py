"""
Starlette Adapter
=================
Builds an InboundTransaction from a Starlette or FastAPI request.

Usage (FastAPI):
    from handoff_auth.adapters.starlette import transaction_from_request

    @app.put("/{bucket}/{key:path}")
    async def put_object(request: Request):
        tx = transaction_from_request(request)
        result = await helper.auth(tx, string_to_sign=..., access_key_id=...)
"""

import uuid
from typing import Optional

from starlette.requests import Request

from ..transaction import InboundTransaction, header_to_environ_key, parse_query_string

REQUEST_ID_HEADER = "x-request-id"


def transaction_from_request(request: Request, trans_id: Optional[str] = None) -> InboundTransaction:
    """
    Convert a request into an InboundTransaction.

    The request itself is used as the client I/O handle. The transaction id
    is taken from ``trans_id``, then the ``X-Request-ID`` header, and is
    generated otherwise.

    Args:
        request: The incoming Starlette request
        trans_id: Explicit transaction identifier

    Returns:
        InboundTransaction
    """
    trans_id = trans_id or request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex

    raw_path = request.scope.get("raw_path")
    request_uri = raw_path.decode("latin-1") if raw_path else request.url.path
    request_uri = request_uri.partition("?")[0]

    decoded = request.scope.get("path") or request.url.path
    root_path = request.scope.get("root_path", "")
    relative = decoded[len(root_path):] if root_path and decoded.startswith(root_path) else decoded

    environ = {}
    for name, value in request.headers.items():
        environ.setdefault(header_to_environ_key(name), value)

    return InboundTransaction(
        trans_id=trans_id,
        method=request.method,
        request_uri=request_uri,
        relative_uri=relative,
        decoded_uri=decoded,
        environ=environ,
        args=parse_query_string(request.url.query),
        client_io=request,
    )
