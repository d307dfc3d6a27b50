"""
Authenticator Protocol
======================
Protocol Buffers messages for ``authenticator.v1.AuthenticatorService``.

The schema is declared here as a FileDescriptorProto and loaded into a
private descriptor pool at import time, so no generated ``_pb2`` module or
protoc step is needed.
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.internal.enum_type_wrapper import EnumTypeWrapper

PACKAGE = "authenticator.v1"
SERVICE_NAME = f"{PACKAGE}.AuthenticatorService"
AUTHENTICATE_REST_METHOD = f"/{SERVICE_NAME}/AuthenticateREST"
GET_SIGNING_KEY_METHOD = f"/{SERVICE_NAME}/GetSigningKey"

HTTP_METHODS = ("GET", "PUT", "POST", "DELETE", "HEAD")

# Authenticator error classifications, in wire order after TYPE_UNSPECIFIED.
S3_ERROR_TYPES = (
    "ACCESS_DENIED",
    "AUTHORIZATION_HEADER_MALFORMED",
    "EXPIRED_TOKEN",
    "INTERNAL_ERROR",
    "INVALID_ACCESS_KEY_ID",
    "INVALID_REQUEST",
    "INVALID_SECURITY",
    "INVALID_TOKEN",
    "INVALID_URI",
    "METHOD_NOT_ALLOWED",
    "MISSING_SECURITY_HEADER",
    "REQUEST_TIME_TOO_SKEWED",
    "SIGNATURE_DOES_NOT_MATCH",
    "TOKEN_REFRESH_REQUIRED",
)

_F = descriptor_pb2.FieldDescriptorProto


def _add_field(msg, name, number, field_type, label=_F.LABEL_OPTIONAL, type_name=None):
    field = msg.field.add(name=name, number=number, type=field_type, label=label)
    if type_name:
        field.type_name = type_name
    return field


def _add_string_map(msg, name, number):
    entry_name = "".join(part.capitalize() for part in name.split("_")) + "Entry"
    entry = msg.nested_type.add(name=entry_name)
    entry.options.map_entry = True
    _add_field(entry, "key", 1, _F.TYPE_STRING)
    _add_field(entry, "value", 2, _F.TYPE_STRING)
    _add_field(
        msg, name, number, _F.TYPE_MESSAGE, _F.LABEL_REPEATED,
        f".{PACKAGE}.{msg.name}.{entry_name}",
    )


def _add_enum(msg, name, prefix, values):
    enum = msg.enum_type.add(name=name)
    enum.value.add(name=f"{prefix}_UNSPECIFIED", number=0)
    for number, value in enumerate(values, start=1):
        enum.value.add(name=f"{prefix}_{value}", number=number)


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    fdp = descriptor_pb2.FileDescriptorProto(
        name="authenticator/v1/authenticator.proto",
        package=PACKAGE,
        syntax="proto3",
    )

    req = fdp.message_type.add(name="AuthenticateRESTRequest")
    _add_enum(req, "HTTPMethod", "HTTP_METHOD", HTTP_METHODS)
    _add_field(req, "transaction_id", 1, _F.TYPE_STRING)
    _add_field(req, "string_to_sign", 2, _F.TYPE_STRING)
    _add_field(req, "authorization_header", 3, _F.TYPE_STRING)
    _add_field(
        req, "http_method", 4, _F.TYPE_ENUM,
        type_name=f".{PACKAGE}.AuthenticateRESTRequest.HTTPMethod",
    )
    _add_field(req, "bucket_name", 5, _F.TYPE_STRING)
    _add_field(req, "object_key", 6, _F.TYPE_STRING)
    _add_string_map(req, "x_amz_headers", 7)
    _add_string_map(req, "query_parameters", 8)

    resp = fdp.message_type.add(name="AuthenticateRESTResponse")
    _add_field(resp, "user_id", 1, _F.TYPE_STRING)

    key_req = fdp.message_type.add(name="GetSigningKeyRequest")
    _add_field(key_req, "authorization_header", 1, _F.TYPE_STRING)
    _add_field(key_req, "transaction_id", 2, _F.TYPE_STRING)

    key_resp = fdp.message_type.add(name="GetSigningKeyResponse")
    _add_field(key_resp, "signing_key", 1, _F.TYPE_BYTES)

    details = fdp.message_type.add(name="S3ErrorDetails")
    _add_enum(details, "Type", "TYPE", S3_ERROR_TYPES)
    _add_field(details, "type", 1, _F.TYPE_ENUM, type_name=f".{PACKAGE}.S3ErrorDetails.Type")
    _add_field(details, "http_status_code", 2, _F.TYPE_INT32)

    service = fdp.service.add(name="AuthenticatorService")
    service.method.add(
        name="AuthenticateREST",
        input_type=f".{PACKAGE}.AuthenticateRESTRequest",
        output_type=f".{PACKAGE}.AuthenticateRESTResponse",
    )
    service.method.add(
        name="GetSigningKey",
        input_type=f".{PACKAGE}.GetSigningKeyRequest",
        output_type=f".{PACKAGE}.GetSigningKeyResponse",
    )
    return fdp


POOL = descriptor_pool.DescriptorPool()
POOL.AddSerializedFile(_build_file().SerializeToString())


def _message(name: str):
    return message_factory.GetMessageClass(POOL.FindMessageTypeByName(f"{PACKAGE}.{name}"))


AuthenticateRESTRequest = _message("AuthenticateRESTRequest")
AuthenticateRESTResponse = _message("AuthenticateRESTResponse")
GetSigningKeyRequest = _message("GetSigningKeyRequest")
GetSigningKeyResponse = _message("GetSigningKeyResponse")
S3ErrorDetails = _message("S3ErrorDetails")

HTTPMethod = EnumTypeWrapper(AuthenticateRESTRequest.DESCRIPTOR.enum_types_by_name["HTTPMethod"])
S3ErrorType = EnumTypeWrapper(S3ErrorDetails.DESCRIPTOR.enum_types_by_name["Type"])


def http_method_value(method: str) -> int:
    """Map an HTTP method name to the request enum, UNSPECIFIED if unknown."""
    method = method.upper()
    if method in HTTP_METHODS:
        return HTTPMethod.Value(f"HTTP_METHOD_{method}")
    return HTTPMethod.Value("HTTP_METHOD_UNSPECIFIED")
