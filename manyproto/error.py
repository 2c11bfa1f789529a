"""Protocol error codes and the error type carried in responses."""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum, IntEnum

import cbor2

_KEY_CODE = 0
_KEY_MESSAGE = 1
_KEY_ARGUMENTS = 2

_I32_MIN = -(2**31)
_I32_MAX = 2**31 - 1
_U32_MAX = 2**32 - 1

_PLACEHOLDER = re.compile(r"\{\{|\}\}|\{[^}\s]*\}")


class ErrorCode(IntEnum):
    """Error codes defined by the protocol itself."""

    # Generic, unexpected or transport errors.
    UNKNOWN = -1
    MESSAGE_TOO_LONG = -2
    DESERIALIZATION_ERROR = -3
    SERIALIZATION_ERROR = -4
    UNEXPECTED_EMPTY_REQUEST = -5
    UNEXPECTED_EMPTY_RESPONSE = -6
    UNEXPECTED_TRANSPORT_ERROR = -7
    COULD_NOT_ROUTE_MESSAGE = -8
    INVALID_ATTRIBUTE_ID = -9
    INVALID_ATTRIBUTE_ARGUMENTS = -10
    ATTRIBUTE_NOT_FOUND = -11

    INVALID_IDENTITY = -100
    INVALID_IDENTITY_PREFIX = -101
    INVALID_IDENTITY_KIND = -102
    INVALID_IDENTITY_SUBRESOURCE_ID = -103

    HSM_INIT_ERROR = -200
    HSM_SESSION_ERROR = -201
    HSM_LOGIN_ERROR = -202
    HSM_KEYID_ERROR = -203
    HSM_SIGN_ERROR = -204
    HSM_VERIFY_ERROR = -205
    HSM_EC_POINT_ERROR = -206
    HSM_EC_PARAMS_ERROR = -207
    HSM_KEYGEN_ERROR = -208
    HSM_MUTEX_POISONED = -209

    # Request errors.
    INVALID_METHOD_NAME = -1000
    INVALID_FROM_IDENTITY = -1001
    COULD_NOT_VERIFY_SIGNATURE = -1002
    UNKNOWN_DESTINATION = -1003
    EMPTY_ENVELOPE = -1004
    TIMESTAMP_OUT_OF_RANGE = -1005
    REQUIRED_FIELD_MISSING = -1006

    # Server errors.
    INTERNAL_SERVER_ERROR = -2000


_DESCRIPTIONS = {
    ErrorCode.UNKNOWN: "Unknown error: {message}",
    ErrorCode.MESSAGE_TOO_LONG: "Message is too long. Max allowed size is {max} bytes.",
    ErrorCode.DESERIALIZATION_ERROR: "Deserialization error:\n{details}",
    ErrorCode.SERIALIZATION_ERROR: "Serialization error:\n{details}",
    ErrorCode.UNEXPECTED_EMPTY_REQUEST: "Request of a message was unexpectedly empty.",
    ErrorCode.UNEXPECTED_EMPTY_RESPONSE: "Response of a message was unexpectedly empty.",
    ErrorCode.UNEXPECTED_TRANSPORT_ERROR: "The transport returned an error unexpectedly:\n{inner}",
    ErrorCode.COULD_NOT_ROUTE_MESSAGE: "Could not find a handler for the message.",
    ErrorCode.INVALID_ATTRIBUTE_ID: "Unexpected attribute ID: {id}.",
    ErrorCode.INVALID_ATTRIBUTE_ARGUMENTS: "Attribute does not have the right arguments.",
    ErrorCode.ATTRIBUTE_NOT_FOUND: "Expected attribute {id} not found.",
    ErrorCode.INVALID_IDENTITY: "Identity is invalid (does not follow the protocol).",
    ErrorCode.INVALID_IDENTITY_PREFIX: (
        "Identity string did not start with the right prefix. Expected 'm', was '{actual}'."
    ),
    ErrorCode.INVALID_IDENTITY_KIND: 'Identity kind "{actual}" was not recognized.',
    ErrorCode.INVALID_IDENTITY_SUBRESOURCE_ID: (
        "Invalid Subresource ID. Subresource IDs are 31 bits."
    ),
    ErrorCode.HSM_INIT_ERROR: "PKCS#11 init error:\n{details}",
    ErrorCode.HSM_SESSION_ERROR: "PKCS#11 session error:\n{details}",
    ErrorCode.HSM_LOGIN_ERROR: "PKCS#11 login error:\n{details}",
    ErrorCode.HSM_KEYID_ERROR: "PKCS#11 key ID error:\n{details}",
    ErrorCode.HSM_SIGN_ERROR: "PKCS#11 sign error:\n{details}",
    ErrorCode.HSM_VERIFY_ERROR: "PKCS#11 verify error:\n{details}",
    ErrorCode.HSM_EC_POINT_ERROR: "PKCS#11 EC Point error:\n{details}",
    ErrorCode.HSM_EC_PARAMS_ERROR: "PKCS#11 EC Params error:\n{details}",
    ErrorCode.HSM_KEYGEN_ERROR: "PKCS#11 key generation error:\n{details}",
    ErrorCode.HSM_MUTEX_POISONED: "PKCS#11 global instance mutex poisoned:\n{details}",
    ErrorCode.INVALID_METHOD_NAME: 'Invalid method name: "{method}".',
    ErrorCode.INVALID_FROM_IDENTITY: "The identity of the from field is invalid or unexpected.",
    ErrorCode.COULD_NOT_VERIFY_SIGNATURE: "Could not verify the signature: {details}.",
    ErrorCode.UNKNOWN_DESTINATION: (
        'Unknown destination for message.\nThis is "{this}", message was for "{to}".'
    ),
    ErrorCode.EMPTY_ENVELOPE: "An envelope must contain a payload.",
    ErrorCode.TIMESTAMP_OUT_OF_RANGE: (
        "The message's timestamp is out of the accepted range of the server."
    ),
    ErrorCode.REQUIRED_FIELD_MISSING: "Field is required but missing: '{field}'.",
    ErrorCode.INTERNAL_SERVER_ERROR: "An internal server error happened.",
}


class _Scope(Enum):
    STANDARD = "standard"
    ATTRIBUTE = "attribute"
    APPLICATION = "application"


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class ManyErrorCode:
    """An error code: a protocol code, an attribute-specific or an application code."""

    value: int
    scope: _Scope = _Scope.STANDARD

    def __post_init__(self):
        if not _is_int(self.value):
            raise TypeError(f"error code must be an integer, got {self.value!r}")
        if self.scope is _Scope.STANDARD:
            object.__setattr__(self, "value", ErrorCode(self.value))
        elif self.scope is _Scope.ATTRIBUTE:
            if not _I32_MIN <= self.value <= _I32_MAX:
                raise ValueError(f"attribute error code out of range: {self.value}")
        elif self.scope is _Scope.APPLICATION:
            if not 0 <= self.value <= _U32_MAX:
                raise ValueError(f"application error code out of range: {self.value}")
        else:
            raise ValueError(f"invalid error code scope: {self.scope!r}")

    @classmethod
    def from_int(cls, value):
        """Interpret a wire integer; unknown negative codes become UNKNOWN."""
        if not _is_int(value):
            raise TypeError(f"error code must be an integer, got {value!r}")
        if value in ErrorCode._value2member_map_:
            return cls(ErrorCode(value))
        if value >= 0:
            return cls(value & _U32_MAX, _Scope.APPLICATION)
        return cls(ErrorCode.UNKNOWN)

    def to_int(self):
        return int(self.value)

    def message(self):
        """Return the description template of a protocol code, or None."""
        if self.scope is _Scope.STANDARD:
            return _DESCRIPTIONS[self.value]
        return None

    def is_attribute_specific(self):
        return self.scope is _Scope.ATTRIBUTE

    def is_application_specific(self):
        return self.scope is _Scope.APPLICATION

    @classmethod
    def message_of(cls, code):
        return cls.from_int(code).message()


def _render(template, arguments):
    def replace(match):
        text = match.group()
        if text == "{{":
            return "{"
        if text == "}}":
            return "}"
        return arguments.get(text[1:-1], "")

    return _PLACEHOLDER.sub(replace, template)


class ManyError(Exception):
    """An error with a code, an optional message template and named arguments."""

    def __init__(self, code, message=None, arguments=None):
        if isinstance(code, ErrorCode):
            code = ManyErrorCode(code)
        if not isinstance(code, ManyErrorCode):
            raise TypeError(f"invalid error code: {code!r}")
        if message is not None and not isinstance(message, str):
            raise TypeError("error message must be a string")
        arguments = dict(arguments or {})
        for key, value in arguments.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise TypeError("error arguments must map strings to strings")
        super().__init__(code, message, arguments)
        self.code = code
        self.message = message
        self.arguments = arguments

    def __str__(self):
        template = self.message
        if template is None:
            template = self.code.message() or "Invalid error code."
        return _render(template, self.arguments)

    def __repr__(self):
        return (
            f"ManyError(code={self.code!r}, message={self.message!r}, "
            f"arguments={self.arguments!r})"
        )

    def __eq__(self, other):
        if not isinstance(other, ManyError):
            return NotImplemented
        return (self.code, self.message, self.arguments) == (
            other.code,
            other.message,
            other.arguments,
        )

    def __hash__(self):
        return hash((self.code, self.message, tuple(sorted(self.arguments.items()))))

    def is_attribute_specific(self):
        return self.code.is_attribute_specific()

    def is_application_specific(self):
        return self.code.is_application_specific()

    @classmethod
    def attribute_specific(cls, code, message, arguments):
        return cls(ManyErrorCode(code, _Scope.ATTRIBUTE), message, arguments)

    @classmethod
    def application_specific(cls, code, message, arguments):
        return cls(ManyErrorCode(code, _Scope.APPLICATION), message, arguments)

    def to_cbor(self):
        result = {_KEY_CODE: self.code.to_int()}
        if self.message is not None:
            result[_KEY_MESSAGE] = self.message
        if self.arguments:
            result[_KEY_ARGUMENTS] = dict(sorted(self.arguments.items()))
        return result

    @classmethod
    def from_cbor(cls, value):
        if not isinstance(value, Mapping):
            raise ValueError("an error must be encoded as a map")
        code = 0
        message = None
        arguments = {}
        for key, item in value.items():
            if not _is_int(key):
                raise ValueError(f"invalid error map key: {key!r}")
            if key == _KEY_CODE:
                if not _is_int(item):
                    raise ValueError("error code must be an integer")
                code = item
            elif key == _KEY_MESSAGE:
                if not isinstance(item, str):
                    raise ValueError("error message must be a string")
                message = item
            elif key == _KEY_ARGUMENTS:
                if not isinstance(item, Mapping) or not all(
                    isinstance(k, str) and isinstance(v, str) for k, v in item.items()
                ):
                    raise ValueError("error arguments must map strings to strings")
                arguments = dict(item)
        return cls(ManyErrorCode.from_int(code), message, arguments)

    def to_bytes(self):
        return cbor2.dumps(self.to_cbor())

    @classmethod
    def from_bytes(cls, data):
        try:
            raw = cbor2.loads(data)
        except cbor2.CBORDecodeError as exc:
            raise ValueError(str(exc)) from exc
        return cls.from_cbor(raw)

    @classmethod
    def _standard(cls, code, **arguments):
        return cls(
            ManyErrorCode(code),
            _DESCRIPTIONS[code],
            {name: str(value) for name, value in arguments.items()},
        )

    @classmethod
    def unknown(cls, message):
        return cls._standard(ErrorCode.UNKNOWN, message=message)

    @classmethod
    def message_too_long(cls, max):
        return cls._standard(ErrorCode.MESSAGE_TOO_LONG, max=max)

    @classmethod
    def deserialization_error(cls, details):
        return cls._standard(ErrorCode.DESERIALIZATION_ERROR, details=details)

    @classmethod
    def serialization_error(cls, details):
        return cls._standard(ErrorCode.SERIALIZATION_ERROR, details=details)

    @classmethod
    def unexpected_empty_request(cls):
        return cls._standard(ErrorCode.UNEXPECTED_EMPTY_REQUEST)

    @classmethod
    def unexpected_empty_response(cls):
        return cls._standard(ErrorCode.UNEXPECTED_EMPTY_RESPONSE)

    @classmethod
    def unexpected_transport_error(cls, inner):
        return cls._standard(ErrorCode.UNEXPECTED_TRANSPORT_ERROR, inner=inner)

    @classmethod
    def could_not_route_message(cls):
        return cls._standard(ErrorCode.COULD_NOT_ROUTE_MESSAGE)

    @classmethod
    def invalid_attribute_id(cls, id):
        return cls._standard(ErrorCode.INVALID_ATTRIBUTE_ID, id=id)

    @classmethod
    def invalid_attribute_arguments(cls):
        return cls._standard(ErrorCode.INVALID_ATTRIBUTE_ARGUMENTS)

    @classmethod
    def attribute_not_found(cls, id):
        return cls._standard(ErrorCode.ATTRIBUTE_NOT_FOUND, id=id)

    @classmethod
    def invalid_identity(cls):
        return cls._standard(ErrorCode.INVALID_IDENTITY)

    @classmethod
    def invalid_identity_prefix(cls, actual):
        return cls._standard(ErrorCode.INVALID_IDENTITY_PREFIX, actual=actual)

    @classmethod
    def invalid_identity_kind(cls, actual):
        return cls._standard(ErrorCode.INVALID_IDENTITY_KIND, actual=actual)

    @classmethod
    def invalid_identity_subid(cls):
        return cls._standard(ErrorCode.INVALID_IDENTITY_SUBRESOURCE_ID)

    @classmethod
    def hsm_init_error(cls, details):
        return cls._standard(ErrorCode.HSM_INIT_ERROR, details=details)

    @classmethod
    def hsm_session_error(cls, details):
        return cls._standard(ErrorCode.HSM_SESSION_ERROR, details=details)

    @classmethod
    def hsm_login_error(cls, details):
        return cls._standard(ErrorCode.HSM_LOGIN_ERROR, details=details)

    @classmethod
    def hsm_keyid_error(cls, details):
        return cls._standard(ErrorCode.HSM_KEYID_ERROR, details=details)

    @classmethod
    def hsm_sign_error(cls, details):
        return cls._standard(ErrorCode.HSM_SIGN_ERROR, details=details)

    @classmethod
    def hsm_verify_error(cls, details):
        return cls._standard(ErrorCode.HSM_VERIFY_ERROR, details=details)

    @classmethod
    def hsm_ec_point_error(cls, details):
        return cls._standard(ErrorCode.HSM_EC_POINT_ERROR, details=details)

    @classmethod
    def hsm_ec_params_error(cls, details):
        return cls._standard(ErrorCode.HSM_EC_PARAMS_ERROR, details=details)

    @classmethod
    def hsm_keygen_error(cls, details):
        return cls._standard(ErrorCode.HSM_KEYGEN_ERROR, details=details)

    @classmethod
    def hsm_mutex_poisoned(cls, details):
        return cls._standard(ErrorCode.HSM_MUTEX_POISONED, details=details)

    @classmethod
    def invalid_method_name(cls, method):
        return cls._standard(ErrorCode.INVALID_METHOD_NAME, method=method)

    @classmethod
    def invalid_from_identity(cls):
        return cls._standard(ErrorCode.INVALID_FROM_IDENTITY)

    @classmethod
    def could_not_verify_signature(cls, details):
        return cls._standard(ErrorCode.COULD_NOT_VERIFY_SIGNATURE, details=details)

    @classmethod
    def unknown_destination(cls, to, this):
        return cls._standard(ErrorCode.UNKNOWN_DESTINATION, to=to, this=this)

    @classmethod
    def empty_envelope(cls):
        return cls._standard(ErrorCode.EMPTY_ENVELOPE)

    @classmethod
    def timestamp_out_of_range(cls):
        return cls._standard(ErrorCode.TIMESTAMP_OUT_OF_RANGE)

    @classmethod
    def required_field_missing(cls, field):
        return cls._standard(ErrorCode.REQUIRED_FIELD_MISSING, field=field)

    @classmethod
    def internal_server_error(cls):
        return cls._standard(ErrorCode.INTERNAL_SERVER_ERROR)


def attribute_error(module_id, error_id, message, **kwargs):
    """Build an attribute-specific error; its code is ``module_id * -10000 - error_id``."""
    return ManyError.attribute_specific(
        module_id * -10000 - error_id,
        message,
        {name: str(value) for name, value in kwargs.items()},
    )


def application_error(error_id, message, **kwargs):
    """Build an application-specific error with a non-negative code."""
    return ManyError.application_specific(
        error_id,
        message,
        {name: str(value) for name, value in kwargs.items()},
    )