from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

# ==== Error taxonomy (frozen) ====
E_ACCESS_DENIED = "ACCESS-DENIED"
E_UNKNOWN_UPS = "UNKNOWN-UPS"
E_VAR_NOT_SUPPORTED = "VAR-NOT-SUPPORTED"
E_CMD_NOT_SUPPORTED = "CMD-NOT-SUPPORTED"
E_INVALID_ARGUMENT = "INVALID-ARGUMENT"
E_INSTCMD_FAILED = "INSTCMD-FAILED"
E_SET_FAILED = "SET-FAILED"
E_READONLY = "READONLY"
E_TOO_LONG = "TOO-LONG"
E_FEATURE_NOT_SUPPORTED = "FEATURE-NOT-SUPPORTED"
E_FEATURE_NOT_CONFIGURED = "FEATURE-NOT-CONFIGURED"
E_ALREADY_SSL_MODE = "ALREADY-SSL-MODE"
E_DRIVER_NOT_CONNECTED = "DRIVER-NOT-CONNECTED"
E_DATA_STALE = "DATA-STALE"
E_ALREADY_LOGGED_IN = "ALREADY-LOGGED-IN"
E_INVALID_PASSWORD = "INVALID-PASSWORD"
E_ALREADY_SET_PASSWORD = "ALREADY-SET-PASSWORD"
E_INVALID_USERNAME = "INVALID-USERNAME"
E_ALREADY_SET_USERNAME = "ALREADY-SET-USERNAME"
E_USERNAME_REQUIRED = "USERNAME-REQUIRED"
E_PASSWORD_REQUIRED = "PASSWORD-REQUIRED"
E_UNKNOWN_COMMAND = "UNKNOWN-COMMAND"
E_INVALID_VALUE = "INVALID-VALUE"

# Placeholders are filled from the context of the failing request.
ERROR_DESCRIPTIONS: Mapping[str, str] = MappingProxyType(
    {
        E_ACCESS_DENIED: "The host and/or authentication details (username, password) are not sufficient to execute the requested command.",
        E_UNKNOWN_UPS: "The UPS: {upsName} in the request is not known to upsd. This usually means that it did not match anything in ups.conf.",
        E_VAR_NOT_SUPPORTED: "The UPS: {upsName}, does not support the variable: {variableName}",
        E_CMD_NOT_SUPPORTED: "The UPS: {upsName} does not support the command: {commandName}.",
        E_INVALID_ARGUMENT: "The argument: {commandParam} is not recognized for the command: {commandName} or is otherwise invalid in this context.",
        E_INSTCMD_FAILED: "upsd failed to deliver the command: {commandName} request to the driver. This typically indicates a dead or broken driver.",
        E_SET_FAILED: "upsd failed to deliver the set request to the driver. This typically indicates a dead or broken driver.",
        E_READONLY: "The requested variable: {variableName} is not writable.",
        E_TOO_LONG: "The requested value: {value} in a SET command is too long",
        E_FEATURE_NOT_SUPPORTED: "This instance of upsd does not support the requested feature.",
        E_FEATURE_NOT_CONFIGURED: "This instance of upsd has not been configured properly to allow the requested feature to operate.",
        E_ALREADY_SSL_MODE: "TLS/SSL mode is already enabled on this connection, so upsd cannot start it again.",
        E_DRIVER_NOT_CONNECTED: "upsd cannot perform the requested command: {commandName}, since the driver for UPS: {upsName} is not connected. This usually means that the driver is not running, or if it is, the ups.conf is misconfigured.",
        E_DATA_STALE: "upsd is connected to the driver for UPS: {upsName}, but that driver is not providing regular updates or has specifically marked the data as stale. upsd refuses to provide variables on stale units to avoid false readings.",
        E_ALREADY_LOGGED_IN: "A LOGIN has already been sent for UPS: {upsName}. There is a limit of one LOGIN record per connection.",
        E_INVALID_PASSWORD: "The PASSWORD: {password} is invalid.",
        E_ALREADY_SET_PASSWORD: "PASSWORD already set and another cannot be set.",
        E_INVALID_USERNAME: "The USERNAME: {username} is invalid.",
        E_ALREADY_SET_USERNAME: "USERNAME already set and another cannot be set.",
        E_USERNAME_REQUIRED: "The requested command requires a username for authentication, but it is not set.",
        E_PASSWORD_REQUIRED: "The requested command requires a password for authentication, but it is not set.",
        E_UNKNOWN_COMMAND: "upsd does not recognize the requested command: {commandName}.",
        E_INVALID_VALUE: "The value: {value} specified in the request is not valid.",
    }
)


def describe_error(
    code: str,
    context: Optional[Mapping[str, Any]] = None,
    templates: Mapping[str, str] = ERROR_DESCRIPTIONS,
) -> str:
    """Render the message for an upsd error code.

    Known codes yield ``"<code>: <template>"`` with every ``{key}`` present in
    ``context`` substituted. Placeholders without a context value are left as
    they are, and context keys absent from the template are ignored. Unknown
    codes are returned unchanged.
    """
    template = templates.get(code)
    if template is None:
        return code
    for key, value in (context or {}).items():
        template = template.replace("{" + key + "}", str(value))
    return f"{code}: {template}"


class NutError(Exception):
    """Base class for every error raised by nutclient."""


class TransportError(NutError):
    """The stream to upsd is unusable (connect, write or read failed)."""


class ProtocolViolation(NutError):
    """A reply did not follow the line, sentinel or quoting grammar."""


class ShapeMismatch(ProtocolViolation):
    """A decoded row does not have as many fields as there are labels."""


class ProtocolError(NutError):
    """upsd rejected a request with ``ERR <code>``."""

    def __init__(
        self,
        code: str,
        context: Optional[Mapping[str, Any]] = None,
        *,
        templates: Mapping[str, str] = ERROR_DESCRIPTIONS,
    ) -> None:
        self.code = code
        self.context: Dict[str, Any] = dict(context or {})
        self._templates = templates
        self.message = describe_error(code, self.context, templates)
        super().__init__(self.message)

    def with_context(self, **context: Any) -> "ProtocolError":
        merged = dict(self.context)
        merged.update(context)
        return ProtocolError(self.code, merged, templates=self._templates)
