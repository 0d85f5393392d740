"""Error types raised by the WeChat Pay client.

A declined or failed business operation is *not* an error: it comes back as a
:class:`wechat_pay.PayResult` whose ``status`` is ``"FAIL"``.
"""

from __future__ import annotations


class PayError(Exception):
    """Base class for every failure raised by this package."""


class MissingParameterError(PayError):
    def __init__(self, fields: list[str]):
        super().__init__(f"missing required parameters: {', '.join(fields)}")
        self.fields = fields


class SigningError(PayError):
    """The keyed hash could not be computed."""


class TransportError(PayError):
    """The gateway rejected the request at the protocol level."""

    def __init__(self, code: str, message: str):
        super().__init__(f"{code}_{message}")
        self.code = code
        self.message = message


class UnknownResultError(PayError):
    def __init__(self, code: str, description: str):
        super().__init__(f"{code}_{description}")
        self.code = code
        self.description = description


class SignatureMismatchError(PayError):
    def __init__(self, fields: dict[str, str]):
        super().__init__(f"sign not match[#{fields}#]")
        self.fields = fields


class ConfigurationError(PayError):
    pass


class WireFormatError(PayError):
    """The response body is not well-formed gateway XML."""


__all__ = [
    "PayError",
    "MissingParameterError",
    "SigningError",
    "TransportError",
    "UnknownResultError",
    "SignatureMismatchError",
    "ConfigurationError",
    "WireFormatError",
]
