"""Request authentication for the SMS4Dev mock API."""

from sms4dev.auth.authenticator import (
    AuthDecision,
    AuthErrorKind,
    AuthMode,
    Authenticator,
)
from sms4dev.auth.canonical import build_string_to_sign
from sms4dev.auth.descriptor import RequestDescriptor
from sms4dev.auth.keys import AccessKeyManager, GeneratedCredential
from sms4dev.auth.signer import constant_time_equals, sign
from sms4dev.auth.store import CredentialStore, ValidationResult

__all__ = [
    "AccessKeyManager",
    "AuthDecision",
    "AuthErrorKind",
    "AuthMode",
    "Authenticator",
    "CredentialStore",
    "GeneratedCredential",
    "RequestDescriptor",
    "ValidationResult",
    "build_string_to_sign",
    "constant_time_equals",
    "sign",
]
