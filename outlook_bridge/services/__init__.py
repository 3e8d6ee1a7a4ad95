"""Service layer exports."""

from .credential_store import CredentialStore, ensure_authenticated
from .mail import MailService

__all__ = [
    "CredentialStore",
    "MailService",
    "ensure_authenticated",
]
