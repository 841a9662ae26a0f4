"""
Error taxonomy for the companion client.

- ConfigurationError: missing credentials / unknown provider. Fatal at startup.
- ProviderError: network failure or provider-side rejection. Callers replace
  the model reply with a fallback message; never retried.
- PersistenceError / StorageQuotaError: store failures. The session layer logs
  and swallows them.
- PermissionDeniedError: microphone/camera could not be acquired.

Input validation keeps raising ValueError with a user-facing message.
"""

from __future__ import annotations


class CompanionError(RuntimeError):
    pass


class ConfigurationError(CompanionError):
    pass


class ProviderError(CompanionError):
    def __init__(self, message: str, *, provider: str = "", status: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.status = status


class PersistenceError(CompanionError):
    pass


class StorageQuotaError(PersistenceError):
    pass


class PermissionDeniedError(CompanionError):
    pass
