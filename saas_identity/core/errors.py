"""Error taxonomy shared by the provisioning workflow and the HTTP handlers.

Handlers translate every ProvisioningError into a 400 response; nothing here is
retried or compensated.
"""
from __future__ import annotations
from typing import Optional


class ProvisioningError(Exception):
    """Base class for failures surfaced to request handlers."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AlreadyExistsError(ProvisioningError):
    """The user (or tenant admin) is already registered."""


class NotFoundError(ProvisioningError):
    """Lookup matched no record."""


class ValidationError(ProvisioningError, ValueError):
    """Request payload is missing required fields or has malformed values."""


class CredentialError(ProvisioningError):
    """Bearer token missing or undecodable, or credentials could not be resolved."""


class UpstreamFailure(ProvisioningError):
    """An outbound call to the identity provider (or a peer service) failed.

    Attributes:
        step: Name of the workflow step that issued the call
        cause: Original exception
    """

    def __init__(self, step: str, cause: Optional[BaseException] = None, message: Optional[str] = None):
        self.step = step
        self.cause = cause
        super().__init__(message or f"{step} failed: {cause}")


class PersistenceFailure(ProvisioningError):
    """A record-store write failed."""

    def __init__(self, cause: Optional[BaseException] = None, message: Optional[str] = None):
        self.cause = cause
        super().__init__(message or f"Record store write failed: {cause}")


class TeardownFailure(UpstreamFailure):
    """A tenant's deletion chain stopped partway."""

    def __init__(self, tenant_id: str, step: str, cause: Optional[BaseException] = None):
        self.tenant_id = tenant_id
        super().__init__(step, cause, message=f"Teardown of {tenant_id} failed at {step}: {cause}")
