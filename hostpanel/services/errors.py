from __future__ import annotations

from typing import Any


class HostPanelException(Exception):
    pass


class IntegrityException(HostPanelException):
    pass


class NotFoundException(HostPanelException):
    pass


class QuotaExceededException(HostPanelException):
    """The customer's package does not allow another resource of this kind."""


class ValidationException(HostPanelException):
    """Input rejected before any remote or local state was touched."""

    def __init__(self, message: str = "Validation error", *, details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class ConfigurationException(HostPanelException):
    pass


class RemoteServiceException(HostPanelException):
    """A remote control-plane or DNS call failed or was rejected."""


class RemoteAccountException(RemoteServiceException):
    pass


class RemoteHostException(RemoteServiceException):
    pass


class ProvisioningException(HostPanelException):
    pass


class PersistenceException(ProvisioningException):
    pass
