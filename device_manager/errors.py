"""Taxonomía de errores del device manager."""

from __future__ import annotations

from typing import Optional


class DeviceManagerError(Exception):
    """Error base del device manager."""

    retryable = False


class ValidationError(DeviceManagerError):
    """Medida o payload inválido. Se lanza antes de cualquier escritura."""


class NotFoundError(DeviceManagerError):
    """Documento, asset o decoder inexistente."""


class ConflictError(DeviceManagerError):
    """Conflicto de versión en el document store (optimistic locking)."""

    retryable = True


class ProvisioningError(DeviceManagerError):
    """El device no está provisionado y el auto-provisioning está apagado."""


class LinkInconsistency(DeviceManagerError):
    """El device apunta a un asset que no tiene registro del device."""

    def __init__(self, device_id: str, asset_id: str):
        self.device_id = device_id
        self.asset_id = asset_id
        super().__init__(f'Device "{device_id}" is not linked to asset "{asset_id}"')


class PersistenceError(DeviceManagerError):
    """Fallo de escritura durante la ingesta.

    ``entity`` es "device", "engine device", "asset" o "measures".
    """

    def __init__(
        self,
        entity: str,
        entity_id: Optional[str],
        reason: str,
    ):
        self.entity = entity
        self.entity_id = entity_id
        self.reason = reason
        if entity_id is None:
            message = f"Cannot save {entity}: {reason}"
        else:
            message = f'Cannot update {entity} "{entity_id}": {reason}'
        super().__init__(message)


class LockTimeout(DeviceManagerError):
    """No se pudo adquirir el lock a tiempo. El caller puede reintentar."""

    retryable = True

    def __init__(self, key: str, timeout_seconds: float):
        self.key = key
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Cannot acquire lock '{key}' within {timeout_seconds:.1f}s"
        )
