"""Device reconciliation.

Endpoints:
    create        POST   /device/                        name, type
    custom fields PUT    /1.0/device/custom_field/       name, bulk_fields | name, key, value
    read          GET    /1.0/devices/id/{id}/
    delete        DELETE /1.0/devices/{id}/

The device name is the identity: a rename cannot be applied in place and
is reported as a replacement. A device type change is written back
through the create endpoint, which upserts by name.
"""

from __future__ import annotations

from .custom_fields import CustomFieldMapping
from .decoders import DeviceRecord, decode_device
from .models import DeviceSpec
from .reconciler import ResourceData, ResourceReconciler

DeviceData = ResourceData[DeviceSpec, DeviceRecord]


class DeviceReconciler(ResourceReconciler[DeviceSpec, DeviceRecord]):
    """Lifecycle of Device42 devices."""

    kind = "device"
    create_path = "/device/"
    custom_field_path = "/1.0/device/custom_field/"

    def create_form(self, spec: DeviceSpec) -> dict[str, str]:
        return {"name": spec.name, "type": spec.device_type}

    def owner_form(self, spec: DeviceSpec, resource_id: str) -> dict[str, str]:
        return {"name": spec.name}

    def fetch(self, spec: DeviceSpec, resource_id: str) -> DeviceRecord | None:
        return decode_device(self._client.read(f"/1.0/devices/id/{resource_id}/"))

    def delete_path(self, resource_id: str) -> str:
        return f"/1.0/devices/{resource_id}/"

    def identity_changes(self, spec: DeviceSpec, record: DeviceRecord) -> list[str]:
        if record.name and record.name != spec.name:
            return ["name"]
        return []

    def fixed_changes(self, spec: DeviceSpec, record: DeviceRecord) -> dict[str, str]:
        if record.device_type != spec.device_type:
            return {"type": spec.device_type}
        return {}

    def write_fixed(self, spec: DeviceSpec, resource_id: str, changes: dict[str, str]) -> None:
        self._client.update(self.create_path, {"name": spec.name, **changes}, method="POST")

    def observed_custom_fields(self, record: DeviceRecord) -> CustomFieldMapping:
        return record.custom_fields
