"""Credential (password) reconciliation.

Endpoints:
    create        POST   /1.0/passwords/                 username, password, label, notes, ...
    update        POST   /1.0/passwords/                 id + changed fields
    custom fields PUT    /1.0/custom_fields/password     username, id, bulk_fields | key, value
    read          GET    /1.0/passwords/?plain_text=..&id=..
    delete        DELETE /1.0/passwords/{id}/

Unlike devices, every fixed field can change in place: the record is
addressed by its id, so username and label are plain attributes here.
"""

from __future__ import annotations

from .custom_fields import CustomFieldMapping
from .decoders import PasswordRecord, decode_passwords
from .models import PasswordSpec
from .reconciler import ResourceData, ResourceReconciler

PasswordData = ResourceData[PasswordSpec, PasswordRecord]

# Optional associations only sent and compared when declared
OPTIONAL_FIELDS = ("category", "device", "appcomp")


class PasswordReconciler(ResourceReconciler[PasswordSpec, PasswordRecord]):
    """Lifecycle of Device42 password records."""

    kind = "password"
    create_path = "/1.0/passwords/"
    custom_field_path = "/1.0/custom_fields/password"

    def create_form(self, spec: PasswordSpec) -> dict[str, str]:
        form = {
            "username": spec.username,
            "password": spec.password,
            "label": spec.label,
            "notes": spec.notes,
        }
        for name in OPTIONAL_FIELDS:
            value = getattr(spec, name)
            if value:
                form[name] = value
        return form

    def owner_form(self, spec: PasswordSpec, resource_id: str) -> dict[str, str]:
        # usernames repeat across labels, the id disambiguates
        return {"username": spec.username, "id": resource_id}

    def fetch(self, spec: PasswordSpec, resource_id: str) -> PasswordRecord | None:
        raw = self._client.read(
            "/1.0/passwords/", params={"plain_text": spec.plain_text, "id": resource_id}
        )
        records = decode_passwords(raw)
        for record in records:
            if str(record.id) == resource_id:
                return record
        return None

    def delete_path(self, resource_id: str) -> str:
        return f"/1.0/passwords/{resource_id}/"

    def fixed_changes(self, spec: PasswordSpec, record: PasswordRecord) -> dict[str, str]:
        changes: dict[str, str] = {}
        if record.username != spec.username:
            changes["username"] = spec.username
        if record.label != spec.label:
            changes["label"] = spec.label
        if record.notes != spec.notes:
            changes["notes"] = spec.notes
        # the secret is only comparable when the listing returned it
        if spec.plain_text == "yes" and record.password != spec.password:
            changes["password"] = spec.password
        for name in OPTIONAL_FIELDS:
            value = getattr(spec, name)
            if value and not getattr(record, name).matches(value):
                changes[name] = value
        return changes

    def write_fixed(self, spec: PasswordSpec, resource_id: str, changes: dict[str, str]) -> None:
        self._client.update(self.create_path, {"id": resource_id, **changes}, method="POST")

    def observed_custom_fields(self, record: PasswordRecord) -> CustomFieldMapping:
        return record.custom_fields
