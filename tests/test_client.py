"""Tests for the Device42 API client facade."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests
from d42_mock import MockDevice42State, MockResponse, MockSession

from d42sync.client import (
    ApiError,
    Device42Client,
    NotFoundError,
    ResponseDecodeError,
    TransportError,
)
from d42sync.config import ClientConfig


def stub_session(*responses: MockResponse) -> MagicMock:
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    session.request.side_effect = list(responses)
    return session


class TestSessionSetup:
    """Tests for how the client configures its session."""

    def test_basic_auth_and_verify(self, config: ClientConfig, d42_session: MockSession) -> None:
        """Test that auth and TLS verification come from the config."""
        Device42Client(config, session=d42_session)

        assert d42_session.auth == ("admin", "secret")
        assert d42_session.verify is True
        assert d42_session.headers["Accept"] == "application/json"

    def test_tls_insecure(self, d42_session: MockSession) -> None:
        """Test that tls_insecure disables certificate verification."""
        config = ClientConfig(host="d42.example.com", tls_insecure=True)
        Device42Client(config, session=d42_session)

        assert d42_session.verify is False
        assert d42_session.auth is None

    def test_requests_target_base_url(self, config: ClientConfig) -> None:
        """Test that paths are joined onto https://host/api with the timeout."""
        session = stub_session(MockResponse(200, {"id": 1}))
        client = Device42Client(config, session=session)

        client.read("/1.0/devices/id/1/")

        session.request.assert_called_once_with(
            "GET",
            "https://d42.example.com/api/1.0/devices/id/1/",
            params=None,
            data=None,
            timeout=30,
        )


class TestClose:
    """Tests for releasing the session."""

    def test_context_manager_closes_own_session(self, config: ClientConfig) -> None:
        """Test that a session created by the client is closed on exit."""
        with patch("d42sync.client.requests.Session") as session_cls:
            session_cls.return_value.headers = {}
            with Device42Client(config) as client:
                assert isinstance(client, Device42Client)

        session_cls.return_value.close.assert_called_once_with()

    def test_caller_session_left_open(self, config: ClientConfig) -> None:
        """Test that a session passed in by the caller is not closed."""
        session = stub_session()

        Device42Client(config, session=session).close()

        session.close.assert_not_called()


class TestCreate:
    """Tests for create."""

    def test_returns_id_at_message_index_one(self, client: Device42Client) -> None:
        """Test that the assigned id is taken from msg[1]."""
        assigned = client.create("/device/", {"name": "db01", "type": "physical"})
        assert assigned == 100

    def test_form_encoded(self, client: Device42Client, d42_state: MockDevice42State) -> None:
        """Test that fields are sent as form data."""
        client.create("/device/", {"name": "db01", "type": "physical"})

        request = d42_state.requests[0]
        assert request.method == "POST"
        assert request.path == "/device/"
        assert request.data == {"name": "db01", "type": "physical"}

    @pytest.mark.parametrize("raw_id", [42, 42.0, "42"])
    def test_id_coercion(self, config: ClientConfig, raw_id: object) -> None:
        """Test that numeric ids arrive as ints, floats or digit strings."""
        session = stub_session(MockResponse(200, {"code": 0, "msg": ["ok", raw_id]}))
        client = Device42Client(config, session=session)

        assert client.create("/device/", {"name": "x"}) == 42

    @pytest.mark.parametrize("msg", [["ok"], ["ok", None], ["ok", "abc"], ["ok", True]])
    def test_missing_or_bad_id(self, config: ClientConfig, msg: list[object]) -> None:
        """Test that the positional id contract is enforced."""
        session = stub_session(MockResponse(200, {"code": 0, "msg": msg}))
        client = Device42Client(config, session=session)

        with pytest.raises(ResponseDecodeError):
            client.create("/device/", {"name": "x"})

    def test_application_error(
        self, client: Device42Client, d42_state: MockDevice42State
    ) -> None:
        """Test that a non-zero code is an error even on HTTP 200."""
        d42_state.inject_failure("POST", "/device/", code=1)

        with pytest.raises(ApiError) as exc_info:
            client.create("/device/", {"name": "db01"})

        assert exc_info.value.code == 1
        assert exc_info.value.operation == "create"
        assert exc_info.value.path == "/device/"


class TestRead:
    """Tests for read."""

    def test_read_json(self, client: Device42Client, d42_state: MockDevice42State) -> None:
        """Test reading a JSON object."""
        device_id = d42_state.add_device("db01")
        body = client.read(f"/1.0/devices/id/{device_id}/")
        assert body["name"] == "db01"

    def test_not_found(self, client: Device42Client) -> None:
        """Test that HTTP 404 raises NotFoundError."""
        with pytest.raises(NotFoundError):
            client.read("/1.0/devices/id/999/")

    def test_server_error_is_transport(
        self, client: Device42Client, d42_state: MockDevice42State
    ) -> None:
        """Test that non-404 error statuses are transport failures."""
        d42_state.inject_failure("GET", "/1.0/devices/id/1/", status=503)

        with pytest.raises(TransportError):
            client.read("/1.0/devices/id/1/")

    def test_connection_error_is_transport(
        self, client: Device42Client, d42_state: MockDevice42State
    ) -> None:
        """Test that requests exceptions are wrapped and chained."""
        d42_state.inject_failure("GET", "/1.0/devices/id/1/", transport=True)

        with pytest.raises(TransportError) as exc_info:
            client.read("/1.0/devices/id/1/")

        assert isinstance(exc_info.value.__cause__, requests.ConnectionError)

    def test_invalid_json(self, config: ClientConfig) -> None:
        """Test that a non-JSON body is a decode error."""
        client = Device42Client(config, session=stub_session(MockResponse(200, "<html>")))

        with pytest.raises(ResponseDecodeError):
            client.read("/1.0/devices/id/1/")

    def test_non_object_body(self, config: ClientConfig) -> None:
        """Test that a JSON array body is a decode error."""
        client = Device42Client(config, session=stub_session(MockResponse(200, [1, 2])))

        with pytest.raises(ResponseDecodeError):
            client.read("/1.0/devices/id/1/")

    def test_retries_transport_failures(
        self, d42_session: MockSession, d42_state: MockDevice42State
    ) -> None:
        """Test that reads are retried with exponential backoff."""
        config = ClientConfig(
            host="d42.example.com", max_retries=2, retry_backoff_seconds=0.5
        )
        client = Device42Client(config, session=d42_session)
        device_id = d42_state.add_device("db01")
        path = f"/1.0/devices/id/{device_id}/"
        d42_state.inject_failure("GET", path, transport=True, times=2)

        with patch("d42sync.client.time.sleep") as mock_sleep:
            body = client.read(path)

        assert body["name"] == "db01"
        assert [c.args[0] for c in mock_sleep.call_args_list] == [0.5, 1.0]

    def test_retries_exhausted(
        self, d42_session: MockSession, d42_state: MockDevice42State
    ) -> None:
        """Test that the last transport failure propagates."""
        config = ClientConfig(host="d42.example.com", max_retries=1)
        client = Device42Client(config, session=d42_session)
        d42_state.inject_failure("GET", "/1.0/devices/id/1/", transport=True, times=5)

        with patch("d42sync.client.time.sleep"), pytest.raises(TransportError):
            client.read("/1.0/devices/id/1/")

        assert len(d42_state.requests) == 2

    def test_writes_are_not_retried(
        self, d42_session: MockSession, d42_state: MockDevice42State
    ) -> None:
        """Test that a failed write is attempted once."""
        config = ClientConfig(host="d42.example.com", max_retries=3)
        client = Device42Client(config, session=d42_session)
        d42_state.inject_failure("POST", "/device/", transport=True)

        with pytest.raises(TransportError):
            client.create("/device/", {"name": "db01"})

        assert len(d42_state.requests) == 1


class TestUpdateAndDelete:
    """Tests for update and delete."""

    def test_update_put(self, client: Device42Client, d42_state: MockDevice42State) -> None:
        """Test a PUT form write."""
        d42_state.add_device("db01")
        envelope = client.update(
            "/1.0/device/custom_field/", {"name": "db01", "key": "env", "value": "prod"}
        )

        assert envelope.ok
        assert d42_state.requests[-1].method == "PUT"

    def test_update_application_error(
        self, client: Device42Client, d42_state: MockDevice42State
    ) -> None:
        """Test that update surfaces non-zero codes."""
        with pytest.raises(ApiError):
            client.update("/1.0/device/custom_field/", {"name": "ghost", "key": "a", "value": "b"})

    def test_malformed_envelope(self, config: ClientConfig) -> None:
        """Test that a write response without an envelope is fatal."""
        client = Device42Client(config, session=stub_session(MockResponse(200, {"ok": True})))

        with pytest.raises(ResponseDecodeError):
            client.update("/1.0/device/custom_field/", {"name": "db01"})

    def test_delete(self, client: Device42Client, d42_state: MockDevice42State) -> None:
        """Test deleting an existing device."""
        device_id = d42_state.add_device("db01")
        envelope = client.delete(f"/1.0/devices/{device_id}/")

        assert envelope.ok
        assert device_id not in d42_state.devices

    def test_delete_missing(self, client: Device42Client) -> None:
        """Test that deleting an unknown id raises NotFoundError."""
        with pytest.raises(NotFoundError):
            client.delete("/1.0/devices/999/")
