"""Device42 REST API client facade.

Wraps outbound HTTP calls against the configured appliance: form-encoded
writes, JSON reads, basic auth, and optional TLS verification bypass.

Error taxonomy:
- TransportError: the HTTP exchange itself failed (network, TLS, timeout,
  unexpected HTTP status)
- NotFoundError: the appliance answered 404 for a read
- ApiError: the HTTP call succeeded but the envelope carried a non-zero code
- ResponseDecodeError: the envelope or body did not have the expected shape

All of them derive from Device42Error and carry the operation and path.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

from .config import ClientConfig
from .decoders import decode_envelope
from .models import ApiEnvelope

logger = logging.getLogger(__name__)

# Position of the newly assigned identifier in a create response's msg array
ASSIGNED_ID_INDEX = 1


class Device42Error(Exception):
    """Base class for all Device42 API failures."""

    def __init__(self, message: str, *, operation: str = "", path: str = "") -> None:
        super().__init__(message)
        self.operation = operation
        self.path = path


class TransportError(Device42Error):
    """Raised when the HTTP exchange fails."""

    pass


class NotFoundError(Device42Error):
    """Raised when a read targets a resource the appliance does not know."""

    pass


class ApiError(Device42Error):
    """Raised when the response envelope reports an application failure."""

    def __init__(
        self,
        message: str,
        *,
        operation: str = "",
        path: str = "",
        code: int = 0,
        msg: list[Any] | None = None,
    ) -> None:
        super().__init__(message, operation=operation, path=path)
        self.code = code
        self.msg = msg or []


class ResponseDecodeError(Device42Error):
    """Raised when a response cannot be decoded into the expected shape."""

    pass


class Device42Client:
    """Synchronous Device42 API client.

    The client holds no per-resource state and performs no caching; one
    instance can serve every reconciler call of a run.
    """

    def __init__(self, config: ClientConfig, session: requests.Session | None = None) -> None:
        self._config = config
        # a session passed in belongs to the caller and is never closed here
        self._owns_session = session is None
        self._session = session or requests.Session()
        self._session.auth = config.auth
        self._session.verify = not config.tls_insecure
        self._session.headers.update({"Accept": "application/json"})

    @property
    def config(self) -> ClientConfig:
        return self._config

    def close(self) -> None:
        """Release pooled connections of the session this client created."""
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> Device42Client:
        """Context manager support."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager cleanup."""
        self.close()

    def create(self, path: str, form: dict[str, str]) -> int:
        """POST a form and return the identifier the appliance assigned.

        Raises:
            TransportError: The request failed.
            ApiError: The envelope code was non-zero.
            ResponseDecodeError: The envelope or assigned id is malformed.
        """
        envelope = self._write("create", "POST", path, form)
        try:
            raw_id = envelope.msg[ASSIGNED_ID_INDEX]
        except IndexError as e:
            raise ResponseDecodeError(
                f"create response for {path} has no assigned id at msg[{ASSIGNED_ID_INDEX}]: "
                f"{envelope.msg!r}",
                operation="create",
                path=path,
            ) from e
        return _coerce_id(raw_id, path)

    def read(self, path: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        """GET a JSON object.

        Transport failures are retried up to ``max_retries`` times.

        Raises:
            TransportError: The request failed after all attempts.
            NotFoundError: The appliance answered 404.
            ResponseDecodeError: The body is not a JSON object.
        """
        attempt = 0
        while True:
            try:
                response = self._send("read", "GET", path, params=params)
                break
            except TransportError as e:
                if attempt >= self._config.max_retries:
                    raise
                delay = self._config.retry_backoff_seconds * (2**attempt)
                attempt += 1
                logger.warning(
                    "Read failed, retrying",
                    extra={"path": path, "attempt": attempt, "delay": delay, "error": str(e)},
                )
                time.sleep(delay)

        if response.status_code == 404:
            raise NotFoundError(f"{path} not found", operation="read", path=path)

        body = _json_body(response, "read", path)
        if not isinstance(body, dict):
            raise ResponseDecodeError(
                f"expected a JSON object from {path}, got {type(body).__name__}",
                operation="read",
                path=path,
            )
        return body

    def update(self, path: str, form: dict[str, str], method: str = "PUT") -> ApiEnvelope:
        """Send a form-encoded write and validate its envelope."""
        return self._write("update", method, path, form)

    def delete(self, path: str) -> ApiEnvelope:
        """DELETE a resource and validate the envelope."""
        return self._write("delete", "DELETE", path, None)

    def _write(
        self,
        operation: str,
        method: str,
        path: str,
        form: dict[str, str] | None,
    ) -> ApiEnvelope:
        response = self._send(operation, method, path, data=form)
        if response.status_code == 404 and operation == "delete":
            raise NotFoundError(f"{path} not found", operation=operation, path=path)

        try:
            envelope = decode_envelope(_json_body(response, operation, path))
        except ValueError as e:
            raise ResponseDecodeError(
                f"malformed envelope from {method} {path}: {e}",
                operation=operation,
                path=path,
            ) from e

        logger.debug(
            "Envelope received",
            extra={"operation": operation, "path": path, "code": envelope.code},
        )

        if not envelope.ok:
            raise ApiError(
                f"{operation} {path}: API returned code {envelope.code}: {envelope.msg!r}",
                operation=operation,
                path=path,
                code=envelope.code,
                msg=envelope.msg,
            )
        return envelope

    def _send(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        data: dict[str, str] | None = None,
    ) -> requests.Response:
        url = f"{self._config.base_url}{path}"
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                data=data,
                timeout=self._config.timeout_seconds,
            )
        except requests.RequestException as e:
            raise TransportError(
                f"{method} {path} failed: {e}", operation=operation, path=path
            ) from e

        logger.debug(
            "Request completed",
            extra={"method": method, "path": path, "status": response.status_code},
        )

        # 404 is meaningful to callers, every other error status is transport
        if response.status_code >= 400 and response.status_code != 404:
            raise TransportError(
                f"{method} {path} returned HTTP {response.status_code}",
                operation=operation,
                path=path,
            )
        return response


def _json_body(response: requests.Response, operation: str, path: str) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise ResponseDecodeError(
            f"response from {path} is not valid JSON", operation=operation, path=path
        ) from e


def _coerce_id(raw_id: Any, path: str) -> int:
    # JSON numbers arrive as floats or ints, some appliances quote them
    if isinstance(raw_id, bool):
        raw_id = None
    if isinstance(raw_id, float) and raw_id.is_integer():
        return int(raw_id)
    if isinstance(raw_id, int):
        return raw_id
    if isinstance(raw_id, str) and raw_id.isdigit():
        return int(raw_id)
    raise ResponseDecodeError(
        f"create response for {path} has a non-numeric id: {raw_id!r}",
        operation="create",
        path=path,
    )
