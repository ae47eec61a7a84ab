"""Device42 API mock for integration testing.

Provides an in-memory Device42 appliance that the real Device42Client
talks to through a requests.Session stand-in.

Key Features:
- In-memory devices and passwords with server-assigned ids
- Envelope responses shaped like the real appliance
- Request recording for asserting on issued writes
- Failure injection (envelope codes, HTTP statuses, transport errors)

Usage:
    from d42_mock import MockDevice42State, MockSession

    state = MockDevice42State()
    client = Device42Client(config, session=MockSession(state))
    reconciler = DeviceReconciler(client)
    ...
    assert len(state.writes("/device/")) == 1
"""

from .session import MockResponse, MockSession, mock_device42
from .state import InjectedFailure, MockDevice42State, MockReply, RecordedRequest

__all__ = [
    "InjectedFailure",
    "MockDevice42State",
    "MockReply",
    "MockResponse",
    "MockSession",
    "RecordedRequest",
    "mock_device42",
]
