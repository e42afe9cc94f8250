"""Tests for the opened() context manager."""

import logging

import pytest

from dmstore.core.exceptions import BackendUnavailable
from dmstore.core.sessions import DocumentSession, opened


class RecordingSession:
    """Session stub recording open/close calls; close may be told to fail."""

    def __init__(self, fail_close: bool = False):
        self.events: list[str] = []
        self.fail_close = fail_close

    @property
    def name(self) -> str:
        return "recording"

    def open(self, document):
        self.events.append(f"open:{document}")
        return document

    def close(self, handle):
        self.events.append(f"close:{handle}")
        if self.fail_close:
            raise BackendUnavailable("connection dropped")

    def query(self, handle, expression):
        return []

    def mutate(self, handle, fragment):
        return 0

    def exists(self, handle, expression):
        return False


class TestOpened:
    """Handles are released on every exit path."""

    def test_stub_satisfies_protocol(self):
        assert isinstance(RecordingSession(), DocumentSession)

    def test_closes_on_success(self):
        session = RecordingSession()
        with opened(session, "a.xml") as handle:
            assert handle == "a.xml"
        assert session.events == ["open:a.xml", "close:a.xml"]

    def test_closes_on_error_and_reraises(self):
        session = RecordingSession()
        with pytest.raises(KeyError):
            with opened(session, "a.xml"):
                raise KeyError("boom")
        assert session.events == ["open:a.xml", "close:a.xml"]

    def test_close_failure_never_masks_primary_error(self, caplog):
        session = RecordingSession(fail_close=True)
        with caplog.at_level(logging.WARNING, logger="dmstore.core.sessions.session"):
            with pytest.raises(KeyError):
                with opened(session, "a.xml"):
                    raise KeyError("boom")
        assert "Failed to close document 'a.xml' during unwind" in caplog.text

    def test_close_failure_on_success_path_propagates(self):
        session = RecordingSession(fail_close=True)
        with pytest.raises(BackendUnavailable):
            with opened(session, "a.xml"):
                pass
