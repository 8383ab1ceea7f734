"""
Tests for the HTTP storage client, using a fake requests session.
"""
import requests

from pkg.board.client import HttpBoardStorage
from pkg.board.schema import initial_state


class FakeResponse:

    def __init__(self, status_code=200, body=None, json_error=False):
        self.status_code = status_code
        self._body = body
        self._json_error = json_error

    def json(self):
        if self._json_error:
            raise ValueError("not json")
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Records calls; replies with a canned response or raises."""

    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse(204)
        self.error = error
        self.calls = []

    def _call(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    def get(self, url, **kwargs):
        return self._call("GET", url, **kwargs)

    def put(self, url, **kwargs):
        return self._call("PUT", url, **kwargs)

    def delete(self, url, **kwargs):
        return self._call("DELETE", url, **kwargs)


def client(**kwargs):
    session = FakeSession(**kwargs)
    return HttpBoardStorage("http://localhost:3001/", timeout=4.0, session=session), session


def test_url_and_timeout():
    storage, session = client()
    storage.load()
    method, url, kwargs = session.calls[0]
    assert (method, url) == ("GET", "http://localhost:3001/api/board")
    assert kwargs["timeout"] == 4.0


def test_relative_base_url():
    assert HttpBoardStorage(session=FakeSession()).url == "/api/board"


def test_load_204_is_empty():
    storage, _ = client(response=FakeResponse(204))
    assert storage.load() is None


def test_load_returns_blob():
    blob = {"projects": [], "cards": {}}
    storage, _ = client(response=FakeResponse(200, blob))
    assert storage.load() == blob


def test_load_failures_are_empty(caplog):
    for kwargs in (
        {"error": requests.Timeout("slow")},
        {"error": requests.ConnectionError("down")},
        {"response": FakeResponse(500)},
        {"response": FakeResponse(200, json_error=True)},
        {"response": FakeResponse(200, ["not", "an", "object"])},
    ):
        storage, _ = client(**kwargs)
        assert storage.load() is None
    assert "Failed to load board state" in caplog.text


def test_save_puts_full_state():
    storage, session = client(response=FakeResponse(204))
    state = initial_state("Saved")
    storage.save(state)
    method, url, kwargs = session.calls[0]
    assert method == "PUT"
    assert kwargs["json"] == state.to_dict()


def test_save_failure_is_swallowed(caplog):
    storage, _ = client(error=requests.ConnectionError("down"))
    storage.save(initial_state())
    assert "Failed to save board state" in caplog.text


def test_clear():
    storage, session = client(response=FakeResponse(204))
    storage.clear()
    assert session.calls[0][0] == "DELETE"
    failing, _ = client(error=requests.Timeout("slow"))
    failing.clear()


def test_has_saved_state():
    assert client(response=FakeResponse(200, {}))[0].has_saved_state() is True
    assert client(response=FakeResponse(204))[0].has_saved_state() is False
    assert client(error=requests.ConnectionError("down"))[0].has_saved_state() is False
