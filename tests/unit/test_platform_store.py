"""
Unit tests for PlatformRecordStore using an in-process httpx transport.
"""

import json

import httpx
import pytest

from learnloop.core import TermRecord
from learnloop.sync import PlatformConfig, PlatformRecordStore, SyncError


class FakePlatform:
    """Minimal stand-in for the platform's studiable-terms API."""

    def __init__(self):
        self.records: dict[tuple[str, str], dict] = {}
        self.rounds: dict[tuple[str, str], int] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        params = request.url.params

        if path == "/api/v1/studiable-terms" and request.method == "GET":
            wanted = params["term_ids"].split(",")
            found = [
                r for (user, term), r in self.records.items()
                if user == params["user_id"] and term in wanted and r["mode"] == params["mode"]
            ]
            return httpx.Response(200, json={"records": found})

        if path == "/api/v1/studiable-terms/reset":
            body = json.loads(request.content)
            keys = [(body["user_id"], t) for t in body["term_ids"] if (body["user_id"], t) in self.records]
            for key in keys:
                del self.records[key]
            return httpx.Response(200, json={"deleted": len(keys)})

        if path.startswith("/api/v1/studiable-terms/") and request.method == "PUT":
            body = json.loads(request.content)
            self.records[(body["user_id"], body["term_id"])] = body
            return httpx.Response(204)

        if path.startswith("/api/v1/learn-rounds/"):
            set_id = path.rsplit("/", 1)[-1]
            if request.method == "GET":
                key = (params["user_id"], set_id)
                if key not in self.rounds:
                    return httpx.Response(404, json={"detail": "not found"})
                return httpx.Response(200, json={"round": self.rounds[key]})
            body = json.loads(request.content)
            self.rounds[(body["user_id"], set_id)] = body["round"]
            return httpx.Response(204)

        return httpx.Response(404)


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def store(platform):
    config = PlatformConfig(base_url="http://platform.test", api_key="secret")
    with PlatformRecordStore(config, transport=httpx.MockTransport(platform)) as store:
        yield store


def test_upsert_and_load(store, platform):
    record = TermRecord(term_id="t1", correctness=1, incorrect_count=2, appeared_in_round=1, studiable_rank=2.5)
    store.upsert("u1", record)

    assert store.load("u1", ["t1", "t2"]) == [record]
    assert platform.requests[0].headers["X-API-Key"] == "secret"


def test_load_without_terms_skips_request(store, platform):
    assert store.load("u1", []) == []
    assert platform.requests == []


def test_round_defaults_to_one_on_404(store):
    assert store.load_round("u1", "set-1") == 1

    store.save_round("u1", "set-1", 3)
    assert store.load_round("u1", "set-1") == 3

    store.reset_round("u1", "set-1")
    assert store.load_round("u1", "set-1") == 1


def test_reset(store):
    store.upsert("u1", TermRecord(term_id="t1"))
    store.upsert("u1", TermRecord(term_id="t2"))

    assert store.reset("u1", ["t1", "t2"]) == 2
    assert store.load("u1", ["t1", "t2"]) == []


def test_http_errors_raise_sync_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(500))
    store = PlatformRecordStore(PlatformConfig(base_url="http://platform.test"), transport=transport)

    with pytest.raises(SyncError):
        store.upsert("u1", TermRecord(term_id="t1"))
    store.close()


def test_connection_errors_raise_sync_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    store = PlatformRecordStore(
        PlatformConfig(base_url="http://platform.test"), transport=httpx.MockTransport(refuse)
    )

    with pytest.raises(SyncError):
        store.load("u1", ["t1"])
    store.close()
