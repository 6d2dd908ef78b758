import httpx
import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main
from backends import LocalBackend, LocalStorage, RemoteBackend
from datastore import DataStore, Session


def refuse_connection(request):
    raise httpx.ConnectError("connection refused", request=request)


def time_out(request):
    raise httpx.ReadTimeout("read timed out", request=request)


def server_error(request):
    return httpx.Response(500, json={"detail": "Database not configured: DATABASE_URL is not set"})


def remote_with(handler, calls=None):
    def record(request):
        if calls is not None:
            calls.append(request)
        return handler(request)

    client = httpx.Client(base_url="http://api.test", transport=httpx.MockTransport(record))
    return RemoteBackend(client, auth_timeout=0.5)


@pytest.fixture
def mongo(monkeypatch):
    db = mongomock.MongoClient()["lost_found_test"]
    monkeypatch.setattr(database, "db", db)
    monkeypatch.setattr(database, "config_error", None)
    return db


@pytest.fixture
def client(mongo):
    return TestClient(main.app)


@pytest.fixture
def storage():
    return LocalStorage()


@pytest.fixture
def online_store(client, storage):
    return DataStore(RemoteBackend(client), LocalBackend(storage), Session(storage))


@pytest.fixture
def offline_store(storage):
    return DataStore(remote_with(refuse_connection), LocalBackend(storage), Session(storage))


@pytest.fixture
def local_store(storage):
    return DataStore(None, LocalBackend(storage), Session(storage))


@pytest.fixture
def item_fields():
    return {
        "title": "Blue Water Bottle",
        "description": "Metal bottle with a university sticker.",
        "category": "Others",
        "location": "Main Library",
        "status": "FOUND",
        "poster_id": "u1",
        "poster_name": "Abebe",
    }
