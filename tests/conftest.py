import json
import socket
import threading
import time

import cloudinary.uploader
import mongomock
import pytest
import uvicorn
from fastapi.testclient import TestClient

import config
import database
from main import app
from notifications import OrderEventHub

ITEMS = [{"productId": "65f000000000000000000001", "name": "Rice", "price": 90, "quantity": 2}]
ADDRESS = {"name": "A", "phone": "123", "line1": "X", "city": "Y", "pincode": "1"}


class RecordingSubscriber:
    def __init__(self):
        self.frames = []

    def deliver(self, frame):
        self.frames.append(frame)

    def events(self):
        return [json.loads(f[len("data: "):]) for f in self.frames]


class FailingSubscriber:
    def deliver(self, frame):
        raise RuntimeError("connection reset")


@pytest.fixture
def mongo(monkeypatch):
    db = mongomock.MongoClient()["grocery_test"]
    monkeypatch.setattr(database, "db", db)
    return db


@pytest.fixture
def hub():
    return OrderEventHub()


@pytest.fixture
def uploads(monkeypatch, tmp_path):
    calls = []

    def fake_upload(path, **options):
        calls.append({"path": path, **options})
        return {"secure_url": "https://res.cloudinary.com/demo/image/upload/grocery/products/rice.png"}

    monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path))
    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)
    return calls


@pytest.fixture
def client(mongo, hub):
    app.state.order_events = hub
    with TestClient(app) as c:
        yield c


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def login(client, email, password):
    res = client.post("/api/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.text
    return res.json()["token"]


@pytest.fixture
def admin_headers(client):
    return bearer(login(client, config.ADMIN_EMAIL, config.ADMIN_PASSWORD))


def register(client, email="jane@example.com", password="secret1", name="Jane", phone="555"):
    return client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password, "phone": phone},
    )


@pytest.fixture
def user_headers(client):
    res = register(client)
    assert res.status_code == 201, res.text
    return bearer(res.json()["token"])


def wait_for(condition, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not condition():
        if time.monotonic() > deadline:
            return False
        time.sleep(0.02)
    return True


@pytest.fixture
def live_server(mongo, hub):
    """Serve the app with uvicorn in a thread, for endpoints that stream."""
    app.state.order_events = hub
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    server = uvicorn.Server(uvicorn.Config(app, host="127.0.0.1", port=port, log_level="warning"))
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()
    assert wait_for(lambda: server.started), "server did not start"
    yield f"http://127.0.0.1:{port}"
    server.should_exit = True
    thread.join(timeout=5)
