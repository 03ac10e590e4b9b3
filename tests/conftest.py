from __future__ import annotations

import os
import tempfile
from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient
from PIL import Image

os.environ["MONGODB_NAME"] = "patient_records_test"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="patient-uploads-")

from app.config import settings
from app.db import db
from main import app


@pytest.fixture(autouse=True)
def mongo():
    client = AsyncMongoMockClient()
    db.client = client
    db.db = client[settings.MONGODB_NAME]
    yield db.db
    db.client = None
    db.db = None


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    path = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(path))
    return path


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


def png_bytes(color=(200, 30, 30)) -> bytes:
    img = Image.new("RGB", (16, 16), color=color)
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def patient_form(**overrides) -> dict[str, str]:
    form = {
        "name": "Jane Doe",
        "age": "42",
        "diagnosis": "Acute appendicitis",
        "operation": "Laparoscopic appendectomy",
        "details": "Uneventful recovery, discharged after two days.",
        "relatives": '["+1 555 010 2030"]',
    }
    form.update(overrides)
    return form


def assert_status(response, expected_status: int) -> None:
    if response.status_code == expected_status:
        return
    method = response.request.method if response.request else "UNKNOWN"
    path = response.request.url.path if response.request else "UNKNOWN"
    raise AssertionError(
        f"Expected {expected_status}, got {response.status_code} for {method} {path}. "
        f"Response body: {response.text}"
    )


def create_patient(client, picture: bytes | None = None, **overrides) -> dict:
    files = {"picture": ("photo.PNG", picture, "image/png")} if picture else None
    resp = client.post("/api/patients/", data=patient_form(**overrides), files=files)
    assert_status(resp, 201)
    return resp.json()["data"]
