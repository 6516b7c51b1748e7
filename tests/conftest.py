"""
Pytest configuration and fixtures for Goodflag Signing Proxy tests.
"""

import os
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing the app
os.environ["GOODFLAG_BASE_URL"] = "https://goodflag.test/api"
os.environ["GOODFLAG_API_KEY"] = "test-api-key"
os.environ["GOODFLAG_USER_ID"] = "usr_test"
os.environ["GOODFLAG_SIGNATURE_PROFILE_ID"] = "sip_test"
os.environ["JOB_TTL_SECONDS"] = "3600"

from goodflag_proxy.errors import ProviderError
from goodflag_proxy.job_store import SigningJobStore
from goodflag_proxy.main import app, get_signing_service
from goodflag_proxy.models import SignedDocument, UploadResult, Workflow
from goodflag_proxy.signing_service import SigningService


class ManualClock:
    """Clock that only moves when a test advances it."""

    def __init__(self):
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


class FakeProvider:
    """In-memory SigningProvider recording every call."""

    def __init__(self):
        self.calls = []
        self.failures = {}
        self.workflow_id = "wfl_test"
        self.created_status = "draft"
        self.started_status = "started"
        self.remote_status = "started"
        self.document_id = "doc_test"
        self.signed = SignedDocument(content=b"%PDF-1.4 signed", content_type="application/pdf")

    def _call(self, name, *args):
        self.calls.append((name, args))
        if name in self.failures:
            raise self.failures[name]

    def called(self, name):
        return [args for call_name, args in self.calls if call_name == name]

    def fail(self, name, message="boom", status=500):
        self.failures[name] = ProviderError(message, upstream_status=status, body=message)

    def create_workflow(self, name, signer):
        self._call("create_workflow", name, signer)
        return Workflow(id=self.workflow_id, workflow_status=self.created_status)

    def upload_document(self, workflow_id, content, file_name, content_type="application/pdf"):
        self._call("upload_document", workflow_id, content, file_name, content_type)
        return UploadResult(document_id=self.document_id)

    def place_default_signature_field(self, document_id):
        self._call("place_default_signature_field", document_id)

    def start_workflow(self, workflow_id):
        self._call("start_workflow", workflow_id)
        return Workflow(id=workflow_id, workflow_status=self.started_status)

    def fetch_workflow(self, workflow_id):
        self._call("fetch_workflow", workflow_id)
        return Workflow(id=workflow_id, workflow_status=self.remote_status)

    def download_signed_document(self, workflow_id):
        self._call("download_signed_document", workflow_id)
        return self.signed


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def store(clock):
    return SigningJobStore(ttl_seconds=3600, clock=clock)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def service(store, provider):
    return SigningService(store, provider, refresh_failure_limit=3)


@pytest.fixture
def client(service):
    """Create a test client whose routes use the fake provider."""
    app.dependency_overrides[get_signing_service] = lambda: service
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def sample_pdf():
    """Minimal PDF bytes for upload tests."""
    return b"""%PDF-1.4
1 0 obj
<< /Type /Catalog /Pages 2 0 R >>
endobj
2 0 obj
<< /Type /Pages /Kids [] /Count 0 >>
endobj
trailer
<< /Size 3 /Root 1 0 R >>
%%EOF"""
