"""
Goodflag API client.

This module wraps the Goodflag workflow API calls used by the signing proxy:
- Creating a single-signer workflow
- Uploading the document to sign
- Placing the default signature field on the uploaded document
- Starting, fetching and downloading a workflow

The client holds no job state. Every non-2xx response and every transport
failure is raised as ``ProviderError``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

import requests
from pydantic.alias_generators import to_camel

from .errors import ProviderError
from .models import Settings, SignedDocument, SignerInfo, UploadResult, Workflow
from .utils import parse_content_disposition

logger = logging.getLogger(__name__)

# Recipient fields forwarded to Goodflag when they carry a value
OPTIONAL_RECIPIENT_FIELDS = [
    "first_name",
    "last_name",
    "phone_number",
    "preferred_locale",
    "comments",
    "consent_page_id",
    "organization_id",
    "country",
    "user_id",
]


class SigningProvider(Protocol):
    """The provider calls the orchestration layer depends on."""

    def create_workflow(self, name: str, signer: SignerInfo) -> Workflow: ...

    def upload_document(
        self,
        workflow_id: str,
        content: bytes,
        file_name: str,
        content_type: str = "application/pdf",
    ) -> UploadResult: ...

    def place_default_signature_field(self, document_id: str) -> None: ...

    def start_workflow(self, workflow_id: str) -> Workflow: ...

    def fetch_workflow(self, workflow_id: str) -> Workflow: ...

    def download_signed_document(self, workflow_id: str) -> SignedDocument: ...


def sanitize_recipient(signer: SignerInfo) -> Dict[str, str]:
    """
    Build the Goodflag recipient payload, dropping empty optional fields.

    Example:
        >>> sanitize_recipient(SignerInfo(email="a@b.c", first_name="", country="FR"))
        {"email": "a@b.c", "country": "FR"}
    """
    payload = {"email": signer.email}
    for field_name in OPTIONAL_RECIPIENT_FIELDS:
        value = getattr(signer, field_name)
        if value:
            payload[to_camel(field_name)] = value
    return payload


class GoodflagClient:
    """
    Blocking client for the Goodflag REST API.

    Args:
        settings: Application settings (base URL, credentials, defaults)
        session: Optional ``requests.Session``; one is created if omitted
    """

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {settings.goodflag_api_key}"})
        self.timeout = settings.provider_timeout_seconds

    def _url(self, path: str) -> str:
        return f"{self.settings.goodflag_base_url.rstrip('/')}/{path.lstrip('/')}"

    def _request(self, action: str, method: str, path: str, **kwargs: Any) -> requests.Response:
        try:
            response = self.session.request(method, self._url(path), timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise ProviderError(f"Goodflag {action} failed: {exc}") from exc

        if not response.ok:
            body = response.text or "Unable to read error response"
            raise ProviderError(
                f"Goodflag {action} failed ({response.status_code}): {body}",
                upstream_status=response.status_code,
                body=body,
            )
        return response

    def _workflow(self, action: str, response: requests.Response) -> Workflow:
        try:
            return Workflow.model_validate(response.json())
        except ValueError as exc:
            raise ProviderError(f"Goodflag {action} returned an unreadable workflow: {exc}") from exc

    def create_workflow(self, name: str, signer: SignerInfo) -> Workflow:
        recipient = sanitize_recipient(signer)
        recipient.setdefault("preferredLocale", self.settings.default_locale)
        if self.settings.goodflag_consent_page_id:
            recipient.setdefault("consentPageId", self.settings.goodflag_consent_page_id)

        body = {
            "name": name,
            "steps": [
                {
                    "stepType": "signature",
                    "recipients": [recipient],
                    "maxInvites": 1,
                }
            ],
        }
        logger.debug(f"createWorkflow payload: {body}")
        response = self._request(
            "workflow creation",
            "POST",
            f"/users/{self.settings.goodflag_user_id}/workflows",
            json=body,
        )
        return self._workflow("workflow creation", response)

    def upload_document(
        self,
        workflow_id: str,
        content: bytes,
        file_name: str,
        content_type: str = "application/pdf",
    ) -> UploadResult:
        response = self._request(
            "document upload",
            "POST",
            f"/workflows/{workflow_id}/parts",
            params={
                "createDocuments": "true",
                "signatureProfileId": self.settings.goodflag_signature_profile_id,
            },
            files={"document": (file_name or "document.pdf", content, content_type)},
        )

        # The document id is optional; an unreadable body still means the upload worked
        try:
            payload = response.json()
        except ValueError:
            return UploadResult()
        if not isinstance(payload, dict):
            return UploadResult()
        documents = payload.get("documents") or []
        document_id = None
        if documents and isinstance(documents[0], dict):
            document_id = documents[0].get("id")
        document_id = document_id or payload.get("id")
        return UploadResult(document_id=str(document_id) if document_id else None)

    def place_default_signature_field(self, document_id: str) -> None:
        field = self.settings.signature_field
        self._request(
            "signature field placement",
            "PATCH",
            f"/documents/{document_id}",
            json={
                "signatureProfileId": self.settings.goodflag_signature_profile_id,
                "pdfSignatureFields": [
                    {
                        "imagePage": field.page,
                        "imageX": field.x,
                        "imageY": field.y,
                        "imageWidth": field.width,
                        "imageHeight": field.height,
                    }
                ],
            },
        )

    def start_workflow(self, workflow_id: str) -> Workflow:
        response = self._request(
            "workflow start",
            "PATCH",
            f"/workflows/{workflow_id}",
            json={"workflowStatus": "started"},
        )
        return self._workflow("workflow start", response)

    def fetch_workflow(self, workflow_id: str) -> Workflow:
        response = self._request("workflow fetch", "GET", f"/workflows/{workflow_id}")
        return self._workflow("workflow fetch", response)

    def download_signed_document(self, workflow_id: str) -> SignedDocument:
        response = self._request(
            "signed document download",
            "GET",
            f"/workflows/{workflow_id}/downloadDocuments",
        )
        return SignedDocument(
            content=response.content,
            content_type=response.headers.get("content-type") or "application/pdf",
            file_name=parse_content_disposition(response.headers.get("content-disposition")),
        )
