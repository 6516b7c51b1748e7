from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class JobStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    ERROR = "error"


class SignatureFieldSettings(BaseModel):
    page: int = -1
    x: int = 390
    y: int = 710
    width: int = 150
    height: int = 80


class Settings(BaseModel):
    goodflag_base_url: str
    goodflag_api_key: str
    goodflag_user_id: str
    goodflag_signature_profile_id: str
    goodflag_consent_page_id: Optional[str] = None
    default_locale: str = "en"
    signature_field: SignatureFieldSettings = Field(default_factory=SignatureFieldSettings)
    port: int = 8000
    frontend_origin: str = "*"
    job_ttl_seconds: float = 3600
    provider_timeout_seconds: float = 30
    refresh_failure_limit: int = 20
    log_level: str = "INFO"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SignerInfo(_CamelModel):
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    preferred_locale: Optional[str] = None
    comments: Optional[str] = None
    consent_page_id: Optional[str] = None
    organization_id: Optional[str] = None
    country: Optional[str] = None
    user_id: Optional[str] = None


class Workflow(_CamelModel):
    id: str
    workflow_status: Optional[str] = None
    name: Optional[str] = None
    created: Optional[int] = None
    updated: Optional[int] = None


class UploadResult(BaseModel):
    document_id: Optional[str] = None


class SignedDocument(BaseModel):
    content: bytes
    content_type: str = "application/pdf"
    file_name: Optional[str] = None


class SignJobCreated(_CamelModel):
    job_id: str
    status: JobStatus
    workflow_id: str
    workflow_status: str
    file_name: str


class SignJobStatus(_CamelModel):
    job_id: str
    status: JobStatus
    updated_at: int  # epoch milliseconds
    file_name: str
    signed_file_name: Optional[str] = None
    workflow_id: Optional[str] = None
    workflow_status: Optional[str] = None
    error: Optional[str] = None
    download_url: Optional[str] = None
