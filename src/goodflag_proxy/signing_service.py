"""
Signing job orchestration.

This module drives a signing job through its lifecycle:
- Upload sequence: create workflow, upload document, place the default
  signature field, start the workflow
- Status reconciliation against the remote workflow on each client poll
- Lookup of the signed document for download

The SigningService class holds no job state of its own; everything lives
in the SigningJobStore. Provider calls are made without holding the
store's lock.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from .errors import ConflictError, InternalError, NotFoundError, ProviderError
from .job_store import SigningJob, SigningJobStore
from .models import JobStatus, SignerInfo, SignJobCreated, SignJobStatus
from .provider import SigningProvider

logger = logging.getLogger(__name__)

FINISHED_STATUS = "finished"
FAILED_STATUSES = frozenset({"stopped", "refused", "canceled", "failed"})
DEFAULT_WORKFLOW_NAME = "Document signature workflow"


def download_url(job_id: str) -> str:
    return f"/api/sign/{job_id}/file"


def to_status(job: SigningJob) -> SignJobStatus:
    return SignJobStatus(
        job_id=job.id,
        status=job.status,
        updated_at=int(job.updated_at.timestamp() * 1000),
        file_name=job.file_name,
        signed_file_name=job.signed_file_name,
        workflow_id=job.workflow_id,
        workflow_status=job.workflow_status,
        error=job.error_message,
        download_url=download_url(job.id) if job.status == JobStatus.COMPLETED else None,
    )


class SigningService:
    """
    Coordinates the job store and the signing provider.

    Args:
        store: Registry that owns every job record
        provider: Goodflag client (or any SigningProvider)
        refresh_failure_limit: Consecutive failed reconciliations after
            which a pending job is failed; 0 keeps retrying forever
    """

    def __init__(
        self,
        store: SigningJobStore,
        provider: SigningProvider,
        refresh_failure_limit: int = 0,
    ) -> None:
        self.store = store
        self.provider = provider
        self.refresh_failure_limit = refresh_failure_limit

    def start_signing(
        self,
        content: bytes,
        file_name: str,
        file_type: str,
        signer: SignerInfo,
        workflow_name: Optional[str] = None,
    ) -> SignJobCreated:
        """
        Create a job and run the remote upload sequence for it.

        Raises:
            ProviderError: If creating, uploading to or starting the workflow
                fails. The job is marked failed with the provider's message
                and the remote workflow is left as it is.
            InternalError: If anything else goes wrong during the sequence.
                The job is marked failed with the error text as well.
        """
        job = self.store.create_job(file_name, file_type)
        name = workflow_name or file_name or DEFAULT_WORKFLOW_NAME

        try:
            workflow = self.provider.create_workflow(name, signer)
            self.store.set_workflow(job.id, workflow.id, workflow.workflow_status)
            logger.info(f"Job {job.id} bound to Goodflag workflow {workflow.id}")

            upload = self.provider.upload_document(workflow.id, content, file_name, file_type)
            if upload.document_id:
                self._place_signature_field(upload.document_id)

            started = self.provider.start_workflow(workflow.id)
            if started.workflow_status:
                self.store.set_workflow_status(job.id, started.workflow_status)
        except ProviderError as exc:
            logger.error(f"Failed to initialize Goodflag workflow for job {job.id}: {exc}")
            self.store.fail_job(job.id, exc.message)
            raise
        except Exception as exc:
            logger.exception(f"Unexpected error while initializing job {job.id}")
            self.store.fail_job(job.id, str(exc) or exc.__class__.__name__)
            raise InternalError(str(exc)) from exc

        return SignJobCreated(
            job_id=job.id,
            status=job.status,
            workflow_id=workflow.id,
            workflow_status=started.workflow_status or workflow.workflow_status or "started",
            file_name=job.file_name,
        )

    def _place_signature_field(self, document_id: str) -> bool:
        """
        Optional step: put the default signature field on the document.

        A failure is logged and otherwise ignored; the workflow goes on
        without a pre-placed field.
        """
        try:
            self.provider.place_default_signature_field(document_id)
        except ProviderError as exc:
            logger.warning(f"Unable to place default signature field on document {document_id}: {exc}")
            return False
        return True

    def refresh_status(self, job_id: str) -> SignJobStatus:
        """
        Return the job status, reconciling it with Goodflag first when the
        job is still pending and bound to a workflow.

        Provider errors during reconciliation never fail the poll; the last
        known local state is returned instead.

        Raises:
            NotFoundError: If the job id is unknown
        """
        job = self.store.get_job(job_id)
        if job is None:
            raise NotFoundError()

        if job.is_pending and job.workflow_id:
            try:
                self._reconcile(job)
            except ProviderError as exc:
                logger.error(f"Failed to refresh Goodflag workflow {job.workflow_id}: {exc}")
                self._count_refresh_failure(job_id, exc)
            job = self.store.get_job(job_id) or job

        return to_status(job)

    def _reconcile(self, job: SigningJob) -> None:
        workflow = self.provider.fetch_workflow(job.workflow_id)
        if workflow.workflow_status:
            self.store.set_workflow_status(job.id, workflow.workflow_status)

        normalized = (workflow.workflow_status or "").lower()
        if normalized == FINISHED_STATUS:
            signed = self.provider.download_signed_document(job.workflow_id)
            self.store.complete_job(
                job.id,
                signed.content,
                file_name=signed.file_name,
                content_type=signed.content_type,
            )
        elif normalized in FAILED_STATUSES:
            self.store.fail_job(job.id, f"Workflow {workflow.workflow_status}")

        # Only a fully successful pass clears the streak, download included
        self.store.reset_refresh_failures(job.id)

    def _count_refresh_failure(self, job_id: str, exc: ProviderError) -> None:
        failures = self.store.record_refresh_failure(job_id)
        if self.refresh_failure_limit and failures >= self.refresh_failure_limit:
            self.store.fail_job(
                job_id,
                f"Workflow status unavailable after {failures} attempts: {exc.message}",
            )

    def get_signed_document(self, job_id: str) -> Tuple[bytes, str, str]:
        """
        Get the signed document of a completed job.

        Returns:
            Tuple of (content, file name, content type)

        Raises:
            NotFoundError: If the job id is unknown
            ConflictError: If the job has not completed
        """
        job = self.store.get_job(job_id)
        if job is None:
            raise NotFoundError()
        if job.status != JobStatus.COMPLETED or job.signed_document is None:
            raise ConflictError()
        return (
            job.signed_document,
            job.signed_file_name or job.file_name,
            job.signed_content_type or job.file_type or "application/pdf",
        )
