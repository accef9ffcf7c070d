from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class WorkflowStage(Enum):
    AUTHENTICATION = "authentication"
    PROVISIONING = "provisioning"
    SUBMISSION = "submission"
    POLLING = "polling"
    JOB = "job"
    DOWNLOAD = "download"
    DELIVERY = "delivery"
    CLEANUP = "cleanup"


class JobOutcome(Enum):
    FINISHED = "Finished"
    ERROR = "Error"
    CANCELED = "Canceled"
    TIMED_OUT = "TimedOut"
    FAILED = "Failed"


class WorkflowError(RuntimeError):
    """Base class of the errors a single stage of the example can end with"""

    stage = None  # type: WorkflowStage

    def __init__(self, message, cause=None):
        # type: (str, Exception) -> None
        super(WorkflowError, self).__init__(message)
        self.cause = cause


class AuthenticationError(WorkflowError):
    stage = WorkflowStage.AUTHENTICATION


class ProvisioningError(WorkflowError):
    stage = WorkflowStage.PROVISIONING


class SubmissionError(WorkflowError):
    stage = WorkflowStage.SUBMISSION


class PollingError(WorkflowError):
    stage = WorkflowStage.POLLING


class PollingTimeoutError(PollingError):
    def __init__(self, job_name, last_state, timeout_seconds):
        super(PollingTimeoutError, self).__init__(
            "Job {} did not reach a final state within {} seconds (last state: {})"
            .format(job_name, timeout_seconds, last_state))
        self.job_name = job_name
        self.last_state = last_state


class JobFailedError(WorkflowError):
    stage = WorkflowStage.JOB

    def __init__(self, job_name, error_detail):
        super(JobFailedError, self).__init__("Job {} failed: {}".format(job_name, error_detail))
        self.job_name = job_name
        self.error_detail = error_detail


class DownloadError(WorkflowError):
    stage = WorkflowStage.DOWNLOAD

    def __init__(self, message, failed_blobs=None, cause=None):
        super(DownloadError, self).__init__(message, cause)
        self.failed_blobs = failed_blobs or {}


class DeliveryError(WorkflowError):
    stage = WorkflowStage.DELIVERY


class CleanupError(WorkflowError):
    stage = WorkflowStage.CLEANUP


@dataclass
class WorkflowResult:
    """The outcome of one run of the example"""

    outcome: JobOutcome
    job_name: Optional[str] = None
    job_state: Optional[str] = None
    output_asset_name: Optional[str] = None
    streaming_urls: List[str] = field(default_factory=list)
    downloaded_files: List[str] = field(default_factory=list)
    error: Optional[WorkflowError] = None

    @property
    def succeeded(self):
        # type: () -> bool
        return self.outcome is JobOutcome.FINISHED

    @property
    def error_stage(self):
        # type: () -> Optional[WorkflowStage]
        return self.error.stage if self.error is not None else None
