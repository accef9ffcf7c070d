from common.api_logger import MediaServicesApiLogger
from common.config_provider import ConfigProvider, InvalidArgumentError, MissingArgumentError
from common.example_configuration import ExampleConfiguration
from common.media_services_argument import MediaServicesArgument
from common.workflow_result import AuthenticationError, CleanupError, DeliveryError, DownloadError, \
    JobFailedError, JobOutcome, PollingError, PollingTimeoutError, ProvisioningError, SubmissionError, WorkflowError, \
    WorkflowResult, WorkflowStage
