from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ExampleConfiguration:
    """
    All values the example needs, resolved once by the ConfigProvider and passed explicitly into
    every step of the workflow.
    """

    subscription_id: str
    resource_group: str
    account_name: str
    client_id: str
    client_secret: str
    tenant_id: str
    arm_aad_audience: str = "https://management.core.windows.net/"
    aad_endpoint: str = "https://login.microsoftonline.com/"
    arm_endpoint: str = "https://management.azure.com/"
    input_file: Optional[str] = None
    input_url: Optional[str] = None
    output_folder: str = "Temp"
    name_prefix: str = "prefix"
    encoding_transform_name: str = "TransformWithAdaptiveStreamingPreset"
    content_key_policy_name: str = "CommonEncryptionCencDrmContentKeyPolicy"
    streaming_endpoint_name: str = "default"
    job_timeout_seconds: float = 600
    poll_interval_seconds: float = 15
    download_concurrency: int = 4
    api_log_level: str = "WARNING"

    @property
    def credential_scope(self):
        # type: () -> str
        return "{}.default".format(self.arm_aad_audience)

    def __repr__(self):
        return "ExampleConfiguration(account_name={!r}, resource_group={!r}, input_file={!r}, input_url={!r})" \
            .format(self.account_name, self.resource_group, self.input_file, self.input_url)
