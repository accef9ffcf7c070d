import concurrent.futures
import os
import random
import time
import uuid

from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from os import path
from urllib.parse import urlparse

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.identity import ClientSecretCredential
from azure.mgmt.media import AzureMediaServices
from azure.mgmt.media.models import Asset, AssetContainerPermission, BuiltInStandardEncoderPreset, \
    ContentKeyPolicy, ContentKeyPolicyOpenRestriction, ContentKeyPolicyOption, \
    ContentKeyPolicyPlayReadyConfiguration, ContentKeyPolicyPlayReadyContentEncryptionKeyFromHeader, \
    ContentKeyPolicyPlayReadyLicense, ContentKeyPolicyPlayReadyPlayRight, ContentKeyPolicyWidevineConfiguration, \
    Job, JobInputAsset, JobInputHttp, JobOutputAsset, ListContainerSasInput, StreamingLocator, Transform, \
    TransformOutput
from azure.storage.blob import BlobServiceClient

from common import AuthenticationError, CleanupError, ConfigProvider, DeliveryError, DownloadError, \
    ExampleConfiguration, JobFailedError, JobOutcome, MediaServicesApiLogger, PollingError, PollingTimeoutError, \
    ProvisioningError, SubmissionError, WorkflowError, WorkflowResult

"""
This example shows how a file is encoded with Azure Media Services and published for streaming with
multi-DRM (MPEG-CENC with Widevine and PlayReady) content protection.

<p>The file is either uploaded from the local disk into a new input asset or passed to the job as an
HTTP(S) URL. After the job has finished, the encoded files are downloaded, a streaming locator bound
to a content key policy is created and the resulting streaming URLs are printed.

<p>The following configuration parameters are expected:

<ul>
  <li>AZURE_SUBSCRIPTION_ID - The ID of the Azure subscription holding the Media Services account
  <li>AZURE_RESOURCE_GROUP - The resource group of the Media Services account
  <li>AZURE_MEDIA_SERVICES_ACCOUNT_NAME - The name of the Media Services account
  <li>AZURE_CLIENT_ID - The application (client) ID of the service principal
  <li>AZURE_CLIENT_SECRET - The client secret of the service principal
  <li>AZURE_TENANT_ID - The Azure AD tenant of the service principal
  <li>INPUT_FILE - A local file to upload and encode. Example: c:\\temp\\input.mp4
  <li>INPUT_URL - Alternatively, an HTTP(S) URL of the file to encode. Example:
      https://amssamples.streaming.mediaservices.windows.net/2e91931e-0d29-482b-a42b-9aadc93eb825/AzurePromo.mp4
</ul>

<p>Exactly one of INPUT_FILE and INPUT_URL has to be set. Further optional parameters are listed in
examples.properties.template.

<p>Configuration parameters will be retrieved from these sources in the listed order:

<ol>
  <li>command line arguments (eg --AZURE_CLIENT_ID=xyz)
  <li>properties file located in the root folder of the Python examples at ./examples.properties
      (see examples.properties.template as reference)
  <li>environment variables
  <li>properties file located in the home folder at ~/.azure-media-services/examples.properties (see
      examples.properties.template as reference)
</ol>
"""

ADAPTIVE_STREAMING_PRESET = "AdaptiveStreaming"
MULTI_DRM_STREAMING_POLICY = "Predefined_MultiDrmCencStreaming"
TERMINAL_JOB_STATES = ("Finished", "Error", "Canceled")
SAS_VALIDITY = timedelta(hours=1)
BLOCK_BLOB = "BlockBlob"


def main():
    config_provider = ConfigProvider()
    config = config_provider.build_configuration()

    result = run_example(config=config)

    if result.outcome is JobOutcome.FAILED:
        print("Example aborted during {}: {}".format(result.error_stage.value, result.error))

    print("done with sample")


def run_example(config, authenticate=None, create_client=None):
    # type: (ExampleConfiguration, callable, callable) -> WorkflowResult
    """
    Runs the whole example once: ensures the transform, submits the job, waits for it and, if it
    finished, downloads the results and publishes the output asset with DRM protection.

    Failures of a single step end the run. Resources created up to that point are left in place.

    :param config: The configuration of this run
    :param authenticate: Returns a credential for the configuration, defaults to a service principal login
    :param create_client: Returns the Media Services client for a configuration and credential
    """

    authenticate = authenticate or _authenticate
    create_client = create_client or _create_media_services_client

    try:
        credential = authenticate(config)
    except AuthenticationError as ex:
        print("Authentication failed: {}".format(ex))
        return WorkflowResult(outcome=JobOutcome.FAILED, error=ex)

    try:
        media_services_client = create_client(config, credential)
    except (AzureError, ValueError) as ex:
        error = ProvisioningError("Creating the Media Services client failed: {}".format(ex), cause=ex)
        print(error)
        return WorkflowResult(outcome=JobOutcome.FAILED, error=error)

    uniqueness = str(uuid.uuid4())
    output_asset_name = "{}-output-{}".format(config.name_prefix, uniqueness)
    job_name = "{}-job-{}".format(config.name_prefix, uniqueness)
    locator_name = "locator-{}".format(uniqueness)

    result = WorkflowResult(outcome=JobOutcome.FAILED, job_name=job_name, output_asset_name=output_asset_name)

    try:
        with _stage(ProvisioningError, "Ensuring the encoding transform"):
            print("creating encoding transform...")
            adaptive_streaming_preset = BuiltInStandardEncoderPreset(preset_name=ADAPTIVE_STREAMING_PRESET)
            _ensure_transform_exists(media_services_client, config, config.encoding_transform_name,
                                     adaptive_streaming_preset)

        with _stage(ProvisioningError, "Resolving the job input"):
            print("getting job input from arguments...")
            job_input = _get_job_input(media_services_client, config, uniqueness)

        with _stage(ProvisioningError, "Creating the output asset"):
            print("creating output asset...")
            output_asset = _create_output_asset(media_services_client, config, output_asset_name)

        with _stage(SubmissionError, "Submitting the job"):
            print("submitting job...")
            _submit_job(media_services_client, config, job_name, job_input, output_asset.name)

        with _stage(PollingError, "Waiting for the job"):
            print("waiting for job to finish...")
            job = _wait_for_job_to_finish(media_services_client, config, job_name)

        result.job_state = _state_name(job.state)

        if result.job_state == "Finished":
            with _stage(DownloadError, "Downloading the results"):
                result.downloaded_files = _download_results(media_services_client, config, output_asset.name,
                                                            config.output_folder)

            with _stage(DeliveryError, "Publishing the output asset"):
                _ensure_content_key_policy_exists(media_services_client, config, config.content_key_policy_name)
                locator = _create_streaming_locator(media_services_client, config, output_asset.name,
                                                    locator_name, config.content_key_policy_name)
                result.streaming_urls = _get_streaming_urls(media_services_client, config, locator.name)

            with _stage(CleanupError, "Deleting the job and input asset"):
                print("deleting jobs ...")
                media_services_client.jobs.delete(config.resource_group, config.account_name,
                                                  config.encoding_transform_name, job_name)

                # the output asset is kept so it can still be streamed
                if isinstance(job_input, JobInputAsset):
                    media_services_client.assets.delete(config.resource_group, config.account_name,
                                                        job_input.asset_name)

            result.outcome = JobOutcome.FINISHED
        elif result.job_state == "Error":
            error_detail = job.outputs[0].error if job.outputs else None
            print("{} failed. Error details:".format(job.name))
            print(error_detail)
            result.outcome = JobOutcome.ERROR
            result.error = JobFailedError(job_name, error_detail)
        elif result.job_state == "Canceled":
            print("{} was unexpectedly canceled.".format(job.name))
            result.outcome = JobOutcome.CANCELED
        else:
            print("{} is still in progress.  Current state is {}.".format(job.name, result.job_state))
            result.outcome = JobOutcome.TIMED_OUT
            result.error = PollingTimeoutError(job_name, result.job_state, config.job_timeout_seconds)
    except WorkflowError as ex:
        print(ex)
        result.outcome = JobOutcome.FAILED
        result.error = ex

    return result


@contextmanager
def _stage(error_type, action):
    """
    Turns failures of the Azure SDK or the local file system inside the block into the error type
    of the current step of the example.
    """
    try:
        yield
    except WorkflowError:
        raise
    except (AzureError, OSError) as ex:
        raise error_type("{} failed: {}".format(action, ex), cause=ex) from ex


def _authenticate(config):
    # type: (ExampleConfiguration) -> ClientSecretCredential
    """
    Logs in with the service principal and requests a token for the management API right away, so
    wrong credentials end the example before any resource is touched.

    :param config: The configuration holding the service principal and endpoints
    """

    try:
        credential = ClientSecretCredential(tenant_id=config.tenant_id,
                                            client_id=config.client_id,
                                            client_secret=config.client_secret,
                                            authority=config.aad_endpoint)
        credential.get_token(config.credential_scope)
    except (AzureError, ValueError) as ex:
        raise AuthenticationError("Could not authenticate client {}: {}".format(config.client_id, ex),
                                  cause=ex) from ex

    return credential


def _create_media_services_client(config, credential):
    # type: (ExampleConfiguration, ClientSecretCredential) -> AzureMediaServices
    api_logger = MediaServicesApiLogger(level=config.api_log_level)

    return AzureMediaServices(credential=credential,
                              subscription_id=config.subscription_id,
                              base_url=config.arm_endpoint,
                              credential_scopes=[config.credential_scope],
                              **api_logger.client_kwargs())


def _ensure_resource_exists(get, create_or_update):
    """
    Fetches a resource and creates it only if it does not exist yet. An existing resource is
    returned as it is, even if it differs from what create_or_update would write.

    :param get: Fetches the resource, raising ResourceNotFoundError or returning None if it is absent
    :param create_or_update: Creates the resource and returns it
    """

    try:
        resource = get()
    except ResourceNotFoundError:
        resource = None

    if resource is None:
        resource = create_or_update()

    return resource


def _ensure_transform_exists(media_services_client, config, transform_name, preset):
    # type: (AzureMediaServices, ExampleConfiguration, str, BuiltInStandardEncoderPreset) -> Transform
    """
    Makes sure the encoding transform exists. This is really a one time setup operation: the
    transform is created on the first run and reused by every later job.

    <p>API endpoints:
    https://docs.microsoft.com/rest/api/media/transforms/get
    https://docs.microsoft.com/rest/api/media/transforms/create-or-update

    :param transform_name: The name of the transform
    :param preset: The preset the transform applies to its input
    """

    def create_transform():
        transform = Transform(outputs=[TransformOutput(preset=preset)])
        return media_services_client.transforms.create_or_update(config.resource_group, config.account_name,
                                                                 transform_name, transform)

    return _ensure_resource_exists(
        get=lambda: media_services_client.transforms.get(config.resource_group, config.account_name,
                                                         transform_name),
        create_or_update=create_transform
    )


def _get_job_input(media_services_client, config, uniqueness):
    """
    Builds the input of the job. A local INPUT_FILE is uploaded into a new input asset, an INPUT_URL
    is handed to the job as it is.

    :param uniqueness: The token making the input asset name unique
    """

    if config.input_file:
        asset_name = "{}-input-{}".format(config.name_prefix, uniqueness)
        _create_input_asset(media_services_client, config, asset_name, config.input_file)
        return JobInputAsset(asset_name=asset_name)

    return JobInputHttp(files=[config.input_url])


def _create_output_asset(media_services_client, config, asset_name):
    # type: (AzureMediaServices, ExampleConfiguration, str) -> Asset
    """
    Creates the empty asset the job writes its output to.

    <p>API endpoint:
    https://docs.microsoft.com/rest/api/media/assets/create-or-update
    """

    return media_services_client.assets.create_or_update(config.resource_group, config.account_name,
                                                         asset_name, Asset())


def _create_input_asset(media_services_client, config, asset_name, file_to_upload):
    # type: (AzureMediaServices, ExampleConfiguration, str, str) -> Asset
    """
    Creates an asset and uploads a local file into its storage container. The upload is authorized by
    a read-write SAS URL of the container only.

    <p>The blob is named after the file with a random number appended. Two uploads of the same file
    into one asset can therefore collide, which is not checked.

    <p>API endpoints:
    https://docs.microsoft.com/rest/api/media/assets/create-or-update
    https://docs.microsoft.com/rest/api/media/assets/list-container-sas

    :param asset_name: The name of the input asset
    :param file_to_upload: The path of the local file
    """

    if not path.isfile(file_to_upload):
        raise ProvisioningError("Input file {} does not exist".format(file_to_upload))

    asset = media_services_client.assets.create_or_update(config.resource_group, config.account_name,
                                                          asset_name, Asset())

    container_client = _get_container_client(media_services_client, config, asset_name,
                                             AssetContainerPermission.READ_WRITE)

    blob_name = "{}{}".format(path.basename(file_to_upload), random.randint(0, 100))
    print("uploading to blob {}...".format(blob_name))

    with open(file_to_upload, "rb") as data:
        container_client.upload_blob(name=blob_name, data=data)

    return asset


def _get_container_client(media_services_client, config, asset_name, permissions):
    """
    Requests a SAS URL for the storage container of an asset, valid for one hour, and connects to the
    container with it. The query string of the URL is the only credential used.

    <p>API endpoint:
    https://docs.microsoft.com/rest/api/media/assets/list-container-sas

    :param permissions: Read for downloads, ReadWrite for uploads
    """

    sas_input = ListContainerSasInput(permissions=permissions,
                                      expiry_time=datetime.now(timezone.utc) + SAS_VALIDITY)
    response = media_services_client.assets.list_container_sas(config.resource_group, config.account_name,
                                                                asset_name, sas_input)

    if not response.asset_container_sas_urls:
        raise AzureError("No container SAS URL returned for asset {}".format(asset_name))

    sas_uri = urlparse(response.asset_container_sas_urls[0])
    container_name = sas_uri.path.lstrip("/")

    blob_service_client = BlobServiceClient(account_url="{}://{}".format(sas_uri.scheme, sas_uri.netloc),
                                            credential=sas_uri.query)

    return blob_service_client.get_container_client(container_name)


def _submit_job(media_services_client, config, job_name, job_input, output_asset_name):
    # type: (AzureMediaServices, ExampleConfiguration, str, object, str) -> Job
    """
    Submits a job to the encoding transform. Its only output is the given output asset.

    <p>API endpoint:
    https://docs.microsoft.com/rest/api/media/jobs/create

    :param job_name: The unique name of the job
    :param job_input: A JobInputAsset or a JobInputHttp
    :param output_asset_name: The asset the encoded files are written to
    """

    job = Job(input=job_input, outputs=[JobOutputAsset(asset_name=output_asset_name)])

    return media_services_client.jobs.create(config.resource_group, config.account_name,
                                             config.encoding_transform_name, job_name, job)


def _wait_for_job_to_finish(media_services_client, config, job_name):
    # type: (AzureMediaServices, ExampleConfiguration, str) -> Job
    """
    Polls the state of the job until it is Finished, Error or Canceled, or until JOB_TIMEOUT_SECONDS
    have passed. After a timeout the last fetched job is returned with its non-final state.

    <p>API endpoint:
    https://docs.microsoft.com/rest/api/media/jobs/get

    <p>Please note that you can also subscribe to job state changes with Azure Event Grid instead of
    polling.

    :param job_name: The job to wait for
    """

    timeout = time.monotonic() + config.job_timeout_seconds

    while True:
        job = media_services_client.jobs.get(config.resource_group, config.account_name,
                                             config.encoding_transform_name, job_name)
        state = _state_name(job.state)
        print("Job status is {}".format(state))

        if state in TERMINAL_JOB_STATES:
            return job

        if time.monotonic() > timeout:
            print("Job {} timed out.".format(job_name))
            return job

        time.sleep(config.poll_interval_seconds)


def _download_results(media_services_client, config, asset_name, results_folder):
    # type: (AzureMediaServices, ExampleConfiguration, str, str) -> list
    """
    Downloads all block blobs of the asset's container to <results_folder>/<asset_name>. The
    downloads run in parallel and are all awaited before this returns.

    :param asset_name: The asset holding the encoded files
    :param results_folder: The local folder the asset folder is created in
    :return: The paths of the downloaded files
    """

    container_client = _get_container_client(media_services_client, config, asset_name,
                                             AssetContainerPermission.READ)

    directory = path.join(results_folder, asset_name)
    os.makedirs(directory, exist_ok=True)

    print("gathering blobs in container {}...".format(container_client.container_name))
    blob_names = [blob.name for blob in container_client.list_blobs()
                  if _state_name(blob.blob_type) == BLOCK_BLOB]

    print("downloading {} blobs to {}...".format(len(blob_names), directory))

    failed_blobs = {}
    downloaded_files = []

    with concurrent.futures.ThreadPoolExecutor(max_workers=config.download_concurrency) as executor:
        futures = {
            executor.submit(_download_blob, container_client, blob_name, directory): blob_name
            for blob_name in blob_names
        }

        for future in concurrent.futures.as_completed(futures):
            blob_name = futures[future]
            try:
                downloaded_files.append(future.result())
            except (AzureError, OSError) as ex:
                print("Download of {} failed: {}".format(blob_name, ex))
                failed_blobs[blob_name] = ex

    if failed_blobs:
        raise DownloadError("{} of {} downloads failed: {}".format(len(failed_blobs), len(blob_names),
                                                                  ", ".join(sorted(failed_blobs))),
                            failed_blobs=failed_blobs)

    return sorted(downloaded_files)


def _download_blob(container_client, blob_name, directory):
    file_path = _local_path(directory, blob_name)
    parent = path.dirname(file_path)
    if parent:
        os.makedirs(parent, exist_ok=True)

    with open(file_path, "wb") as f:
        container_client.download_blob(blob_name).readinto(f)

    return file_path


def _local_path(directory, blob_name):
    """Maps a blob name to a file below directory. Names pointing outside of it are rejected."""
    root = path.abspath(directory)
    file_path = path.normpath(path.join(root, blob_name))

    if path.commonpath([root, file_path]) != root or file_path == root:
        raise OSError("Blob name {} points outside of {}".format(blob_name, directory))

    return file_path


def _ensure_content_key_policy_exists(media_services_client, config, policy_name):
    # type: (AzureMediaServices, ExampleConfiguration, str) -> ContentKeyPolicy
    """
    Makes sure the content key policy exists. It has one Widevine and one PlayReady option, both with
    an open restriction, so licenses are issued without any further authorization.

    <p>API endpoints:
    https://docs.microsoft.com/rest/api/media/content-key-policies/get
    https://docs.microsoft.com/rest/api/media/content-key-policies/create-or-update

    :param policy_name: The name of the content key policy
    """

    def create_policy():
        policy = ContentKeyPolicy(
            description="Content Key Policy Description",
            options=[_build_widevine_open_option(), _build_play_ready_open_option()]
        )
        return media_services_client.content_key_policies.create_or_update(config.resource_group,
                                                                           config.account_name,
                                                                           policy_name, policy)

    return _ensure_resource_exists(
        get=lambda: media_services_client.content_key_policies.get(config.resource_group, config.account_name,
                                                                   policy_name),
        create_or_update=create_policy
    )


def _build_widevine_open_option():
    # type: () -> ContentKeyPolicyOption
    return ContentKeyPolicyOption(
        name="CommonEncryptionWidevineOpenOption",
        configuration=ContentKeyPolicyWidevineConfiguration(widevine_template="{}"),
        restriction=ContentKeyPolicyOpenRestriction()
    )


def _build_play_ready_open_option():
    # type: () -> ContentKeyPolicyOption
    """
    Builds a PlayReady option issuing non-persistent streaming licenses. The content key is taken
    from the PlayReady header of the stream.
    """

    play_right = ContentKeyPolicyPlayReadyPlayRight(
        digital_video_only_content_restriction=False,
        image_constraint_for_analog_component_video_restriction=False,
        image_constraint_for_analog_computer_monitor_restriction=False,
        allow_passing_video_content_to_unknown_output="NotAllowed"
    )

    play_ready_license = ContentKeyPolicyPlayReadyLicense(
        allow_test_devices=False,
        play_right=play_right,
        license_type="NonPersistent",
        content_key_location=ContentKeyPolicyPlayReadyContentEncryptionKeyFromHeader(),
        content_type="UltraVioletStreaming"
    )

    return ContentKeyPolicyOption(
        name="CommonEncryptionPlayReadyOpenOption",
        configuration=ContentKeyPolicyPlayReadyConfiguration(licenses=[play_ready_license]),
        restriction=ContentKeyPolicyOpenRestriction()
    )


def _create_streaming_locator(media_services_client, config, asset_name, locator_name, policy_name):
    # type: (AzureMediaServices, ExampleConfiguration, str, str, str) -> StreamingLocator
    """
    Publishes the asset with the predefined multi-DRM (CENC) streaming policy, using the given
    content key policy for license delivery.

    <p>API endpoint:
    https://docs.microsoft.com/rest/api/media/streaming-locators/create
    """

    streaming_locator = StreamingLocator(
        asset_name=asset_name,
        streaming_policy_name=MULTI_DRM_STREAMING_POLICY,
        default_content_key_policy_name=policy_name
    )

    return media_services_client.streaming_locators.create(config.resource_group, config.account_name,
                                                           locator_name, streaming_locator)


def _get_streaming_urls(media_services_client, config, locator_name):
    # type: (AzureMediaServices, ExampleConfiguration, str) -> list
    """
    Builds the streaming URLs of the locator on the configured streaming endpoint. Only the first
    path of every streaming protocol is used.

    <p>The streaming endpoint has to be running for the URLs to work. Its state is reported, but not
    changed.

    <p>API endpoints:
    https://docs.microsoft.com/rest/api/media/streaming-endpoints/get
    https://docs.microsoft.com/rest/api/media/streaming-locators/list-paths

    :param locator_name: The streaming locator to resolve
    """

    streaming_endpoint = media_services_client.streaming_endpoints.get(config.resource_group, config.account_name,
                                                                       config.streaming_endpoint_name)

    endpoint_state = _state_name(streaming_endpoint.resource_state)
    if endpoint_state != "Running":
        print("Streaming endpoint {} is {}. Start it to play the URLs below.".format(
            config.streaming_endpoint_name, endpoint_state))

    paths = media_services_client.streaming_locators.list_paths(config.resource_group, config.account_name,
                                                                locator_name)

    urls = []
    for streaming_path in paths.streaming_paths or []:
        if not streaming_path.paths:
            continue
        url = "https://{}/{}".format(streaming_endpoint.host_name, streaming_path.paths[0].lstrip("/"))
        print(url)
        urls.append(url)

    return urls


def _state_name(state):
    return getattr(state, "value", state)


if __name__ == '__main__':
    main()
