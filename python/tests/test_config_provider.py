"""Tests for the layered configuration lookup."""

import pytest

from common import ConfigProvider, InvalidArgumentError, MissingArgumentError

REQUIRED = {
    "AZURE_SUBSCRIPTION_ID": "sub",
    "AZURE_RESOURCE_GROUP": "rg",
    "AZURE_MEDIA_SERVICES_ACCOUNT_NAME": "account",
    "AZURE_CLIENT_ID": "client",
    "AZURE_CLIENT_SECRET": "very-secret",
    "AZURE_TENANT_ID": "tenant",
}


def _provider(tmp_path, args=(), environment=None, local=None, home=None):
    local_dir = tmp_path / "local"
    home_dir = tmp_path / "home"
    local_dir.mkdir()
    (home_dir / ".azure-media-services").mkdir(parents=True)
    if local:
        (local_dir / "examples.properties").write_text(local)
    if home:
        (home_dir / ".azure-media-services" / "examples.properties").write_text(home)
    return ConfigProvider(args=list(args), environment=environment or {},
                          properties_directory=str(local_dir), home_directory=str(home_dir))


def test_build_configuration_from_environment_uses_defaults(tmp_path) -> None:
    environment = dict(REQUIRED, INPUT_URL="https://example/video.mp4")
    config = _provider(tmp_path, environment=environment).build_configuration()

    assert config.account_name == "account"
    assert config.input_url == "https://example/video.mp4"
    assert config.input_file is None
    assert config.job_timeout_seconds == 600
    assert config.poll_interval_seconds == 15
    assert config.download_concurrency == 4
    assert config.name_prefix == "prefix"
    assert config.encoding_transform_name == "TransformWithAdaptiveStreamingPreset"
    assert config.content_key_policy_name == "CommonEncryptionCencDrmContentKeyPolicy"
    assert config.credential_scope == "https://management.core.windows.net/.default"


def test_sources_are_searched_in_order(tmp_path) -> None:
    provider = _provider(
        tmp_path,
        args=["--NAME_PREFIX=from-cli"],
        environment={"NAME_PREFIX": "from-env", "OUTPUT_FOLDER": "env-folder", "STREAMING_ENDPOINT_NAME": "env-ep"},
        local="NAME_PREFIX=from-local\nOUTPUT_FOLDER=local-folder\n",
        home="STREAMING_ENDPOINT_NAME=home-ep\nAPI_LOG_LEVEL=debug\n",
    )

    assert provider.get_name_prefix() == "from-cli"
    assert provider.get_output_folder() == "local-folder"
    assert provider.get_streaming_endpoint_name() == "env-ep"
    assert provider.get_api_log_level() == "DEBUG"


def test_missing_required_parameter_raises(tmp_path) -> None:
    environment = dict(REQUIRED, INPUT_URL="https://example/video.mp4")
    del environment["AZURE_TENANT_ID"]

    with pytest.raises(MissingArgumentError) as excinfo:
        _provider(tmp_path, environment=environment).build_configuration()
    assert excinfo.value.args[0] == "AZURE_TENANT_ID"


def test_input_file_and_url_are_mutually_exclusive(tmp_path) -> None:
    environment = dict(REQUIRED, INPUT_URL="https://example/video.mp4", INPUT_FILE="a.mp4")
    with pytest.raises(InvalidArgumentError):
        _provider(tmp_path, environment=environment).build_configuration()


def test_input_is_required(tmp_path) -> None:
    with pytest.raises(MissingArgumentError):
        _provider(tmp_path, environment=dict(REQUIRED)).build_configuration()


@pytest.mark.parametrize("value", ["abc", "0", "-5"])
def test_invalid_timeout_raises(tmp_path, value) -> None:
    provider = _provider(tmp_path, environment={"JOB_TIMEOUT_SECONDS": value})
    with pytest.raises(InvalidArgumentError):
        provider.get_job_timeout_seconds()


def test_endpoints_get_trailing_slash(tmp_path) -> None:
    provider = _provider(tmp_path, environment={"AZURE_ARM_AAD_AUDIENCE": "https://management.core.windows.net"})
    assert provider.get_arm_aad_audience() == "https://management.core.windows.net/"


def test_secret_is_masked_when_printed(tmp_path, capsys) -> None:
    provider = _provider(tmp_path, environment=dict(REQUIRED))
    assert provider.get_client_secret() == "very-secret"

    out = capsys.readouterr().out
    assert "very-secret" not in out
    assert "AZURE_CLIENT_SECRET" in out


def test_unknown_log_level_raises(tmp_path) -> None:
    provider = _provider(tmp_path, environment={"API_LOG_LEVEL": "chatty"})
    with pytest.raises(InvalidArgumentError) as excinfo:
        provider.get_api_log_level()
    assert excinfo.value.args[0] == "API_LOG_LEVEL"


def test_optional_parameter_without_default_is_none(tmp_path) -> None:
    provider = _provider(tmp_path)

    assert provider.get_input_file() is None
    assert provider.get_output_folder() == "Temp"
