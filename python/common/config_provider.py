import configparser
import logging
import optparse

from os import environ, path
from pathlib import Path
from sys import argv

from common.example_configuration import ExampleConfiguration
from common.media_services_argument import MediaServicesArgument

PROPERTIES_FILE_NAME = "examples.properties"
HOME_PROPERTIES_DIRECTORY = ".azure-media-services"


class ConfigProvider(object):
    _properties = {
        "AZURE_SUBSCRIPTION_ID":
            MediaServicesArgument("The ID of the Azure subscription holding the Media Services account.", True),
        "AZURE_RESOURCE_GROUP":
            MediaServicesArgument("The resource group of the Media Services account. Example: amsResourceGroup",
                                  True),
        "AZURE_MEDIA_SERVICES_ACCOUNT_NAME":
            MediaServicesArgument("The name of the Media Services account. Example: amsaccount", True),
        "AZURE_CLIENT_ID":
            MediaServicesArgument("The application (client) ID of the service principal.", True),
        "AZURE_CLIENT_SECRET":
            MediaServicesArgument("The client secret of the service principal.", True, secret=True),
        "AZURE_TENANT_ID":
            MediaServicesArgument("The Azure AD tenant ID of the service principal.", True),
        "AZURE_ARM_AAD_AUDIENCE":
            MediaServicesArgument("The audience the management API tokens are issued for.",
                                  default="https://management.core.windows.net/"),
        "AZURE_AAD_ENDPOINT":
            MediaServicesArgument("The Azure AD authority used to authenticate the service principal.",
                                  default="https://login.microsoftonline.com/"),
        "AZURE_ARM_ENDPOINT":
            MediaServicesArgument("The Azure Resource Manager endpoint.", default="https://management.azure.com/"),
        "INPUT_FILE":
            MediaServicesArgument("A local file to upload and encode. Mutually exclusive with INPUT_URL. "
                                  "Example: c:\\temp\\input.mp4"),
        "INPUT_URL":
            MediaServicesArgument("An HTTP(S) URL of the file to encode. Mutually exclusive with INPUT_FILE. "
                                  "Example: https://my-storage.biz/videos/1080p_Sintel.mp4"),
        "OUTPUT_FOLDER":
            MediaServicesArgument("The local folder the encoded files are downloaded to.", default="Temp"),
        "NAME_PREFIX":
            MediaServicesArgument("The prefix of the asset and job names created by the example.",
                                  default="prefix"),
        "ENCODING_TRANSFORM_NAME":
            MediaServicesArgument("The name of the encoding transform to reuse or create.",
                                  default="TransformWithAdaptiveStreamingPreset"),
        "CONTENT_KEY_POLICY_NAME":
            MediaServicesArgument("The name of the content key policy to reuse or create.",
                                  default="CommonEncryptionCencDrmContentKeyPolicy"),
        "STREAMING_ENDPOINT_NAME":
            MediaServicesArgument("The streaming endpoint the streaming URLs are built for.", default="default"),
        "JOB_TIMEOUT_SECONDS":
            MediaServicesArgument("How long to wait for the job to reach a final state.", default="600"),
        "POLL_INTERVAL_SECONDS":
            MediaServicesArgument("The pause between two job status requests.", default="15"),
        "DOWNLOAD_CONCURRENCY":
            MediaServicesArgument("How many output files are downloaded in parallel.", default="4"),
        "API_LOG_LEVEL":
            MediaServicesArgument("The level of the Azure SDK log output. Example: DEBUG", default="WARNING")
    }

    def __init__(self, args=None, environment=None, properties_directory=".", home_directory=None):
        if args is None:
            args = argv[1:]
        if environment is None:
            environment = environ.copy()
        if home_directory is None:
            home_directory = str(Path.home())

        self.configuration = {
            "Command line arguments": self._parse_cli_arguments(args),
            "Local properties file": self._parse_properties_file(properties_directory),
            "Environment variables": environment,
            "System-wide properties file": self._parse_properties_file(
                path.join(home_directory, HOME_PROPERTIES_DIRECTORY))
        }

    def get_subscription_id(self):
        return self._get("AZURE_SUBSCRIPTION_ID")

    def get_resource_group(self):
        return self._get("AZURE_RESOURCE_GROUP")

    def get_account_name(self):
        return self._get("AZURE_MEDIA_SERVICES_ACCOUNT_NAME")

    def get_client_id(self):
        return self._get("AZURE_CLIENT_ID")

    def get_client_secret(self):
        return self._get("AZURE_CLIENT_SECRET")

    def get_tenant_id(self):
        return self._get("AZURE_TENANT_ID")

    def get_arm_aad_audience(self):
        return self._with_trailing_slash(self._get("AZURE_ARM_AAD_AUDIENCE"))

    def get_aad_endpoint(self):
        return self._with_trailing_slash(self._get("AZURE_AAD_ENDPOINT"))

    def get_arm_endpoint(self):
        return self._with_trailing_slash(self._get("AZURE_ARM_ENDPOINT"))

    def get_input_file(self):
        return self._get("INPUT_FILE")

    def get_input_url(self):
        return self._get("INPUT_URL")

    def get_output_folder(self):
        return self._get("OUTPUT_FOLDER")

    def get_name_prefix(self):
        return self._get("NAME_PREFIX")

    def get_encoding_transform_name(self):
        return self._get("ENCODING_TRANSFORM_NAME")

    def get_content_key_policy_name(self):
        return self._get("CONTENT_KEY_POLICY_NAME")

    def get_streaming_endpoint_name(self):
        return self._get("STREAMING_ENDPOINT_NAME")

    def get_job_timeout_seconds(self):
        return self._get_positive_number("JOB_TIMEOUT_SECONDS", float)

    def get_poll_interval_seconds(self):
        return self._get_positive_number("POLL_INTERVAL_SECONDS", float)

    def get_download_concurrency(self):
        return self._get_positive_number("DOWNLOAD_CONCURRENCY", int)

    def get_api_log_level(self):
        level = self._get("API_LOG_LEVEL").upper()

        if not isinstance(logging.getLevelName(level), int):
            raise InvalidArgumentError("API_LOG_LEVEL", "'{}' is not a log level".format(level))

        return level

    def build_configuration(self):
        # type: () -> ExampleConfiguration
        """
        Resolves every parameter the example needs and freezes them into one ExampleConfiguration.

        Exactly one of INPUT_FILE and INPUT_URL has to be set.
        """

        input_file = self.get_input_file()
        input_url = self.get_input_url()

        if input_file and input_url:
            raise InvalidArgumentError("INPUT_FILE", "Only one of INPUT_FILE and INPUT_URL may be set")
        if not input_file and not input_url:
            raise MissingArgumentError("INPUT_URL", "Either INPUT_FILE or INPUT_URL has to be set")

        return ExampleConfiguration(
            subscription_id=self.get_subscription_id(),
            resource_group=self.get_resource_group(),
            account_name=self.get_account_name(),
            client_id=self.get_client_id(),
            client_secret=self.get_client_secret(),
            tenant_id=self.get_tenant_id(),
            arm_aad_audience=self.get_arm_aad_audience(),
            aad_endpoint=self.get_aad_endpoint(),
            arm_endpoint=self.get_arm_endpoint(),
            input_file=input_file,
            input_url=input_url,
            output_folder=self.get_output_folder(),
            name_prefix=self.get_name_prefix(),
            encoding_transform_name=self.get_encoding_transform_name(),
            content_key_policy_name=self.get_content_key_policy_name(),
            streaming_endpoint_name=self.get_streaming_endpoint_name(),
            job_timeout_seconds=self.get_job_timeout_seconds(),
            poll_interval_seconds=self.get_poll_interval_seconds(),
            download_concurrency=self.get_download_concurrency(),
            api_log_level=self.get_api_log_level()
        )

    def _parse_cli_arguments(self, args):
        # type: (list) -> dict

        if len(args) == 0:
            return {}

        parser = optparse.OptionParser()

        for name in self._properties:
            parser.add_option(
                "--{}".format(name),
                dest=name,
                help=self._properties[name].description
            )

        options, _ = parser.parse_args(args)

        return self._get_dict_with_set_values(vars(options))

    @staticmethod
    def _parse_properties_file(properties_file_directory):
        # type: (str) -> dict

        properties_file_path = path.join(properties_file_directory, PROPERTIES_FILE_NAME)

        try:
            section_name = "section"

            # Add a section so ConfigParser can read it
            with open(properties_file_path, 'r') as f:
                config_string = "[{}]\n{}".format(section_name, f.read())

            config_parser = configparser.ConfigParser(interpolation=None)
            config_parser.optionxform = str
            config_parser.read_string(config_string)

            return ConfigProvider._get_dict_with_set_values(dict(config_parser.items(section_name)))
        except FileNotFoundError:
            return {}
        except Exception as ex:
            raise RuntimeError("Error reading properties file: {}".format(properties_file_path)) from ex

    @staticmethod
    def _get_dict_with_set_values(dictionary):
        return {k: v for k, v in dictionary.items() if v}

    @staticmethod
    def _with_trailing_slash(url):
        return url if url.endswith("/") else url + "/"

    def _lookup(self, key):
        # type: (str) -> tuple

        for configuration_key in self.configuration:
            sub_config = self.configuration[configuration_key]

            if key in sub_config and sub_config[key]:
                value = sub_config[key]
                printed = "*****" if key in self._properties and self._properties[key].secret else value
                print("Retrieved '{}' from '{}' config source: '{}'".format(key, configuration_key, printed))
                return True, value

        return False, None

    def _get(self, key):
        # type: (str) -> str

        found, value = self._lookup(key)
        if found:
            return value

        argument = self._properties[key]
        if argument.required:
            raise MissingArgumentError(key, argument.description)

        return argument.default

    def _get_positive_number(self, key, number_type):
        raw_value = self._get(key)

        try:
            value = number_type(raw_value)
        except ValueError:
            raise InvalidArgumentError(key, "'{}' is not a valid number".format(raw_value))

        if value <= 0:
            raise InvalidArgumentError(key, "'{}' has to be greater than zero".format(raw_value))

        return value


class MissingArgumentError(RuntimeError):
    def __init__(self, argument, description):
        super(MissingArgumentError, self).__init__(argument, description)


class InvalidArgumentError(ValueError):
    def __init__(self, argument, description):
        super(InvalidArgumentError, self).__init__(argument, description)
