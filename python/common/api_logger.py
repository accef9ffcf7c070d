import logging
import sys

AZURE_LOGGER_NAME = "azure"
HTTP_LOGGER_NAME = "azure.core.pipeline.policies.http_logging_policy"


class MediaServicesApiLogger(object):
    """
    Prints the log output of the Azure SDK clients (management and storage) to stdout, next to the
    progress lines of the example.

    At DEBUG level the clients are additionally asked to log full HTTP requests and responses.
    """

    def __init__(self, level="WARNING", stream=None):
        # type: (str, object) -> None
        self.level = logging.getLevelName(level)
        if not isinstance(self.level, int):
            raise ValueError("Unknown log level: {}".format(level))

        self.logger = logging.getLogger(AZURE_LOGGER_NAME)
        self.logger.setLevel(self.level)

        handler = next((h for h in self.logger.handlers if getattr(h, "media_services_api_logger", False)), None)
        if handler is None:
            handler = logging.StreamHandler(stream or sys.stdout)
            handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
            handler.media_services_api_logger = True
            self.logger.addHandler(handler)
        elif stream is not None:
            handler.setStream(stream)

        # the HTTP policy logs every request at INFO, which is too noisy below DEBUG
        logging.getLogger(HTTP_LOGGER_NAME).setLevel(
            self.level if self.level <= logging.DEBUG else max(self.level, logging.WARNING))

    @property
    def logging_enable(self):
        # type: () -> bool
        return self.level <= logging.DEBUG

    def client_kwargs(self):
        # type: () -> dict
        return {"logging_enable": self.logging_enable}
