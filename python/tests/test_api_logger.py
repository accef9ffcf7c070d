import io
import logging

import pytest

from common import MediaServicesApiLogger


def test_sdk_records_are_printed_to_stream() -> None:
    stream = io.StringIO()
    api_logger = MediaServicesApiLogger(level="INFO", stream=stream)

    logging.getLogger("azure.mgmt.media").info("creating transform")

    assert "creating transform" in stream.getvalue()
    assert api_logger.client_kwargs() == {"logging_enable": False}


def test_debug_enables_http_logging() -> None:
    assert MediaServicesApiLogger(level="DEBUG").logging_enable


def test_handler_is_added_once() -> None:
    MediaServicesApiLogger(level="WARNING")
    MediaServicesApiLogger(level="WARNING")

    handlers = [h for h in logging.getLogger("azure").handlers if getattr(h, "media_services_api_logger", False)]
    assert len(handlers) == 1


def test_unknown_level_raises() -> None:
    with pytest.raises(ValueError):
        MediaServicesApiLogger(level="CHATTY")
