import logging

from pythonjsonlogger import jsonlogger

_HANDLER_NAME = "gateway-json"


def setup_logger(level: str | int = logging.INFO) -> None:
    """Send root logger output to stderr as JSON lines.

    Safe to call more than once; the handler is installed a single time.
    """
    logger = logging.getLogger()
    if not any(h.get_name() == _HANDLER_NAME for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.set_name(_HANDLER_NAME)
        formatter = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s',
                                             rename_fields={'levelname': 'level', 'asctime': 'timestamp'})
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)
