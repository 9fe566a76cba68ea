"""
Structured JSON logging for the reconstructors.

Anything passed as ``extra`` ends up under ``fields`` next to the message:

        import logging
        logging.info("[Reconstructor] Refresh finished", extra={"asset_count": 12})

renders as
    {
        "timestamp": "2024-03-15 14:29:31,000",
        "level": "INFO",
        "fields": {
            "message": "[Reconstructor] Refresh finished",
            "asset_count": 12
        },
        "module": "processor",
        "func_name": "refresh",
        "path_name": "/.../reconstructors/marketplace/processor.py",
        "line_no": 88
    }
"""

import logging
import json

DEFAULT_LOGGER_NAME = "marketplace_reconstructor"


class CustomLogger(logging.Logger):
    def makeRecord(
        self,
        name,
        level,
        fn,
        lno,
        msg,
        args,
        exc_info,
        func=None,
        extra=None,
        sinfo=None,
    ):
        if extra:
            extra = {"fields": extra}
        return super().makeRecord(
            name,
            level,
            fn,
            lno,
            msg,
            args,
            exc_info,
            func=func,
            extra=extra,
            sinfo=sinfo,
        )


class JsonFormatter(logging.Formatter):
    def format(self, record):
        fields = {"message": record.getMessage()}
        fields.update(record.__dict__.get("fields", {}))
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "fields": fields,
            "module": record.module,
            "func_name": record.funcName,
            "path_name": record.pathname,
            "line_no": record.lineno,
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        # Extras are not guaranteed to be JSON native (Decimal, datetime, ...)
        return json.dumps(log_data, default=str)


def configure_logging(level: int = logging.INFO) -> logging.Logger:
    logger = CustomLogger(DEFAULT_LOGGER_NAME)
    logger.setLevel(level)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(JsonFormatter())
    logger.addHandler(stream_handler)

    # Module level logging.* calls go through the root logger
    logging.root = logger
    return logger
