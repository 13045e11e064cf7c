"""Logging utilities for the export framework"""

import logging

# Third-party loggers that flood INFO during Spark and fsspec calls
_NOISY_LOGGERS = ("py4j", "py4j.clientserver", "fsspec", "adlfs")


class ExportLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that prepends the target table name to messages"""

    def process(self, msg, kwargs):
        table_name = self.extra.get("table_name", "")
        if table_name:
            return f"[{table_name}] {msg}", kwargs
        return msg, kwargs


def quiet_third_party_loggers(level: int = logging.WARNING) -> None:
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level)
