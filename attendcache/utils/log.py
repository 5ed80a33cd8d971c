import json
import logging
import datetime


class StructuredLogger:
    """Emit one JSON object per log line: timestamp, level, message and any extra fields."""

    def __init__(self, logger_name='StructuredLogger', level=logging.DEBUG):
        self.logger = logging.getLogger(logger_name)
        self.logger.setLevel(level)

        # getLogger returns the same object for a name, keep a single handler on it
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(handler)

    def _log(self, level, message, exc_info=None, **kwargs):
        log_entry = {
            'timestamp': datetime.datetime.now().isoformat(),
            'level': level.upper(),
            'message': message,
            **kwargs
        }
        if exc_info is not None:
            log_entry['exc_type'] = type(exc_info).__name__
            log_entry['error'] = str(exc_info)
        # cache keys and values can carry arbitrary objects
        json_log = json.dumps(log_entry, default=str)
        getattr(self.logger, level)(json_log)

    def set_level(self, level):
        self.logger.setLevel(level)

    def info(self, message, **kwargs):
        self._log('info', message, **kwargs)

    def warning(self, message, **kwargs):
        self._log('warning', message, **kwargs)

    def error(self, message, **kwargs):
        self._log('error', message, **kwargs)

    def debug(self, message, **kwargs):
        self._log('debug', message, **kwargs)


app_logger = StructuredLogger('AttendCacheLogger')
