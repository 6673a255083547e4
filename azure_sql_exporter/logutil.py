import datetime                 # For handling datetime values and formatting
import logging                  # For structured logging

import pytz
import tzlocal

LOG_FORMAT = '[%(asctime)s] %(levelname)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class TZFormatter(logging.Formatter):
    """Logging formatter that renders times in a given tzinfo (pytz).

    Usage: set handler.setFormatter(TZFormatter(fmt, datefmt, tz=tzobj))
    """
    def __init__(self, fmt=None, datefmt=None, tz=None):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.tz = tz

    def formatTime(self, record, datefmt=None):
        # record.created is a POSIX timestamp
        tz = self.tz if self.tz is not None else datetime.timezone.utc
        dt = datetime.datetime.fromtimestamp(record.created, tz=tz)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.isoformat()


def resolve_timezone(tz_name):
    """Map 'system' or an IANA zone name to a tzinfo, falling back to UTC."""
    if tz_name == 'system':
        try:
            return tzlocal.get_localzone()
        except Exception as e:
            logging.warning(f"Failed to resolve system timezone: {e}; falling back to UTC")
            return datetime.timezone.utc
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        logging.warning(f"Invalid timezone '{tz_name}'; falling back to UTC")
        return datetime.timezone.utc


def apply_logging_timezone(tzinfo):
    """Replace formatters on existing root handlers to use tzinfo for timestamps."""
    for h in logging.root.handlers:
        h.setFormatter(TZFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT, tz=tzinfo))


def configure_logging(level=logging.INFO, tz_name='system'):
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT)
    logging.root.setLevel(level)
    apply_logging_timezone(resolve_timezone(tz_name))
    logging.debug(f"Applied logging timezone: {tz_name}")
