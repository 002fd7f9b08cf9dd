import logging
import re
import sys


SENSITIVE_FIELDS = (
    "password",
    "token",
    "secret",
    "authorization",
    "database_url",
    "redis_url",
)

_KV_PATTERN = re.compile(
    r"(?i)\b(" + "|".join(SENSITIVE_FIELDS) + r")(\s*[=:]\s*)(\S+)"
)

# Attributes every LogRecord has; anything else came in through `extra`
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(field in lowered for field in SENSITIVE_FIELDS)


def sanitize(value):
    """Replace values stored under sensitive keys with a marker, recursively."""
    if isinstance(value, dict):
        return {
            k: "[REDACTED]" if _is_sensitive(str(k)) else sanitize(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(sanitize(v) for v in value)
    return value


class RedactingFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in list(vars(record).items()):
            if key in _RECORD_ATTRS:
                continue
            if _is_sensitive(key):
                setattr(record, key, "[REDACTED]")
            elif isinstance(value, (dict, list, tuple)):
                setattr(record, key, sanitize(value))
        if isinstance(record.args, dict):
            record.args = sanitize(record.args)
        elif isinstance(record.args, tuple):
            record.args = tuple(sanitize(a) for a in record.args)
        message = record.getMessage()
        redacted = _KV_PATTERN.sub(r"\1\2[REDACTED]", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_chefwell", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler._chefwell = True
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)s [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    handler.addFilter(RedactingFilter())
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
