"""
Logging of the reflectors: formats, prefixes, and the per-resource loggers.

Every reflector logs via its own `ReflectorLogger`, which carries
the reflected resource and its selection as the record's extras.
The formatters either prefix the messages with them (text),
or put them into a separate key of the log record (JSON).
"""
import copy
import enum
import logging
from typing import Any, MutableMapping, Optional, Tuple

import pythonjsonlogger.core
import pythonjsonlogger.json

from kreflector.structs import references

DEFAULT_JSON_REFKEY = 'reflector'
""" A key for resource references in JSON logs, as seen by the log parsers. """


class LogFormat(enum.Enum):
    """ Log formats, as specified on CLI. """
    PLAIN = '%(message)s'
    FULL = '[%(asctime)s] %(name)-20.20s [%(levelname)-8.8s] %(message)s'
    JSON = enum.auto()


class ReflectorFormatter(logging.Formatter):
    pass


class ReflectorTextFormatter(ReflectorFormatter, logging.Formatter):
    pass


class ReflectorJsonFormatter(ReflectorFormatter, pythonjsonlogger.json.JsonFormatter):  # type: ignore
    def __init__(
            self,
            *args: Any,
            refkey: Optional[str] = None,
            **kwargs: Any,
    ) -> None:
        # Avoid type checking, as the args are not in the parent consructor.
        reserved_attrs = kwargs.pop('reserved_attrs', pythonjsonlogger.core.RESERVED_ATTRS)
        reserved_attrs = set(reserved_attrs)
        reserved_attrs |= {'reflector_ref'}
        kwargs.update(reserved_attrs=reserved_attrs)
        kwargs.setdefault('timestamp', True)
        super().__init__(*args, **kwargs)
        self._refkey: str = refkey or DEFAULT_JSON_REFKEY

    def add_fields(
            self,
            log_record: MutableMapping[str, object],
            record: logging.LogRecord,
            message_dict: MutableMapping[str, object],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if self._refkey and hasattr(record, 'reflector_ref'):
            ref = getattr(record, 'reflector_ref')
            log_record[self._refkey] = ref

        if 'severity' not in log_record:
            log_record['severity'] = (
                "debug" if record.levelno <= logging.DEBUG else
                "info" if record.levelno <= logging.INFO else
                "warn" if record.levelno <= logging.WARNING else
                "error" if record.levelno <= logging.ERROR else
                "fatal")


class ReflectorPrefixingMixin(ReflectorFormatter):
    def format(self, record: logging.LogRecord) -> str:
        if hasattr(record, 'reflector_ref'):
            ref = getattr(record, 'reflector_ref')
            resource = ref.get('resource', '')
            namespace = ref.get('namespace')
            prefix = f"[{resource} in {namespace}]" if namespace else f"[{resource}]"
            record = copy.copy(record)  # shallow
            record.msg = f"{prefix} {record.msg}"
        return super().format(record)


class ReflectorPrefixingTextFormatter(ReflectorPrefixingMixin, ReflectorTextFormatter):
    pass


class ReflectorPrefixingJsonFormatter(ReflectorPrefixingMixin, ReflectorJsonFormatter):
    pass


class ReflectorLogger(logging.LoggerAdapter):
    """
    A logger/adapter to carry the reflector's identifiers for formatting.

    The identifiers are used for prefixing the messages in the text formats
    (see `ReflectorPrefixingMixin`), or as a separate key in the JSON format.
    """

    def __init__(
            self,
            *,
            resource: references.Resource,
            selector: references.Selector,
            logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(logger or logging.getLogger('kreflector.reflectors'), dict(
            reflector_ref=dict(
                resource=repr(resource),
                namespace=selector.namespace,
                labelSelector=selector.label_selector,
                fieldSelector=selector.field_selector,
            ),
        ))

    def process(
            self,
            msg: str,
            kwargs: MutableMapping[str, Any],
    ) -> Tuple[str, MutableMapping[str, Any]]:
        # Native logging overwrites the message's extra with the adapter's extra.
        # We merge them, so that both message's & adapter's extras are available.
        kwargs["extra"] = dict(self.extra or {}, **kwargs.get('extra', {}))
        return msg, kwargs


def configure(
        debug: Optional[bool] = None,
        verbose: Optional[bool] = None,
        quiet: Optional[bool] = None,
        log_format: LogFormat = LogFormat.FULL,
        log_prefix: Optional[bool] = False,
        log_refkey: Optional[str] = None,
) -> None:
    log_level = 'DEBUG' if debug or verbose else 'WARNING' if quiet else 'INFO'
    formatter = make_formatter(log_format=log_format, log_prefix=log_prefix, log_refkey=log_refkey)
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    logger = logging.getLogger()
    logger.handlers[:] = [h for h in logger.handlers if not isinstance(h.formatter, ReflectorFormatter)]
    logger.addHandler(handler)
    logger.setLevel(log_level)

    # Prevent the low-level logging unless in the debug mode. Keep only the reflector's messages.
    # For no-propagation loggers, add a dummy null handler to prevent printing the messages.
    for name in ['asyncio']:
        logger = logging.getLogger(name)
        logger.propagate = bool(debug)
        if not debug:
            logger.handlers[:] = [logging.NullHandler()]


def make_formatter(
        log_format: LogFormat = LogFormat.FULL,
        log_prefix: Optional[bool] = False,
        log_refkey: Optional[str] = None,
) -> ReflectorFormatter:
    log_prefix = log_prefix if log_prefix is not None else bool(log_format is not LogFormat.JSON)
    if log_format is LogFormat.JSON:
        if log_prefix:
            return ReflectorPrefixingJsonFormatter(refkey=log_refkey)
        else:
            return ReflectorJsonFormatter(refkey=log_refkey)
    elif isinstance(log_format, LogFormat):
        if log_prefix:
            return ReflectorPrefixingTextFormatter(log_format.value)
        else:
            return ReflectorTextFormatter(log_format.value)
    elif isinstance(log_format, str):
        if log_prefix:
            return ReflectorPrefixingTextFormatter(log_format)
        else:
            return ReflectorTextFormatter(log_format)
    else:
        raise ValueError(f"Unsupported log format: {log_format!r}")
