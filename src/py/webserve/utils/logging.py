import os
import sys
import time
import inspect
from enum import Enum
from typing import Any, Callable, ClassVar, NamedTuple, TypeAlias
from contextvars import ContextVar

__doc__ = """
Structured logging for the server. Entries carry an origin, a level and an
ad-hoc key/value context, which makes them usable both as human-readable
messages and as events that can be captured by subscribed handlers.
"""

ERR = sys.stderr

TPrimitive: TypeAlias = bool | int | float | str | bytes | None

LogOrigin: ContextVar[str] = ContextVar("LogOrigin", default="webserve")

# SEE: https://no-color.org/
NO_COLOR: bool = "NO_COLOR" in os.environ
FORCE_COLOR: bool = "FORCE_COLOR" in os.environ
COLOR: bool = FORCE_COLOR or (not NO_COLOR and ERR.isatty())


class Term:
	BOLD: ClassVar[str] = "\033[1m" if COLOR else ""
	NORMAL: ClassVar[str] = "\033[0m" if COLOR else ""
	RESET: ClassVar[str] = "\033[0m" if COLOR else ""

	@staticmethod
	def Color(color: int, bold: bool = False) -> str:
		return f"\033[{'1' if bold else '0'};38;5;{color}m" if COLOR else ""


class LogType(Enum):
	Message = 0
	Event = 20


class LogLevel(Enum):
	Debug = 0
	Info = 10
	Warning = 30
	Error = 40  # A managed error
	Exception = 50  # An un-managed error

	@staticmethod
	def FromName(name: str | None, default: "LogLevel") -> "LogLevel":
		for level in LogLevel:
			if name and level.name.lower() == name.strip().lower():
				return level
		return default


LOG_LEVEL: LogLevel = LogLevel.FromName(os.getenv("WEBSERVE_LOG_LEVEL"), LogLevel.Info)

LOG_LEVEL_COLOR = {
	LogLevel.Debug: 31,
	LogLevel.Info: 75,
	LogLevel.Warning: 202,
	LogLevel.Error: 160,
	LogLevel.Exception: 124,
}


class LogEntry(NamedTuple):
	origin: str
	time: float
	type: LogType = LogType.Message
	level: LogLevel = LogLevel.Info
	message: str | None = None
	name: str | None = None
	value: TPrimitive | None = None
	context: dict[str, TPrimitive] | None = None
	stack: list[str] | None = None


TLogHandler: TypeAlias = Callable[[LogEntry], None]

# Handlers receive every entry that passes the level filter, after it has
# been written out.
LogHandlers: list[TLogHandler] = []


def subscribe(handler: TLogHandler) -> TLogHandler:
	LogHandlers.append(handler)
	return handler


def unsubscribe(handler: TLogHandler) -> TLogHandler:
	if handler in LogHandlers:
		LogHandlers.remove(handler)
	return handler


def callstack(offset: int = 1) -> list[str]:
	"""Returns the names of the functions on the call stack, with the class
	name prefixed for methods."""
	return [
		(
			f"{_.frame.f_locals['self'].__class__.__qualname__}.{_.function}"
			if "self" in _.frame.f_locals
			else _.function
		).replace("<lambda>", "λ")
		for _ in reversed(inspect.stack()[offset:])
	]


def formatData(value: Any) -> str:
	if value is None or value == () or value == [] or value == {}:
		return "◌"
	elif isinstance(value, dict):
		return " ".join(
			f"{Term.BOLD}{k}{Term.NORMAL}={formatData(v)}" for k, v in value.items()
		)
	elif isinstance(value, list) or isinstance(value, tuple):
		return ",".join(formatData(v) for v in value)
	elif isinstance(value, str):
		return repr(value) if " " in value or not value else value
	elif isinstance(value, bool):
		return "✓" if value else "✗"
	elif isinstance(value, float):
		return f"{value:0.2f}"
	else:
		return str(value)


def logged(level: LogLevel) -> bool:
	"""Tells if entries of the given level are currently emitted. This is
	used to guard against building entries when not necessary."""
	return level.value >= LOG_LEVEL.value


def send(entry: LogEntry) -> LogEntry:
	if not logged(entry.level):
		return entry
	clr: str = Term.Color(LOG_LEVEL_COLOR[entry.level])
	if entry.type == LogType.Event:
		ERR.write(
			f"{clr}{Term.BOLD}[{entry.origin}] {entry.name}{Term.RESET} {formatData(entry.value)} {formatData(entry.context)}{Term.RESET}\n"
		)
	else:
		ERR.write(
			f"{clr}{Term.BOLD}[{entry.origin}]{Term.RESET} {entry.message} {formatData(entry.context)}{Term.RESET}\n"
		)
	if entry.stack:
		ERR.write(
			f"{clr}{Term.Color(38)}  {' ' * len(entry.origin)} {'→'.join(entry.stack)}{Term.RESET}\n"
		)
	ERR.flush()
	for handler in LogHandlers:
		handler(entry)
	return entry


def entry(
	*,
	origin: str | None = None,
	type: LogType = LogType.Message,
	level: LogLevel = LogLevel.Info,
	message: str | None = None,
	name: str | None = None,
	value: TPrimitive | None = None,
	context: dict[str, TPrimitive],
	stack: list[str] | None = None,
) -> LogEntry:
	return LogEntry(
		origin=origin or LogOrigin.get(),
		time=time.time(),
		type=type,
		level=level,
		message=message,
		name=name,
		value=value,
		context=context,
		stack=stack,
	)


def debug(message: str, *, origin: str | None = None, **context: TPrimitive) -> LogEntry:
	return send(
		entry(message=message, level=LogLevel.Debug, origin=origin, context=context)
	)


def info(message: str, *, origin: str | None = None, **context: TPrimitive) -> LogEntry:
	return send(entry(message=message, origin=origin, context=context))


def warning(
	message: str, *, origin: str | None = None, **context: TPrimitive
) -> LogEntry:
	return send(
		entry(message=message, level=LogLevel.Warning, origin=origin, context=context)
	)


def error(
	message: str,
	code: int | str | None = None,
	*,
	origin: str | None = None,
	stack: bool = False,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			message=message,
			value=code,
			level=LogLevel.Error,
			origin=origin,
			context=context,
			stack=callstack(2) if stack else None,
		)
	)


def event(
	event: str,
	value: TPrimitive | None = None,
	*,
	origin: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			name=event,
			value=value,
			type=LogType.Event,
			origin=origin,
			context=context,
		)
	)


def exception(
	exception: BaseException,
	message: str | None = None,
	*,
	origin: str | None = None,
) -> BaseException:
	"""Logs the exception along with its traceback. Returns the exception so
	that this can be used like `raise exception(e)`."""
	context: list[str] = []
	tb = exception.__traceback__
	while tb:
		code = tb.tb_frame.f_code
		context.append(f"{code.co_name} at {tb.tb_lineno} in {code.co_filename}")
		tb = tb.tb_next
	send(
		entry(
			message=f"{f'{message}: ' if message else ''}[{exception.__class__.__name__}] {exception}",
			level=LogLevel.Exception,
			origin=origin,
			context={},
			stack=context or None,
		)
	)
	return exception


class Logger:
	"""A logger bound to a given origin, so that it can be handed to the
	components that log instead of them reaching for module globals."""

	def __init__(self, origin: str):
		self.origin: str = origin

	def debug(self, message: str, **context: TPrimitive) -> LogEntry:
		return debug(message, origin=self.origin, **context)

	def info(self, message: str, **context: TPrimitive) -> LogEntry:
		return info(message, origin=self.origin, **context)

	def warning(self, message: str, **context: TPrimitive) -> LogEntry:
		return warning(message, origin=self.origin, **context)

	def error(
		self, message: str, code: int | str | None = None, **context: TPrimitive
	) -> LogEntry:
		return error(message, code, origin=self.origin, **context)

	def event(
		self, name: str, value: TPrimitive | None = None, **context: TPrimitive
	) -> LogEntry:
		return event(name, value, origin=self.origin, **context)

	def exception(
		self, error: BaseException, message: str | None = None
	) -> BaseException:
		return exception(error, message, origin=self.origin)

	def __repr__(self) -> str:
		return f"(Logger {self.origin})"


# EOF
