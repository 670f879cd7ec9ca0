from typing import (
	Coroutine,
	Callable,
	Optional,
	Any,
	Pattern,
	Type,
	NamedTuple,
	ClassVar,
)
from inspect import iscoroutine
import re

from .decorators import Webserve
from .http.model import HTTPRequest, HTTPRequestError, HTTPResponse
from .utils.logging import debug


async def awaited(value: Any) -> Any:
	if iscoroutine(value):
		return await value
	else:
		return value


# -----------------------------------------------------------------------------
#
# ROUTE
#
# -----------------------------------------------------------------------------
#
# Routes represent collections/sets of paths that can be matched. Typically
# routes are made of chunks separated by a `/`.


class RoutePattern(NamedTuple):
	"""Used in a parameter chunk to extract/match from the give path."""

	expr: str
	extractor: Type[Any] | Callable[[str], Any]


class TextChunk(NamedTuple):
	"""A raw text chunk"""

	text: str


class ParameterChunk(NamedTuple):
	"""A parameterizable chunk, where the chunk must match the given patttern."""

	name: str
	pattern: RoutePattern


TChunk = TextChunk | ParameterChunk


class Route:
	"""Parses a route where template expressions are like `{name}` or
	`{name:type}`. Routes can have priorities and be assigned handlers,
	they are then registered in the dispatcher to match requests."""

	RE_PATTERN_NAME: ClassVar[Pattern[str]] = re.compile("^[A-Za-z]+$")

	RE_TEMPLATE: ClassVar[Pattern[str]] = re.compile(
		r"\{(?P<name>[\w][_\w\d]*)(:(?P<type>[^}]+))?\}"
	)

	PATTERNS: ClassVar[dict[str, RoutePattern]] = {
		"id": RoutePattern(r"[a-zA-Z0-9\-_]+", str),
		"name": RoutePattern(r"\w[\-\w]*", str),
		"string": RoutePattern(r"[^/]+", str),
		"digits": RoutePattern(r"\d+", int),
		"int": RoutePattern(r"\-?\d+", int),
		"path": RoutePattern(r"[^:@]+", str),
		"segment": RoutePattern(r"[^/]+", str),
		"any": RoutePattern(r".*", str),
		"rest": RoutePattern(r".+", str),
	}

	@classmethod
	def Parse(cls, expression: str) -> list[TChunk]:
		"""Parses routes expressed as strings where patterns are denoted
		as `{name}` or `{name:pattern}`"""
		chunks: list[TChunk] = []
		offset: int = 0
		for match in cls.RE_TEMPLATE.finditer(expression):
			chunks.append(TextChunk(expression[offset : match.start()]))
			name: str = match.group("name")
			pattern: str = (match.group("type") or name).lower()
			if pattern in cls.PATTERNS:
				pat = cls.PATTERNS[pattern]
			elif cls.RE_PATTERN_NAME.match(pattern):
				raise ValueError(
					f"Route pattern '{pattern}' is not registered, pick one of: {', '.join(sorted(cls.PATTERNS.keys()))}"
				)
			else:
				# The pattern is a regular expression
				pat = RoutePattern(pattern, str)
			chunks.append(ParameterChunk(name, pat))
			offset = match.end()
		chunks.append(TextChunk(expression[offset:]))
		return chunks

	def __init__(self, text: str, handler: Optional["Handler"] = None):
		self.text: str = text
		self.chunks: list[TChunk] = self.Parse(text)
		self.params: dict[str, ParameterChunk] = {
			_.name: _ for _ in self.chunks if isinstance(_, ParameterChunk)
		}
		self.handler: Handler | None = handler
		self._regexp: Pattern[str] | None = None

	@property
	def priority(self) -> int:
		"""Returns the priority of the route, defined by `handler.priority`
		or defaulting to 0."""
		return self.handler.priority if self.handler else 0

	@property
	def regexp(self) -> Pattern[str]:
		if not self._regexp:
			try:
				self._regexp = re.compile(f"^{self.toRegExp()}$")
			except re.error as e:
				raise ValueError(
					f"Route syntax is malformed: {repr(self.toRegExp())}"
				) from e
		return self._regexp

	def toRegExp(self) -> str:
		res: list[str] = []
		for chunk in self.chunks:
			if isinstance(chunk, TextChunk):
				res.append(re.escape(chunk.text))
			else:
				res.append(f"(?P<{chunk.name}>{chunk.pattern.expr})")
		return "".join(res)

	def match(self, path: str) -> dict[str, Any] | None:
		matches = self.regexp.match(path)
		return (
			{k: v.pattern.extractor(matches.group(k)) for k, v in self.params.items()}
			if matches
			else None
		)

	def __repr__(self) -> str:
		return f"(Route \"{self.text}\" ({' '.join(_ for _ in self.params)}))"


# -----------------------------------------------------------------------------
#
# HANDLER
#
# -----------------------------------------------------------------------------


class Handler:
	"""A handler wraps a function and maps it to paths for HTTP methods,
	along with a priority. The handler is used by the dispatchers to match
	a request."""

	@classmethod
	def Has(cls, value: Any) -> bool:
		return hasattr(value, Webserve.ON)

	@classmethod
	def Get(cls, value: Any) -> Optional["Handler"]:
		return (
			Handler(
				functor=value,
				methods=getattr(value, Webserve.ON),
				priority=getattr(value, Webserve.ON_PRIORITY, 0),
			)
			if cls.Has(value)
			else None
		)

	def __init__(
		self,
		functor: Callable[..., Any],
		methods: list[tuple[str, str]],
		priority: int = 0,
	):
		self.functor = functor
		self.methods: dict[str, list[str]] = {}
		for method, path in methods:
			self.methods.setdefault(method, []).append(path)
		self.priority = priority

	async def __call__(
		self, request: HTTPRequest, params: dict[str, Any]
	) -> HTTPResponse | Coroutine[Any, HTTPResponse, Any]:
		try:
			return await awaited(self.functor(request, **params))
		except HTTPRequestError as error:
			return request.error(
				error.status or 500,
				error.message,
				contentType=error.contentType or "text/plain; charset=utf-8",
			)

	def __repr__(self) -> str:
		methods = " ".join(
			f'({k} {" ".join(repr(_) for _ in v)})' for k, v in self.methods.items()
		)
		return f"(Handler {self.priority} ({methods}) '{self.functor}')"


# -----------------------------------------------------------------------------
#
# DISPATCHER
#
# -----------------------------------------------------------------------------


class Dispatcher:
	"""A dispatcher registers handlers that respond to HTTP methods
	on a given path/URI. Routes registered for the `ANY` method are used
	when no route is registered for the request's method."""

	ANY: ClassVar[str] = "ANY"

	def __init__(self) -> None:
		self.routes: dict[str, list[Route]] = {}
		self.isPrepared: bool = True

	def register(self, handler: Handler, prefix: str | None = None) -> "Dispatcher":
		"""Registers the handlers and their routes, adding the prefix if given."""
		for method, paths in handler.methods.items():
			for path in paths:
				path = f"{prefix.rstrip('/')}{path}" if prefix else path
				path = f"/{path}" if not path.startswith("/") else path
				route: Route = Route(path, handler)
				debug("Registered route", Method=method, Path=path)
				self.routes.setdefault(method, []).append(route)
				self.isPrepared = False
		return self

	def prepare(self) -> "Dispatcher":
		"""Sorts the routes by decreasing priority, so that matching can stop
		at the first match."""
		self.routes = {
			method: sorted(routes, key=lambda _: -_.priority)
			for method, routes in self.routes.items()
		}
		self.isPrepared = True
		return self

	def match(self, method: str, path: str) -> tuple[Route | None, dict[str, Any] | None]:
		"""Matches a given `method` and `path` with the registered routes,
		returning the matching route and the extracted parameters."""
		if not self.isPrepared:
			self.prepare()
		for scope in (method, self.ANY):
			for route in self.routes.get(scope, ()):
				if (match := route.match(path)) is not None:
					return route, match
		return None, None


# EOF
