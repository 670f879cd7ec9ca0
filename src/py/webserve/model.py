from typing import Optional, Iterable, ClassVar, Any, Coroutine, NamedTuple

from .routing import Handler, Dispatcher
from .http.model import HTTPRequest, HTTPResponse
from .utils.logging import debug, exception

# -----------------------------------------------------------------------------
#
# SERVICE
#
# -----------------------------------------------------------------------------


class Service:
	"""Services group handlers, registered under a common prefix when
	mounted in an application."""

	PREFIX: ClassVar[str] = ""
	NO_HANDLER: ClassVar[list[str]] = [
		"name",
		"app",
		"prefix",
		"_handlers",
		"isMounted",
		"handlers",
		"start",
		"stop",
	]

	def __init__(
		self, name: Optional[str] = None, *, prefix: str | None = None
	) -> None:
		self.name: str = name or self.__class__.__name__
		self.app: Optional[Application] = None
		self.prefix = prefix or self.PREFIX
		self._handlers: Optional[list[Handler]] = None

	async def start(self) -> None:
		"""Can be overridden to do asynchronous pre-start work"""
		pass

	async def stop(self) -> None:
		"""Can be overridden to do asynchronous post-stop work"""
		pass

	@property
	def isMounted(self) -> bool:
		return self.app is not None

	@property
	def handlers(self) -> list[Handler]:
		if self._handlers is None:
			self._handlers = list(self.iterHandlers())
		return self._handlers

	def iterHandlers(self) -> Iterable[Handler]:
		for value in (getattr(self, _) for _ in dir(self) if _ not in self.NO_HANDLER):
			handler = Handler.Get(value)
			if handler:
				yield handler

	def __repr__(self) -> str:
		return f"(Service {self.name}{' :mounted' if self.isMounted else ''})"


# -----------------------------------------------------------------------------
#
# APPLICATION
#
# -----------------------------------------------------------------------------


class Application:
	def __init__(self, services: list[Service] | None = None) -> None:
		self.dispatcher: Dispatcher = Dispatcher()
		self.services: list[Service] = []
		for service in services or ():
			self.mount(service)

	async def start(self) -> "Application":
		"""Starts the services in order. Exceptions are propagated, so that
		a service that can't start aborts the application."""
		self.dispatcher.prepare()
		for srv in self.services:
			await srv.start()
		return self

	async def stop(self) -> "Application":
		for i, srv in enumerate(self.services):
			try:
				await srv.stop()
			except Exception as e:
				exception(e, f"Could not stop service #{i} {srv.name}")
				raise e
		return self

	def process(
		self, request: HTTPRequest
	) -> HTTPResponse | Coroutine[Any, HTTPResponse, Any]:
		route, params = self.dispatcher.match(
			request.method or "GET", request.path or "/"
		)
		if route:
			handler = route.handler
			if not handler:
				raise RuntimeError(f"Route has no handler defined: {route}")
			return handler(request, params or {})
		else:
			debug("No route found", Method=request.method, Path=request.path)
			return request.notFound()

	def mount(self, service: Service, prefix: Optional[str] = None) -> Service:
		if service.isMounted:
			raise RuntimeError(
				f"Cannot mount service, it is already mounted: {service}"
			)
		for handler in service.handlers:
			self.dispatcher.register(handler, prefix or service.prefix)
		service.app = self
		self.services.append(service)
		return service


class Components(NamedTuple):
	"""Groups Application and Service objects together"""

	app: Application | None
	services: list[Service]

	@staticmethod
	def Make(components: Iterable[Application | Service]) -> "Components":
		"""Makes a Component value given the applications and services."""
		app: Application | None = None
		services: list[Service] = []
		for item in components:
			if isinstance(item, Application):
				if app is not None:
					raise RuntimeError(f"Only one application can be given: {item}")
				app = item
			elif isinstance(item, Service):
				services.append(item)
			else:
				raise RuntimeError(f"Unsupported component type {type(item)}: {item}")
		return Components(app, services)


def mount(*components: Application | Service) -> Application:
	"""Mounts the given services into an application, creating one when
	none is given."""
	c = Components.Make(components)
	app: Application = c.app or Application()
	for service in c.services:
		app.mount(service)
	return app


# EOF
