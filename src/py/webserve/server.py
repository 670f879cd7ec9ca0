import asyncio
import socket
import threading
from dataclasses import dataclass
from signal import SIGINT, SIGTERM
from typing import Any, Callable, Coroutine, Literal, NamedTuple

from .config import HOST, PORT, LOG_REQUESTS
from .http.model import (
	HTTPBodyWriter,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPResponse,
)
from .http.parser import HTTPParser
from .model import Application, Service, mount
from .utils.limits import LimitType, unlimit
from .utils.logging import debug, event, exception, info, logged, warning, error, LogLevel


@dataclass(slots=True)
class ServerState:
	isRunning: bool = True

	def stop(self) -> None:
		info("Server stopping…")
		self.isRunning = False

	def onException(
		self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
	) -> None:
		e = context.get("exception")
		if e:
			exception(e)


class ServerOptions(NamedTuple):
	host: str = "0.0.0.0"  # nosec: B104
	port: int = 8000
	backlog: int = 10_000
	# This is the polling timeout for accepting new connections, so that
	# the server notices when it is stopped.
	polling: float = 1.0
	readsize: int = 4_096
	# Idle connections are closed after that many seconds
	keepalive: float = 60.0
	logRequests: bool = LOG_REQUESTS
	condition: Callable[[], bool] | None = None
	stopSignals: bool = True


OPTIONS: ServerOptions = ServerOptions()

SERVER_ERROR: bytes = (
	b"HTTP/1.1 500 Internal Server Error\r\n"
	b"Content-Type: text/plain; charset=utf-8\r\n"
	b"Content-Length: 4\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b"oops"
)

SERVER_BAD_REQUEST: bytes = (
	b"HTTP/1.1 400 Bad Request\r\n"
	b"Content-Type: text/plain; charset=utf-8\r\n"
	b"Content-Length: 11\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b"Bad Request"
)


class AIOSocketBodyWriter(HTTPBodyWriter):
	"""Specialized body writer to work with AIO sockets."""

	def __init__(
		self,
		client: "socket.socket",
		loop: asyncio.AbstractEventLoop,
	) -> None:
		super().__init__()
		self.client: socket.socket = client
		self.loop: asyncio.AbstractEventLoop = loop

	async def _writeBytes(
		self, chunk: bytes | None | Literal[False], more: bool = False
	) -> bool:
		if chunk is None or chunk is False:
			pass
		else:
			await self.loop.sock_sendall(self.client, chunk)
		return True


class AIOSocketServer:
	"""AsyncIO backend using sockets directly."""

	@classmethod
	async def OnRequest(
		cls,
		app: Application,
		client: socket.socket,
		*,
		loop: asyncio.AbstractEventLoop,
		options: ServerOptions,
	) -> None:
		"""Asynchronous worker, processing a socket in the context
		of an application. Requests are processed in order, until the
		connection is closed by either side or the keep-alive times out."""
		size: int = options.readsize
		buffer = bytearray(size)
		keep_alive: bool = True
		iteration: int = 0
		status: HTTPProcessingStatus = HTTPProcessingStatus.Processing
		read_count: int = 0
		res_count: int = 0
		req_count: int = 0
		try:
			parser: HTTPParser = HTTPParser()
			writer: AIOSocketBodyWriter = AIOSocketBodyWriter(client, loop)
			while keep_alive and not writer.shouldClose:
				try:
					n = await asyncio.wait_for(
						loop.sock_recv_into(client, buffer),
						timeout=options.keepalive,
					)
					read_count += n
				except TimeoutError:
					status = HTTPProcessingStatus.Timeout
					break
				if not n:
					# A no-data means a close
					status = HTTPProcessingStatus.NoData
					break
				# With HTTP pipelining, the chunk may hold more than one request.
				stream = parser.feed(bytes(buffer[:n]))
				logged(LogLevel.Debug) and debug(
					"Reading Request(s)",
					Client=f"{id(client):x}",
					Read=n,
					Iteration=iteration,
					Count=req_count,
				)
				for atom in stream:
					if atom is HTTPProcessingStatus.BadFormat:
						warning("Malformed request", Client=f"{id(client):x}")
						await writer.write(SERVER_BAD_REQUEST)
						keep_alive = False
					elif isinstance(atom, HTTPRequest):
						req = atom
						if options.logRequests:
							event(req.method, req.uri)
						req_count += 1
						if (
							req.protocol == "HTTP/1.0"
							or (req.header("Connection") or "").lower() == "close"
							# Bodies we did not fully read or can't delimit
							# would be parsed as the next request.
							or req.hasRemaining
							or req.header("Transfer-Encoding") is not None
						):
							keep_alive = False
						res = await cls.SendResponse(req, app, writer)
						if res:
							res_count += 1
							if res.shouldClose:
								keep_alive = False
					if not keep_alive or writer.shouldClose:
						break
				iteration += 1

			if res_count != req_count:
				warning("Incomplete responses", Requests=req_count, Responses=res_count)
			if status is HTTPProcessingStatus.NoData and read_count and not req_count:
				warning(
					"Client did not feed a complete request",
					ReadCount=read_count,
					Status=status.name,
				)
		except Exception as e:
			exception(e)
		finally:
			# The above loop takes care of keep alive, so we always close
			# the connection on exit.
			client.close()

	@staticmethod
	async def SendResponse(
		request: HTTPRequest,
		app: Application,
		writer: HTTPBodyWriter,
	) -> HTTPResponse | None:
		"""Processes the request within the application and sends a response
		using the given writer. Errors while sending are stored in the
		response's `error`, and the response is always closed."""
		req: HTTPRequest = request
		res: HTTPResponse | None = None
		try:
			r: HTTPResponse | Coroutine[Any, HTTPResponse, Any] = app.process(req)
			res = r if isinstance(r, HTTPResponse) else await r
		except Exception as e:
			exception(e, f"Could not process request {req.method} {req.path}")
		if res is None:
			warning(
				"Application did not return a response",
				Method=req.method,
				Path=req.path,
			)
			writer.shouldClose = True
			try:
				await writer.write(SERVER_ERROR)
			except (BrokenPipeError, ConnectionError):
				pass
			return None
		try:
			await writer.write(res.head())
			await writer.write(res.body)
		except (BrokenPipeError, ConnectionError) as e:
			# Client did an early close
			res.error = e
			writer.shouldClose = True
		except Exception as e:
			res.error = exception(e)
			writer.shouldClose = True
		finally:
			try:
				res.close()
			except Exception as e:
				exception(e)
		return res

	@classmethod
	async def Serve(
		cls,
		app: Application,
		options: ServerOptions = ServerOptions(),
	) -> None:
		"""Main server coroutine. The application is started before the
		server accepts connections, and stopped once it's done."""
		await app.start()
		server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		server.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
		try:
			server.bind((options.host, options.port))
		except OSError as e:
			server.close()
			await app.stop()
			error(
				f"Unable to bind to {options.host}:{options.port}, aborting.",
				"HOSTPORTERR",
			)
			raise e
		# The argument is the backlog of connections that will be accepted before
		# they are refused.
		server.listen(options.backlog)
		server.setblocking(False)

		tasks: set[asyncio.Task[None]] = set()
		loop = asyncio.get_running_loop()
		state = ServerState()
		# Signal handlers can only be set from the main thread.
		if (
			options.stopSignals
			and threading.current_thread() is threading.main_thread()
		):
			loop.add_signal_handler(SIGINT, lambda: state.stop())
			loop.add_signal_handler(SIGTERM, lambda: state.stop())
		loop.set_exception_handler(state.onException)

		info(
			"Server listening",
			Host=options.host,
			Port=options.port,
		)

		try:
			while state.isRunning:
				if options.condition and not options.condition():
					break
				try:
					client, _ = await asyncio.wait_for(
						loop.sock_accept(server), timeout=options.polling or 1.0
					)
					client.setblocking(False)
					task = loop.create_task(
						cls.OnRequest(app, client, loop=loop, options=options)
					)
					tasks.add(task)
					task.add_done_callback(tasks.discard)
				except asyncio.TimeoutError:
					continue
				except OSError as e:
					# This can be: [OSError] [Errno 24] Too many open files
					if e.errno == 24:
						await asyncio.sleep(0.1)
					else:
						exception(e)
		finally:
			server.close()
			for task in tasks:
				task.cancel()
			await asyncio.gather(*tasks, return_exceptions=True)
			await app.stop()


def run(
	*components: Application | Service,
	host: str = HOST,
	port: int = PORT,
	backlog: int = OPTIONS.backlog,
	condition: Callable[[], bool] | None = None,
	polling: float = OPTIONS.polling,
	logRequests: bool = OPTIONS.logRequests,
	keepalive: float = OPTIONS.keepalive,
) -> None:
	"""High level function to run the server. Exceptions raised while
	starting the application, like configuration errors, are propagated."""
	unlimit(LimitType.Files)
	options = ServerOptions(
		host=host,
		port=port,
		backlog=backlog,
		condition=condition,
		polling=polling,
		logRequests=logRequests,
		keepalive=keepalive,
	)
	app = mount(*components)
	try:
		asyncio.run(AIOSocketServer.Serve(app, options))
	except KeyboardInterrupt:
		event("ManualShutdown")
	event("EOK")


# EOF
