import asyncio
import sys
from pathlib import Path
from typing import Iterator, Literal

import pytest

# Makes the package importable when running from a checkout
sys.path.insert(0, str(Path(__file__).parent.parent / "src" / "py"))

from webserve.config import ServerConfig  # NOQA: E402
from webserve.http.model import HTTPBodyWriter, HTTPHeaders, HTTPRequest, HTTPResponse  # NOQA: E402
from webserve.http.parser import parseQuery, parseTarget  # NOQA: E402
from webserve.model import Application, Service, mount  # NOQA: E402
from webserve.server import AIOSocketServer  # NOQA: E402
from webserve.services.responder import Responder  # NOQA: E402
from webserve.utils.logging import LogEntry, subscribe, unsubscribe  # NOQA: E402


class MemoryWriter(HTTPBodyWriter):
	"""Collects what is written in memory. When `failOn` is given, the
	write with that number (starting at 1) fails as if the client went
	away."""

	def __init__(self, failOn: int | None = None) -> None:
		super().__init__()
		self.data: bytearray = bytearray()
		self.writes: int = 0
		self.failOn: int | None = failOn

	async def _writeBytes(
		self, chunk: bytes | None | Literal[False], more: bool = False
	) -> bool:
		if chunk:
			self.writes += 1
			if self.writes == self.failOn:
				raise BrokenPipeError("Client went away")
			self.data += chunk
		return True


class Sent:
	"""A response as received by the client."""

	def __init__(self, response: HTTPResponse | None, data: bytes):
		self.response = response
		head, _, self.body = data.partition(b"\r\n\r\n")
		lines = head.decode("latin-1").split("\r\n")
		self.status: int = int(lines[0].split(" ")[1])
		self.headers: dict[str, str] = dict(
			tuple(_.split(": ", 1)) for _ in lines[1:] if _
		)

	@property
	def text(self) -> str:
		return self.body.decode("utf-8")


def request(
	path: str, method: str = "GET", headers: dict[str, str] | None = None
) -> HTTPRequest:
	"""Creates a request for the given target, like the parser does."""
	requestPath, query = parseTarget(path)
	return HTTPRequest(
		method,
		requestPath,
		parseQuery(query),
		HTTPHeaders(headers or {}),
		uri=path,
	)


def start(*services: Service) -> Application:
	app = mount(*services)
	asyncio.run(app.start())
	return app


def send(
	app: Application, req: HTTPRequest, writer: MemoryWriter | None = None
) -> Sent:
	"""Sends the response to the request like the server does, returning
	what the client received."""
	writer = writer or MemoryWriter()
	res = asyncio.run(AIOSocketServer.SendResponse(req, app, writer))
	return Sent(res, bytes(writer.data))


@pytest.fixture
def logs() -> Iterator[list[LogEntry]]:
	entries: list[LogEntry] = []
	handler = subscribe(entries.append)
	yield entries
	unsubscribe(handler)


@pytest.fixture
def site(tmp_path: Path) -> Path:
	"""A source directory with the common resolution cases."""
	src = tmp_path / "src"
	src.mkdir()
	(src / "404.html").write_text("<p>Not found</p>")
	(src / "about.html").write_text("<p>About</p>")
	(src / "about").mkdir()
	(src / "about" / "index.html").write_text("<p>About index</p>")
	(src / "docs").mkdir()
	(src / "docs" / "index.html").write_text("<p>Docs</p>")
	(src / "page.html").write_text("<p>Page</p>")
	(src / "style.css").write_text("body {}")
	(tmp_path / "secret.txt").write_text("secret")
	return src


def responder(src: Path, redirects: str | Path = "") -> Responder:
	return Responder(ServerConfig(src=str(src), redirects=str(redirects)))


# EOF
