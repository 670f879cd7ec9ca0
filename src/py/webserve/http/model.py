import os
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import (
	Any,
	BinaryIO,
	Callable,
	Literal,
	NamedTuple,
	TypeAlias,
	Union,
)

from .api import ResponseFactory
from .status import HTTP_STATUS

DEFAULT_ENCODING: str = "utf8"

# -----------------------------------------------------------------------------
#
# HELPERS
#
# -----------------------------------------------------------------------------


def headername(name: str, *, headers: dict[str, str] = {}) -> str:
	"""Normalizes the header name as `Kebab-Case`."""
	if name in headers:
		return headers[name]
	key: str = name.lower()
	if key in headers:
		return headers[key]
	else:
		normalized: str = "-".join(_.capitalize() for _ in name.split("-"))
		headers[key] = normalized
		return normalized


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class TLSHandshake(NamedTuple):
	"""Represents a TLS handshake, which we skip over."""

	pass


class HTTPRequestLine(NamedTuple):
	"""Represents a request status line"""

	method: str
	path: str
	query: str
	protocol: str
	# The request target as sent, when it differs from the path and query
	target: str = ""

	@property
	def uri(self) -> str:
		if self.target:
			return self.target
		return f"{self.path}?{self.query}" if self.query else self.path


class HTTPHeaders(NamedTuple):
	"""Wraps HTTP headers, keeping key information for response/request processing."""

	headers: dict[str, str]
	contentType: str | None = None
	contentLength: int | None = None


class HTTPProcessingStatus(Enum):
	"""Internal parser/processor state management"""

	Processing = 0
	Body = 1
	Complete = 2
	Timeout = 10
	NoData = 11
	BadFormat = 12


# Type alias for what the parser produces
HTTPAtom: TypeAlias = Union[
	HTTPRequestLine,
	TLSHandshake,
	HTTPHeaders,
	HTTPProcessingStatus,
	"HTTPRequest",
]

# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class HTTPRequestError(Exception):
	"""To be raised by handlers to generate an error response, 500 by
	default."""

	def __init__(
		self,
		message: str,
		status: int | None = None,
		contentType: str | None = None,
	):
		super().__init__(message)
		self.message: str = message
		self.status: int | None = status
		self.contentType: str | None = contentType


# -----------------------------------------------------------------------------
#
# BODY
#
# -----------------------------------------------------------------------------


class HTTPBodyBlob(NamedTuple):
	"""Represents a part (or a whole) body as bytes."""

	payload: bytes = b""
	length: int = 0
	# NOTE: We don't know how many is remaining
	remaining: int | None = None


class HTTPBodyFile:
	"""Represents an HTTP body streamed from a file. When `file` is given,
	the body is read from that handle from its current position, and the
	handle is left open for its owner to close. Otherwise the file at
	`path` is opened for the duration of the write."""

	__slots__ = ["path", "file", "length", "written"]

	def __init__(
		self, path: Path, file: BinaryIO | None = None, length: int | None = None
	):
		self.path: Path = path
		self.file: BinaryIO | None = file
		self.length: int = (
			length
			if length is not None
			else (os.fstat(file.fileno()).st_size if file else path.stat().st_size)
		)
		# Updated by the writer as chunks are sent
		self.written: int = 0

	def __repr__(self) -> str:
		return f"(HTTPBodyFile {self.path} {self.written}/{self.length})"


# The different types of bodies that are managed
THTTPBody: TypeAlias = HTTPBodyBlob | HTTPBodyFile


class HTTPBodyWriter(ABC):
	"""A generic writer for response heads and bodies."""

	__slots__ = ["shouldClose"]

	def __init__(self) -> None:
		self.shouldClose: bool = False

	async def write(self, body: THTTPBody | bytes | None) -> bool:
		"""Writes the given type of body."""
		if isinstance(body, bytes):
			return await self._writeBytes(body)
		elif isinstance(body, HTTPBodyBlob):
			return await self._writeBytes(body.payload)
		elif isinstance(body, HTTPBodyFile):
			return await self._writeFile(body)
		elif body is None:
			return True
		else:
			raise ValueError(f"Unsupported body format: {body}")

	async def _writeFile(self, body: HTTPBodyFile, size: int = 64_000) -> bool:
		if body.file is None:
			with open(body.path, "rb") as f:
				return await self._writeStream(body, f, size)
		else:
			return await self._writeStream(body, body.file, size)

	async def _writeStream(self, body: HTTPBodyFile, file: BinaryIO, size: int) -> bool:
		while chunk := file.read(size):
			await self._writeBytes(chunk, True)
			body.written += len(chunk)
		return True

	@abstractmethod
	async def _writeBytes(
		self, chunk: bytes | None | Literal[False], more: bool = False
	) -> bool: ...


# -----------------------------------------------------------------------------
#
# REQUESTS
#
# -----------------------------------------------------------------------------


class HTTPRequest(ResponseFactory["HTTPResponse"]):
	"""Represents an HTTP requests, which also acts as a factory for
	responses."""

	__slots__ = [
		"protocol",
		"method",
		"path",
		"query",
		"uri",
		"_headers",
		"_body",
	]

	def __init__(
		self,
		method: str,
		path: str,
		query: dict[str, str] | None,
		headers: HTTPHeaders,
		body: HTTPBodyBlob | None = None,
		protocol: str = "HTTP/1.1",
		uri: str | None = None,
	):
		super().__init__()
		self.method: str = method
		self.path: str = path
		self.query: dict[str, str] | None = query
		self.protocol: str = protocol
		# The request target as sent by the client, with the query string
		self.uri: str = path if uri is None else uri
		self._headers: HTTPHeaders = headers
		self._body: HTTPBodyBlob | None = body

	@property
	def headers(self) -> dict[str, str]:
		return self._headers.headers

	def header(self, name: str) -> str | None:
		return self._headers.headers.get(headername(name))

	@property
	def userAgent(self) -> str:
		return self.header("User-Agent") or ""

	@property
	def referrer(self) -> str:
		# The header name is misspelled since RFC 1945
		return self.header("Referer") or ""

	@property
	def contentType(self) -> str | None:
		return self._headers.contentType

	@property
	def contentLength(self) -> int | None:
		return self._headers.contentLength

	@property
	def hasRemaining(self) -> bool:
		"""Tells if part of the body was not received with the request."""
		return bool(self._body and self._body.remaining)

	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> "HTTPResponse":
		return HTTPResponse.Create(
			status=status,
			message=message,
			content=content,
			contentType=contentType,
			contentLength=contentLength,
			protocol=self.protocol,
			headers=headers,
		)

	def __str__(self) -> str:
		return f"Request({self.method} {self.uri} {self.headers})"


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class HTTPResponse:
	"""An HTTP response."""

	@staticmethod
	def Create(
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
		message: str | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPResponse":
		"""Factory method to create HTTP response objects. The content can be
		text, bytes, a path or an open binary file."""
		payload: bytes | None = None
		body: THTTPBody | None = None
		if content is None:
			payload = b""
		elif isinstance(content, str):
			payload = content.encode(DEFAULT_ENCODING)
		elif isinstance(content, bytes):
			payload = content
		elif isinstance(content, HTTPBodyFile):
			body = content
		elif isinstance(content, Path):
			body = HTTPBodyFile(content.absolute())
		elif hasattr(content, "read") and hasattr(content, "name"):
			body = HTTPBodyFile(Path(content.name), content)
		else:
			raise ValueError(f"Unsupported content {type(content)}:{content}")
		if payload is not None:
			body = HTTPBodyBlob(payload, len(payload))
		if contentLength is None and body is not None:
			contentLength = body.length
		updated_headers: dict[str, str] = dict(headers) if headers else {}
		if contentType is not None:
			updated_headers["Content-Type"] = contentType
		else:
			contentType = updated_headers.get("Content-Type")
		if contentLength is not None:
			updated_headers["Content-Length"] = str(contentLength)
		return HTTPResponse(
			status=status,
			message=message or HTTP_STATUS.get(status, "Unknown status"),
			headers=HTTPHeaders(
				updated_headers,
				contentType=contentType,
				contentLength=contentLength,
			),
			body=body,
			protocol=protocol,
		)

	__slots__ = [
		"protocol",
		"status",
		"message",
		"headers",
		"body",
		"shouldClose",
		"error",
		"_onClose",
	]

	def __init__(
		self,
		protocol: str,
		status: int,
		message: str | None,
		headers: HTTPHeaders,
		body: THTTPBody | None = None,
		shouldClose: bool = False,
	):
		super().__init__()
		self.protocol: str = protocol
		self.status: int = status
		self.message: str | None = message
		self.headers: HTTPHeaders = headers
		self.body: THTTPBody | None = body
		self.shouldClose: bool = shouldClose
		# Set by the server when sending the response failed
		self.error: Exception | None = None
		self._onClose: Callable[[HTTPResponse], None] | None = None

	def header(self, name: str) -> str | None:
		return self.headers.headers.get(headername(name))

	def head(self) -> bytes:
		"""Serializes the head as a payload."""
		message: str = self.message or HTTP_STATUS.get(self.status, "Unknown status")
		lines: list[str] = [
			f"{headername(k)}: {v}" for k, v in self.headers.headers.items()
		]
		lines.insert(0, f"{self.protocol} {self.status} {message}")
		lines.append("")
		lines.append("")
		# Header values are expected to be latin-1, as per RFC 9110
		return "\r\n".join(lines).encode("latin-1", errors="replace")

	def onClose(
		self, callback: Callable[["HTTPResponse"], None] | None
	) -> "HTTPResponse":
		self._onClose = callback
		return self

	def close(self) -> "HTTPResponse":
		"""Runs the close callback, once. This is called by the server once
		the response was sent, or failed to be sent."""
		callback = self._onClose
		self._onClose = None
		if callback:
			callback(self)
		return self

	def __str__(self) -> str:
		return f"Response({self.protocol} {self.status} {self.message} {self.headers} {self.body})"


# EOF
