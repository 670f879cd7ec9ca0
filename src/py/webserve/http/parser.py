from typing import Iterator, Literal
from urllib.parse import unquote_plus, urlsplit

from .model import (
	HTTPRequest,
	HTTPRequestLine,
	HTTPHeaders,
	HTTPBodyBlob,
	HTTPAtom,
	HTTPProcessingStatus,
	TLSHandshake,
	headername,
)

EOL: bytes = b"\r\n"

# Request lines and header lines longer than this are rejected
MAX_LINE: int = 64_000


class LineTooLong(ValueError):
	pass


class LineParser:
	"""Accumulates bytes until an end of line is found."""

	__slots__ = ["buffer", "line", "eol", "eolsize", "offset", "limit"]

	def __init__(self, limit: int = MAX_LINE) -> None:
		self.buffer: bytearray = bytearray()
		self.line: bytes | None = None
		self.offset: int = 0
		self.eol: bytes = EOL
		self.eolsize: int = len(EOL)
		self.limit: int = limit

	def reset(self) -> "LineParser":
		self.buffer.clear()
		self.line = None
		self.offset = 0
		return self

	def flush(self) -> bytes | None:
		return self.line

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bytes | None, int]:
		"""Returns the matching line and how many bytes were read in chunk from
		start. When line is None, then the whole chunk has been processed."""
		pos = len(self.buffer)
		self.buffer += chunk[start:]
		end = self.buffer.find(self.eol, self.offset)
		if end == -1:
			if len(self.buffer) > self.limit:
				raise LineTooLong(f"Line exceeds {self.limit} bytes")
			self.offset = max(0, len(self.buffer) - self.eolsize + 1)
			return None, len(chunk) - start
		else:
			self.line = bytes(self.buffer[:end])
			self.buffer.clear()
			self.offset = 0
			return self.line, (end - pos) + self.eolsize


class MessageParser:
	"""Parses an HTTP request line."""

	__slots__ = ["line", "value", "skipping"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.value: HTTPRequestLine | TLSHandshake | None = None
		self.skipping: int = 0

	def flush(self) -> HTTPRequestLine | TLSHandshake | None:
		res = self.value
		self.reset()
		return res

	def reset(self) -> "MessageParser":
		self.line.reset()
		self.value = None
		self.skipping = 0
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		n = len(chunk)
		available = n - start
		if self.skipping:
			# We have remaining data to read/skip, so we do that
			read = min(available, self.skipping)
			self.skipping -= read
			return None, read
		elif available >= 5 and chunk[start] == 0x16 and not self.line.buffer:
			# This is a TLS Handshake (browsers try it on plain HTTP ports), we
			# parse the length and skip it.
			size = 5 + (chunk[start + 3] << 8) + chunk[start + 4]
			if available >= size:
				return None, size
			else:
				self.skipping = size - available
				return None, available
		else:
			line, read = self.line.feed(chunk, start)
			if line is None:
				return None, read
			elif not line:
				# Empty lines before a request line are ignored (RFC 9112 §2.2)
				self.line.reset()
				return None, read
			else:
				ln = line.decode("latin-1")
				i = ln.find(" ")
				j = ln.rfind(" ")
				if i == -1 or j == i:
					raise ValueError(f"Malformed request line: {ln!r}")
				target: str = ln[i + 1 : j]
				path, query = parseTarget(target)
				self.value = HTTPRequestLine(ln[0:i], path, query, ln[j + 1 :], target)
				return True, read

	def __str__(self) -> str:
		return f"MessageParser({self.value})"


class HeadersParser:
	__slots__ = ["headers", "contentType", "contentLength", "line"]

	def __init__(self) -> None:
		super().__init__()
		self.line: LineParser = LineParser()
		self.headers: dict[str, str] = {}
		self.contentType: str | None = None
		self.contentLength: int | None = None

	def flush(self) -> HTTPHeaders:
		res = HTTPHeaders(self.headers, self.contentType, self.contentLength)
		self.reset()
		return res

	def reset(self) -> "HeadersParser":
		self.line.reset()
		self.headers = {}
		self.contentType = None
		self.contentLength = None
		return self

	def feed(
		self, chunk: bytes, start: int = 0
	) -> tuple[str | Literal[False] | None, int]:
		"""Feeds data from chunk, starting at `start` offset. Returns
		a value and the next start offset. When the value is `None`, no
		header has been extracted, when the value is `False` it's an empty
		line, and when the value is a string, that header was added."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			return None, read
		elif line:
			ln: str = line.decode("latin-1")
			i = ln.find(":")
			if i != -1:
				h = ln[:i].lower().strip()
				v = ln[i + 1 :].strip()
				if h == "content-length":
					try:
						self.contentLength = int(v)
					except ValueError:
						self.contentLength = None
				elif h == "content-type":
					self.contentType = v
				n: str = headername(h)
				self.headers[n] = v
				return n, read
			else:
				return None, read
		else:
			# An empty line denotes the end of headers
			return False, read

	def __str__(self) -> str:
		return f"HeadersParser({self.headers})"


class BodyLengthParser:
	"""Parses the body of a request with Content-Length set"""

	__slots__ = ["expected", "read", "data"]

	def __init__(self) -> None:
		self.expected: int | None = None
		self.read: int = 0
		self.data: list[bytes] = []

	def flush(self) -> HTTPBodyBlob:
		res = HTTPBodyBlob(
			b"".join(self.data),
			self.read,
			0 if self.expected is None else self.expected - self.read,
		)
		self.reset()
		return res

	def reset(self, length: int | None = None) -> "BodyLengthParser":
		self.expected = length
		self.read = 0
		self.data.clear()
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool, int]:
		left: int = len(chunk) - start
		to_read: int = min(
			left, left if self.expected is None else self.expected - self.read
		)
		self.data.append(chunk[start : start + to_read])
		self.read += to_read
		return True, to_read


class HTTPParser:
	"""A stateful HTTP request parser, yielding atoms as they are parsed
	from the fed chunks."""

	def __init__(self) -> None:
		self.message: MessageParser = MessageParser()
		self.headers: HeadersParser = HeadersParser()
		self.body: BodyLengthParser = BodyLengthParser()
		self.parser: MessageParser | HeadersParser | BodyLengthParser = self.message
		self.requestLine: HTTPRequestLine | TLSHandshake | None = None
		self.requestHeaders: HTTPHeaders | None = None

	def reset(self) -> "HTTPParser":
		self.parser = self.message.reset()
		self.headers.reset()
		self.body.reset()
		self.requestLine = None
		self.requestHeaders = None
		return self

	def request(self, headers: HTTPHeaders, body: HTTPBodyBlob) -> HTTPRequest | None:
		line = self.requestLine
		if isinstance(line, HTTPRequestLine):
			return HTTPRequest(
				method=line.method,
				path=line.path,
				query=parseQuery(line.query),
				headers=headers,
				protocol=line.protocol,
				body=body,
				uri=line.uri,
			)
		else:
			return None

	def feed(self, chunk: bytes) -> Iterator[HTTPAtom]:
		size: int = len(chunk)
		offset: int = 0
		while offset < size:
			# The underlying parsers keep a buffer of what they have partially
			# read, so a chunk is never fed twice.
			try:
				ln, read = self.parser.feed(chunk, offset)
			except ValueError:
				self.reset()
				yield HTTPProcessingStatus.BadFormat
				return
			offset += read
			if ln is None:
				continue
			elif self.parser is self.message:
				line = self.message.flush()
				self.requestLine = line
				self.requestHeaders = None
				if line is not None:
					yield line
					self.parser = self.headers
			elif self.parser is self.headers:
				if ln is False:
					headers = self.headers.flush()
					self.requestHeaders = headers
					yield headers
					# Requests with no body are yielded right away
					if not headers.contentLength:
						if req := self.request(headers, HTTPBodyBlob(b"", 0)):
							yield req
						self.parser = self.message.reset()
					else:
						self.parser = self.body.reset(headers.contentLength)
						yield HTTPProcessingStatus.Body
			elif self.parser is self.body:
				# We yield as soon as we have data, the remaining part of the
				# body is reported in the blob.
				if self.body.read == self.body.expected or offset >= size:
					headers = self.requestHeaders or HTTPHeaders({})
					if req := self.request(headers, self.body.flush()):
						yield req
					self.parser = self.message.reset()
			else:
				raise RuntimeError(f"Unsupported parser: {self.parser}")


def parseTarget(target: str) -> tuple[str, str]:
	"""Returns the path and query string of a request target. Targets in
	absolute form (`http://host/path`, as sent to proxies) are reduced to
	their path, see RFC 9112 §3.2.2."""
	if not target.startswith("/") and "://" in target:
		url = urlsplit(target)
		return url.path or "/", url.query
	path, _, query = target.partition("?")
	return path, query


def parseQuery(text: str) -> dict[str, str]:
	res: dict[str, str] = {}
	if not text:
		return res
	for item in text.split("&"):
		kv = item.split("=", 1)
		if len(kv) == 1:
			res[unquote_plus(item)] = ""
		else:
			res[unquote_plus(kv[0])] = unquote_plus(kv[1])
	return res


# EOF
