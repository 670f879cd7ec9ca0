from abc import ABC, abstractmethod
from html import escape
from pathlib import Path
from typing import Any, Generic, TypeVar
from urllib.parse import quote

from ..utils.files import contentType as getContentType
from .status import HTTP_STATUS

T = TypeVar("T")

# Printable ASCII is sent as is in locations, other bytes are percent-encoded
LOCATION_SAFE: str = "".join(chr(_) for _ in range(0x20, 0x7F))

# -----------------------------------------------------------------------------
#
# API
#
# -----------------------------------------------------------------------------

# --
# == HTTP Request Response API
#
# Defines the high level API functions (orthogonal to the underlying model)
# to create responses from a request.


class ResponseFactory(ABC, Generic[T]):
	@abstractmethod
	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> T: ...

	def error(
		self,
		status: int,
		content: str | None = None,
		contentType: str = "text/plain; charset=utf-8",
		headers: dict[str, str] | None = None,
	) -> T:
		message = HTTP_STATUS.get(status, "Server Error")
		return self.respond(
			content=message if content is None else content,
			contentType=contentType,
			status=status,
			message=message,
			headers=headers,
		)

	def notFound(
		self,
		content: str = "Not Found",
		contentType: str = "text/plain; charset=utf-8",
		*,
		status: int = 404,
	) -> T:
		return self.error(status, content=content, contentType=contentType)

	def notAllowed(
		self,
		content: str | None = None,
		contentType: str = "text/plain; charset=utf-8",
		*,
		status: int = 405,
	) -> T:
		return self.error(status, content=content, contentType=contentType)

	def fail(
		self,
		content: str | None = None,
		*,
		status: int = 500,
		contentType: str = "text/plain; charset=utf-8",
	) -> T:
		return self.error(status, content=content, contentType=contentType)

	def redirect(self, url: str, permanent: bool = False, *, status: int | None = None) -> T:
		"""Redirects to the given URL, with a short HTML body linking to it so
		that clients that don't follow redirects have something to show. Non
		ASCII characters of the URL are percent-encoded as UTF-8."""
		# SEE: https://developer.mozilla.org/en-US/docs/Web/HTTP/Redirections
		code: int = status if status is not None else 301 if permanent else 302
		url = quote(url, safe=LOCATION_SAFE)
		return self.respond(
			content=f'<a href="{escape(url)}">{HTTP_STATUS.get(code, "Redirect")}</a>.\n',
			contentType="text/html; charset=utf-8",
			status=code,
			headers={"Location": url},
		)

	def respondFile(
		self,
		path: Path | str,
		headers: dict[str, str] | None = None,
		status: int = 200,
		contentType: str | None = None,
	) -> T:
		"""Responds with the file at the given path, which is opened when the
		response is sent."""
		p: Path = path if isinstance(path, Path) else Path(path)
		content_type: str = contentType or getContentType(p) or "application/octet-stream"
		return self.respond(
			content=p,
			contentType=content_type,
			status=status,
			headers=headers,
		)


# EOF
