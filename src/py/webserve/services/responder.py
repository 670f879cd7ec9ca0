import posixpath
from pathlib import Path
from typing import BinaryIO, NamedTuple
from urllib.parse import unquote, urlsplit

from ..config import ServerConfig
from ..decorators import on
from ..http.model import HTTPBodyFile, HTTPRequest, HTTPResponse
from ..model import Service
from ..redirects import RedirectTable
from ..utils.files import contentType, sniffContentType
from ..utils.logging import Logger

__doc__ = """
The responder serves the files of a source directory. A request is first
looked up in the redirect table, and then resolved to a file following
these conventions:

- `/docs/` serves `docs.html`, or `docs/index.html` when there is none
- `/docs/page.html` serves that file as is, there is no `.html` suffixing
  for paths that don't end with a slash
- anything else serves `404.html` with a 404 status

Every request that is not rejected logs one event, `redirected` or `served`,
or an error when the file could not be sent.
"""

NOT_FOUND: str = "404.html"
INDEX: str = "index.html"

# Body of internal errors, which must not leak paths or tracebacks
OOPS: str = "oops"


class ResolvedTarget(NamedTuple):
	path: Path
	status: int = 200


def cleanPath(path: str) -> str:
	"""Returns the shortest rooted path equivalent to the given path, where
	`.` and `..` segments and repeated slashes are collapsed. The result
	never goes above `/`."""
	# `normpath` keeps a leading double slash, which we don't want.
	return posixpath.normpath("/" + path.lstrip("/"))


def isFile(path: Path) -> bool:
	try:
		return path.is_file()
	except OSError:
		return False


class Responder(Service):
	"""Serves files from the configured source root, applying redirects
	first. The redirect table is loaded by `setup()`, which is called when
	the application starts."""

	PRIORITY: int = -10

	def __init__(
		self,
		config: ServerConfig | None = None,
		*,
		log: Logger | None = None,
	):
		super().__init__()
		self.config: ServerConfig = config or ServerConfig()
		self.root: Path = Path(self.config.src)
		self.log: Logger = log or Logger("webserve")
		self.redirects: RedirectTable | None = None

	def setup(self) -> "Responder":
		"""Loads the redirect table, raising a `ConfigError` when the
		redirect file is invalid."""
		self.redirects = RedirectTable.Load(self.config.redirects)
		return self

	async def start(self) -> None:
		self.setup()
		self.log.info(
			"Serving files",
			Source=str(self.root),
			Redirects=len(self.redirects) if self.redirects else 0,
		)

	# =========================================================================
	# RESOLUTION
	# =========================================================================

	def resolve(self, path: str) -> ResolvedTarget:
		"""Resolves the given decoded request path to a file under the root,
		falling back to the not found document."""
		clean: str = cleanPath(path)
		if path.endswith("/"):
			stem: str = clean.rstrip("/")
			candidates = [f"{stem}.html", f"{stem}/{INDEX}"]
		else:
			candidates = [clean]
		for candidate in candidates:
			local: Path = self.root / candidate.lstrip("/")
			if isFile(local):
				return ResolvedTarget(local, 200)
		return ResolvedTarget(self.root / NOT_FOUND, 404)

	def location(self, path: str, target: str) -> str:
		"""Returns the location to redirect to, where targets that are not
		URLs nor absolute paths are relative to the directory of `path`."""
		url = urlsplit(target)
		if url.scheme or url.netloc:
			return target
		location: str = target
		if not location.startswith("/"):
			location = f"{posixpath.dirname(path or '/').rstrip('/')}/{location}"
		query: str = ""
		if (i := location.find("?")) != -1:
			location, query = location[:i], location[i:]
		trailing: bool = location.endswith("/")
		location = cleanPath(location)
		if trailing and not location.endswith("/"):
			location += "/"
		return location + query

	# =========================================================================
	# HANDLERS
	# =========================================================================

	@on(priority=PRIORITY, ANY="{path:any}")
	def onRequest(self, request: HTTPRequest, path: str) -> HTTPResponse:
		return self.handle(request)

	def handle(self, request: HTTPRequest) -> HTTPResponse:
		if self.redirects is None:
			raise RuntimeError("Responder is not set up, setup() must be called first")
		if request.method != "GET":
			return request.notAllowed("GET only")
		path: str = unquote(request.path)
		redirect = self.redirects.get(path)
		if redirect is not None:
			self.log.event(
				"redirected",
				status=redirect.code,
				url=request.uri,
				user_agent=request.userAgent,
				referrer=request.referrer,
			)
			return request.redirect(
				self.location(path, redirect.location), status=redirect.code
			)
		target: ResolvedTarget = self.resolve(path)
		try:
			file: BinaryIO = open(target.path, "rb")
		except OSError as e:
			self.log.error("open file", file=str(target.path), error=str(e))
			return request.fail(OOPS)
		try:
			content_type: str = contentType(target.path) or sniffContentType(file)
			body: HTTPBodyFile = HTTPBodyFile(target.path, file)
		except OSError as e:
			file.close()
			self.log.error(
				"read file for content-type", file=str(target.path), error=str(e)
			)
			return request.fail(OOPS)

		def onSent(response: HTTPResponse) -> None:
			try:
				if response.error is not None:
					self.log.error(
						"writing response",
						bytes=body.written,
						error=str(response.error),
					)
				else:
					self.log.event(
						"served",
						status=response.status,
						url=request.uri,
						user_agent=request.userAgent,
						referrer=request.referrer,
						bytes=body.written,
					)
			finally:
				file.close()

		return request.respond(
			content=body, contentType=content_type, status=target.status
		).onClose(onSent)


# EOF
