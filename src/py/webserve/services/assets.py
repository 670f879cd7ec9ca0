from pathlib import Path
from urllib.parse import unquote

from ..decorators import on
from ..http.model import HTTPRequest, HTTPResponse
from ..model import Service

# The assets bundled with the package
ASSETS: Path = Path(__file__).parent.parent / "assets"


class AssetsService(Service):
	"""Serves the assets bundled with the package, so that pages of the
	source directory can use them without shipping their own copy."""

	PREFIX = "/_static"
	PRIORITY: int = 10

	def __init__(self, root: str | Path | None = None):
		super().__init__()
		self.root: Path = (
			root if isinstance(root, Path) else Path(root or ASSETS)
		).resolve()

	def resolvePath(self, path: str) -> Path | None:
		"""Returns the local path for the given request path, or `None` when
		it is not within the assets directory."""
		local_path = self.root.joinpath(unquote(path).lstrip("/")).resolve()
		if not local_path.parts[: len(parts := self.root.parts)] == parts:
			return None
		return local_path

	@on(priority=PRIORITY, GET="/{path:any}")
	def read(self, request: HTTPRequest, path: str) -> HTTPResponse:
		local_path = self.resolvePath(path)
		if not (local_path and local_path.is_file()):
			return request.notFound()
		else:
			return request.respondFile(local_path)


# EOF
