from os import getenv
from typing import NamedTuple

PORT: int = int(getenv("PORT", 8000))

# The server is meant to run in a container, so we bind on every interface
HOST: str = getenv("HOST", "0.0.0.0")  # nosec: B104

# The directory files are served from
SRC: str = getenv("WEBSERVE_SRC", "src")

# The CSV file redirects are loaded from, none when empty
REDIRECTS: str = getenv("WEBSERVE_REDIRECTS", "")

# The server logs every request at debug level when set
LOG_REQUESTS: bool = getenv("WEBSERVE_LOG_REQUESTS", "0") == "1"


class ConfigError(ValueError):
	"""Raised when the configuration can't be loaded. This is fatal at
	startup."""

	def __init__(
		self,
		message: str,
		path: str | None = None,
		*,
		line: int | None = None,
		value: str | None = None,
	):
		super().__init__(message)
		self.message: str = message
		self.path: str | None = path
		self.line: int | None = line
		self.value: str | None = value


class ServerConfig(NamedTuple):
	src: str = "src"
	redirects: str = ""
	host: str = "0.0.0.0"  # nosec: B104
	port: int = 8000


# EOF
