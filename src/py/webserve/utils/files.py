import mimetypes
from pathlib import Path
from typing import BinaryIO

from .sniff import SNIFF_LENGTH, sniff

mimetypes.init()

# Types that take precedence over the platform's MIME database, which varies
# between systems.
MIME_TYPES: dict[str, str] = {
	".bz2": "application/x-bzip",
	".css": "text/css",
	".gz": "application/gzip",
	".htm": "text/html",
	".html": "text/html",
	".js": "text/javascript",
	".json": "application/json",
	".mjs": "text/javascript",
	".pdf": "application/pdf",
	".png": "image/png",
	".svg": "image/svg+xml",
	".wasm": "application/wasm",
	".webp": "image/webp",
	".woff2": "font/woff2",
	".xml": "text/xml",
}

CHARSET: str = "charset=utf-8"


def withCharset(contentType: str) -> str:
	"""Adds the default charset to textual types that don't specify one."""
	if contentType.startswith("text/") and "charset=" not in contentType:
		return f"{contentType}; {CHARSET}"
	else:
		return contentType


def contentType(path: Path | str) -> str | None:
	"""Returns the content type registered for the extension of the given
	path, or `None` when the extension is unknown."""
	ext: str = Path(path).suffix
	if not ext:
		return None
	res: str | None = MIME_TYPES.get(ext) or MIME_TYPES.get(ext.lower())
	if res is None:
		# We only look at the extension, so that `.tar.gz` maps to a gzip
		# type rather than a tar with an encoding.
		res = mimetypes.types_map.get(ext) or mimetypes.types_map.get(ext.lower())
	return withCharset(res) if res else None


def sniffContentType(file: BinaryIO) -> str:
	"""Sniffs the content type from the first bytes of the given file, and
	rewinds it to the start so that these bytes are part of what is read
	next."""
	head: bytes = file.read(SNIFF_LENGTH)
	file.seek(0)
	return sniff(head)


# EOF
