from typing import NamedTuple, Iterable

__doc__ = """
Content-type sniffing, following the WHATWG MIME Sniffing standard
(<https://mimesniff.spec.whatwg.org/>) for the subset of signatures browsers
and HTTP servers commonly use. `sniff` looks at no more than `SNIFF_LENGTH`
bytes and always returns a valid content type, defaulting to
`application/octet-stream`.
"""

SNIFF_LENGTH: int = 512

# Whitespace bytes as defined by the standard (TAB, LF, FF, CR, SPACE)
WHITESPACE: bytes = b"\t\n\x0c\r "

# Bytes that make a resource binary when found in text
BINARY: frozenset[int] = frozenset(
	(*range(0x00, 0x09), 0x0B, *range(0x0E, 0x1B), *range(0x1C, 0x20))
)

TEXT_PLAIN: str = "text/plain; charset=utf-8"
OCTET_STREAM: str = "application/octet-stream"


class HTMLSignature(NamedTuple):
	"""An HTML tag, matched case-insensitively after leading whitespace and
	followed by a tag-terminating byte."""

	pattern: bytes
	contentType: str = "text/html; charset=utf-8"

	def match(self, data: bytes, start: int) -> str | None:
		data = data[start:]
		n: int = len(self.pattern)
		if len(data) < n + 1:
			return None
		for i, b in enumerate(self.pattern):
			d = data[i]
			# Uppercase letters in the pattern match either case
			if 0x41 <= b <= 0x5A:
				d &= 0xDF
			if b != d:
				return None
		return self.contentType if data[n] in b" >" else None


class MaskedSignature(NamedTuple):
	"""A byte pattern where each data byte is masked before comparison."""

	pattern: bytes
	mask: bytes
	contentType: str
	skipWhitespace: bool = False

	def match(self, data: bytes, start: int) -> str | None:
		if self.skipWhitespace:
			data = data[start:]
		if len(data) < len(self.pattern):
			return None
		for p, m, d in zip(self.pattern, self.mask, data):
			if d & m != p:
				return None
		return self.contentType


class ExactSignature(NamedTuple):
	"""A prefix that must be found as-is at the start of the data."""

	pattern: bytes
	contentType: str

	def match(self, data: bytes, start: int) -> str | None:
		return self.contentType if data.startswith(self.pattern) else None


class MP4Signature(NamedTuple):
	"""Matches an ISO base media file whose `ftyp` box lists an mp4 brand."""

	contentType: str = "video/mp4"

	def match(self, data: bytes, start: int) -> str | None:
		if len(data) < 12:
			return None
		size: int = int.from_bytes(data[:4], "big")
		if len(data) < size or size % 4 != 0:
			return None
		if data[4:8] != b"ftyp":
			return None
		for offset in range(8, size, 4):
			# Bytes 12-16 hold the minor version, not a brand
			if offset == 12:
				continue
			if data[offset : offset + 3] == b"mp4":
				return self.contentType
		return None


class TextSignature(NamedTuple):
	"""Matches anything that does not contain binary bytes."""

	contentType: str = TEXT_PLAIN

	def match(self, data: bytes, start: int) -> str | None:
		for b in data[start:]:
			if b in BINARY:
				return None
		return self.contentType


TSignature = (
	HTMLSignature | MaskedSignature | ExactSignature | MP4Signature | TextSignature
)


def html(*tags: bytes) -> Iterable[HTMLSignature]:
	return (HTMLSignature(_) for _ in tags)


RIFF_MASK: bytes = b"\xff\xff\xff\xff\x00\x00\x00\x00\xff\xff\xff\xff"

# NOTE: Order matters, the first matching signature wins.
SIGNATURES: tuple[TSignature, ...] = (
	*html(
		b"<!DOCTYPE HTML",
		b"<HTML",
		b"<HEAD",
		b"<SCRIPT",
		b"<IFRAME",
		b"<H1",
		b"<DIV",
		b"<FONT",
		b"<TABLE",
		b"<A",
		b"<STYLE",
		b"<TITLE",
		b"<B",
		b"<BODY",
		b"<BR",
		b"<P",
		b"<!--",
	),
	MaskedSignature(
		b"<?xml", b"\xff\xff\xff\xff\xff", "text/xml; charset=utf-8", True
	),
	ExactSignature(b"%PDF-", "application/pdf"),
	ExactSignature(b"%!PS-Adobe-", "application/postscript"),
	# Byte order marks
	MaskedSignature(
		b"\xfe\xff\x00\x00", b"\xff\xff\x00\x00", "text/plain; charset=utf-16be"
	),
	MaskedSignature(
		b"\xff\xfe\x00\x00", b"\xff\xff\x00\x00", "text/plain; charset=utf-16le"
	),
	MaskedSignature(b"\xef\xbb\xbf\x00", b"\xff\xff\xff\x00", TEXT_PLAIN),
	# Images
	ExactSignature(b"\x00\x00\x01\x00", "image/x-icon"),
	ExactSignature(b"\x00\x00\x02\x00", "image/x-icon"),
	ExactSignature(b"BM", "image/bmp"),
	ExactSignature(b"GIF87a", "image/gif"),
	ExactSignature(b"GIF89a", "image/gif"),
	MaskedSignature(
		b"RIFF\x00\x00\x00\x00WEBPVP",
		b"\xff\xff\xff\xff\x00\x00\x00\x00\xff\xff\xff\xff\xff\xff",
		"image/webp",
	),
	ExactSignature(b"\x89PNG\r\n\x1a\n", "image/png"),
	ExactSignature(b"\xff\xd8\xff", "image/jpeg"),
	# Audio and video
	MaskedSignature(b".snd", b"\xff\xff\xff\xff", "audio/basic"),
	MaskedSignature(b"FORM\x00\x00\x00\x00AIFF", RIFF_MASK, "audio/aiff"),
	MaskedSignature(b"ID3", b"\xff\xff\xff", "audio/mpeg"),
	MaskedSignature(b"OggS\x00", b"\xff\xff\xff\xff\xff", "application/ogg"),
	MaskedSignature(b"MThd\x00\x00\x00\x06", b"\xff" * 8, "audio/midi"),
	MaskedSignature(b"RIFF\x00\x00\x00\x00AVI ", RIFF_MASK, "video/avi"),
	MaskedSignature(b"RIFF\x00\x00\x00\x00WAVE", RIFF_MASK, "audio/wave"),
	MP4Signature(),
	ExactSignature(b"\x1a\x45\xdf\xa3", "video/webm"),
	# Fonts
	MaskedSignature(
		b"\x00" * 34 + b"LP",
		b"\x00" * 34 + b"\xff\xff",
		"application/vnd.ms-fontobject",
	),
	ExactSignature(b"\x00\x01\x00\x00", "font/ttf"),
	ExactSignature(b"OTTO", "font/otf"),
	ExactSignature(b"ttcf", "font/collection"),
	ExactSignature(b"wOFF", "font/woff"),
	ExactSignature(b"wOF2", "font/woff2"),
	# Archives
	ExactSignature(b"\x1f\x8b\x08", "application/x-gzip"),
	ExactSignature(b"PK\x03\x04", "application/zip"),
	ExactSignature(b"Rar!\x1a\x07\x00", "application/x-rar-compressed"),
	ExactSignature(b"Rar!\x1a\x07\x01\x00", "application/x-rar-compressed"),
	ExactSignature(b"\x00asm", "application/wasm"),
	TextSignature(),
)


def sniff(data: bytes) -> str:
	"""Returns the content type for the given leading bytes of a resource."""
	data = data[:SNIFF_LENGTH]
	start: int = 0
	while start < len(data) and data[start] in WHITESPACE:
		start += 1
	for signature in SIGNATURES:
		if content_type := signature.match(data, start):
			return content_type
	return OCTET_STREAM


# EOF
