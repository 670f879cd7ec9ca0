import io

import pytest

from webserve.utils.files import contentType, sniffContentType
from webserve.utils.sniff import OCTET_STREAM, SNIFF_LENGTH, TEXT_PLAIN, sniff


@pytest.mark.parametrize(
	"data,expected",
	[
		(b"", TEXT_PLAIN),
		(b"Hello, world\n", TEXT_PLAIN),
		(b"\n\t <!DOCTYPE html><html>", "text/html; charset=utf-8"),
		(b"<HtMl><body>", "text/html; charset=utf-8"),
		(b"<p>", "text/html; charset=utf-8"),
		(b"<pre>", TEXT_PLAIN),
		(b"<?xml version='1.0'?>", "text/xml; charset=utf-8"),
		(b"%PDF-1.7\n", "application/pdf"),
		(b"\xef\xbb\xbfHello", TEXT_PLAIN),
		(b"\xfe\xff\x00H", "text/plain; charset=utf-16be"),
		(b"\x89PNG\r\n\x1a\n\x00\x00", "image/png"),
		(b"GIF89a\x01\x00", "image/gif"),
		(b"\xff\xd8\xff\xe0", "image/jpeg"),
		(b"RIFF\x10\x00\x00\x00WEBPVP8 ", "image/webp"),
		(b"\x00\x00\x00\x18ftypmp42\x00\x00\x00\x00mp42isom", "video/mp4"),
		(b"wOF2\x00\x01", "font/woff2"),
		(b"\x1f\x8b\x08\x00", "application/x-gzip"),
		(b"PK\x03\x04", "application/zip"),
		(b"\x00asm\x01\x00\x00\x00", "application/wasm"),
		(b"\x00\x01\x02\x03binary", OCTET_STREAM),
	],
)
def test_sniff(data: bytes, expected: str):
	assert sniff(data) == expected


def test_sniff_only_looks_at_prefix():
	assert sniff(b"a" * SNIFF_LENGTH + b"\x00") == TEXT_PLAIN


def test_sniff_rewinds():
	file = io.BytesIO(b"%PDF-1.7\n" + b"x" * 1024)
	assert sniffContentType(file) == "application/pdf"
	assert file.tell() == 0


@pytest.mark.parametrize(
	"path,expected",
	[
		("index.html", "text/html; charset=utf-8"),
		("a/b/style.CSS", "text/css; charset=utf-8"),
		("app.js", "text/javascript; charset=utf-8"),
		("data.json", "application/json"),
		("archive.tar.gz", "application/gzip"),
		("logo.svg", "image/svg+xml"),
		("README", None),
		("file.unknownext", None),
	],
)
def test_content_type(path: str, expected: str | None):
	assert contentType(path) == expected


# EOF
