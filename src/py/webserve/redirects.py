import csv
import io
import re
from collections.abc import Mapping
from typing import Iterator, NamedTuple, Pattern

from .config import ConfigError

__doc__ = """
Redirects are loaded from a CSV file with one `code,path,location` record
per line and no header, for instance:

```
301,/old/,/new/
302,/docs,https://docs.example.com/
```

Paths are matched exactly against the decoded request path, there is no
pattern matching nor normalization of trailing slashes. When a path appears
more than once, the last record wins.
"""

RE_CODE: Pattern[str] = re.compile(r"^[+-]?[0-9]+$")

# Redirect codes are HTTP status codes, which have three digits
MIN_CODE: int = 100
MAX_CODE: int = 999


class Redirect(NamedTuple):
	code: int
	location: str


class RedirectTable(Mapping[str, Redirect]):
	"""A read-only mapping of request paths to redirects."""

	@classmethod
	def Load(cls, path: str) -> "RedirectTable":
		"""Loads the table from the CSV file at the given path, an empty path
		giving an empty table. The load is all or nothing, any error is
		raised as a `ConfigError`."""
		if not path:
			return cls()
		try:
			with open(path, "rt", encoding="utf-8", newline="") as f:
				text: str = f.read()
		except (OSError, UnicodeDecodeError) as e:
			raise ConfigError(f"Could not read redirect file {path}: {e}", path) from e
		return cls.Parse(text, path)

	@classmethod
	def Parse(cls, text: str, path: str = "<string>") -> "RedirectTable":
		redirects: dict[str, Redirect] = {}
		try:
			records: list[list[str]] = [
				_ for _ in csv.reader(io.StringIO(text, newline=""), strict=True) if _
			]
		except csv.Error as e:
			raise ConfigError(f"Malformed redirect file {path}: {e}", path) from e
		for i, record in enumerate(records):
			if len(record) != 3:
				raise ConfigError(
					f"Malformed redirect file {path}: record {i} has {len(record)} fields, expected 3",
					path,
					line=i,
				)
			code, source, location = record
			if not (RE_CODE.match(code) and MIN_CODE <= int(code) <= MAX_CODE):
				raise ConfigError(
					f"Could not parse redirect file {path}: line={i} code={code}",
					path,
					line=i,
					value=code,
				)
			redirects[source] = Redirect(int(code), location)
		return cls(redirects)

	def __init__(self, redirects: dict[str, Redirect] | None = None):
		self._redirects: dict[str, Redirect] = dict(redirects) if redirects else {}

	def __getitem__(self, path: str) -> Redirect:
		return self._redirects[path]

	def __iter__(self) -> Iterator[str]:
		return iter(self._redirects)

	def __len__(self) -> int:
		return len(self._redirects)

	def __repr__(self) -> str:
		return f"(RedirectTable {len(self._redirects)})"


# EOF
