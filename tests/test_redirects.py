from pathlib import Path

import pytest

from webserve.config import ConfigError
from webserve.redirects import Redirect, RedirectTable


def write(tmp_path: Path, text: str | bytes) -> str:
	path = tmp_path / "redirects.csv"
	if isinstance(text, bytes):
		path.write_bytes(text)
	else:
		path.write_text(text, encoding="utf-8")
	return str(path)


def test_empty_path_gives_empty_table():
	table = RedirectTable.Load("")
	assert len(table) == 0
	assert table.get("/") is None


def test_load(tmp_path: Path):
	table = RedirectTable.Load(
		write(tmp_path, "301,/old/,/new/\n302,/docs,https://docs.example.com/\n")
	)
	assert dict(table) == {
		"/old/": Redirect(301, "/new/"),
		"/docs": Redirect(302, "https://docs.example.com/"),
	}


def test_load_is_deterministic(tmp_path: Path):
	path = write(tmp_path, "301,/a,/b\n302,/c,/d\n307,/a,/e\n")
	assert RedirectTable.Load(path) == RedirectTable.Load(path)


def test_last_record_wins(tmp_path: Path):
	table = RedirectTable.Load(write(tmp_path, "301,/a,/b\n302,/a,/c\n"))
	assert table["/a"] == Redirect(302, "/c")
	assert len(table) == 1


def test_blank_lines_and_quotes(tmp_path: Path):
	table = RedirectTable.Load(
		write(tmp_path, '\n301,"/a,b",/c\r\n\n+308,/d,"/e?x=""1"""\n')
	)
	assert table["/a,b"] == Redirect(301, "/c")
	assert table["/d"] == Redirect(308, '/e?x="1"')


def test_paths_are_not_normalized(tmp_path: Path):
	table = RedirectTable.Load(write(tmp_path, "301,/a/,/b\n"))
	assert "/a/" in table
	assert "/a" not in table


def test_invalid_code_identifies_record(tmp_path: Path):
	path = write(tmp_path, "301,/a,/b\n30x,/c,/d\n302,/e,/f\n")
	with pytest.raises(ConfigError) as info:
		RedirectTable.Load(path)
	assert info.value.path == path
	assert info.value.line == 1
	assert info.value.value == "30x"
	assert "line=1" in str(info.value)
	assert "code=30x" in str(info.value)


@pytest.mark.parametrize("code", ["", " 301", "3.0", "1_000", "99", "1000", "-301", "99999999999999999999"])
def test_code_must_be_decimal(tmp_path: Path, code: str):
	with pytest.raises(ConfigError):
		RedirectTable.Load(write(tmp_path, f"{code},/a,/b\n"))


@pytest.mark.parametrize("text", ["301,/a\n", "301,/a,/b,/c\n", '301,"/a,/b\n'])
def test_malformed_records(tmp_path: Path, text: str):
	with pytest.raises(ConfigError) as info:
		RedirectTable.Load(write(tmp_path, text))
	assert str(tmp_path) in str(info.value)


def test_missing_file(tmp_path: Path):
	path = str(tmp_path / "missing.csv")
	with pytest.raises(ConfigError) as info:
		RedirectTable.Load(path)
	assert info.value.path == path
	assert isinstance(info.value.__cause__, FileNotFoundError)


def test_invalid_encoding(tmp_path: Path):
	with pytest.raises(ConfigError) as info:
		RedirectTable.Load(write(tmp_path, b"301,/\xff,/b\n"))
	assert isinstance(info.value.__cause__, UnicodeDecodeError)


def test_table_is_read_only():
	table = RedirectTable({"/a": Redirect(301, "/b")})
	with pytest.raises(TypeError):
		table["/c"] = Redirect(301, "/d")  # type: ignore[index]


# EOF
