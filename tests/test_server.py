import asyncio
import socket
from pathlib import Path

import pytest

from conftest import responder, start
from webserve.__main__ import main
from webserve.config import ConfigError
from webserve.model import Application, mount
from webserve.server import AIOSocketServer, ServerOptions


async def exchange(app: Application, *chunks: bytes) -> bytes:
	"""Sends the chunks to the server over a socket pair, and returns
	everything the server sent until it closed the connection."""
	loop = asyncio.get_running_loop()
	server, client = socket.socketpair()
	server.setblocking(False)
	client.setblocking(False)
	task = loop.create_task(
		AIOSocketServer.OnRequest(
			app, server, loop=loop, options=ServerOptions(keepalive=2.0)
		)
	)
	for chunk in chunks:
		await loop.sock_sendall(client, chunk)
	received: list[bytes] = []
	while data := await asyncio.wait_for(loop.sock_recv(client, 65536), 5.0):
		received.append(data)
	await task
	client.close()
	return b"".join(received)


def test_keep_alive_and_close(site: Path):
	app = start(responder(site))
	data = asyncio.run(
		exchange(
			app,
			b"GET /page.html HTTP/1.1\r\nHost: localhost\r\n\r\n",
			b"GET /missing HTTP/1.1\r\nHost: localhost\r\nConnection: close\r\n\r\n",
		)
	)
	assert data.count(b"HTTP/1.1 ") == 2
	assert data.startswith(b"HTTP/1.1 200 OK\r\n")
	assert b"<p>Page</p>" in data
	assert b"HTTP/1.1 404 Not Found\r\n" in data
	assert data.endswith(b"<p>Not found</p>")


def test_fragmented_request(site: Path):
	app = start(responder(site))
	data = asyncio.run(
		exchange(
			app,
			b"GET /page.h",
			b"tml HTTP/1.1\r\nConnection: cl",
			b"ose\r\n\r\n",
		)
	)
	assert data.startswith(b"HTTP/1.1 200 OK\r\n")


def test_absolute_form_request(site: Path):
	app = start(responder(site))
	data = asyncio.run(
		exchange(
			app, b"GET http://localhost/about/ HTTP/1.1\r\nConnection: close\r\n\r\n"
		)
	)
	assert data.startswith(b"HTTP/1.1 200 OK\r\n")
	assert data.endswith(b"<p>About</p>")


def test_malformed_request(site: Path):
	app = start(responder(site))
	data = asyncio.run(exchange(app, b"NONSENSE\r\n\r\n"))
	assert data.startswith(b"HTTP/1.1 400 Bad Request\r\n")


def test_http_1_0_closes(site: Path):
	app = start(responder(site))
	data = asyncio.run(exchange(app, b"GET /page.html HTTP/1.0\r\n\r\n"))
	assert data.startswith(b"HTTP/1.0 200 OK\r\n")


def test_config_error_aborts_startup(site: Path, tmp_path: Path):
	csv = tmp_path / "redirects.csv"
	csv.write_text("nope,/a,/b\n")
	app = mount(responder(site, csv))
	with pytest.raises(ConfigError):
		asyncio.run(
			AIOSocketServer.Serve(app, ServerOptions(port=0, stopSignals=False))
		)


def test_main_exits_on_config_error(site: Path, tmp_path: Path):
	csv = tmp_path / "redirects.csv"
	csv.write_text("301,/a\n")
	with pytest.raises(SystemExit) as info:
		main(["--src", str(site), "--redirects", str(csv), "--port", "0"])
	assert info.value.code == 1


# EOF
