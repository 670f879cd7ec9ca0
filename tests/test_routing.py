import asyncio

import pytest

from conftest import request, send, start
from webserve.decorators import on
from webserve.http.model import HTTPRequest, HTTPRequestError, HTTPResponse
from webserve.model import Application, Service
from webserve.routing import Dispatcher, Handler, Route


@pytest.mark.parametrize(
	"route,matching,others",
	[
		("post", ["post"], ["", "/post", "post/", "poster"]),
		("post/", ["post/"], ["", "/post/", "/post", "poster/"]),
		("post/{id}", ["post/a", "post/ab"], ["", "post/", "/post", "post/a/"]),
		("files/{path:any}", ["files/", "files/a/b.txt"], ["file", "/files/"]),
	],
)
def test_route_match(route: str, matching: list[str], others: list[str]):
	r = Route(route)
	for path in matching:
		assert r.match(path) is not None, path
	for path in others:
		assert r.match(path) is None, path


def test_route_extracts_parameters():
	assert Route("/post/{id:int}/{name}").match("/post/-12/hello") == {
		"id": -12,
		"name": "hello",
	}


def test_route_unknown_pattern():
	with pytest.raises(ValueError):
		Route("/post/{id:unknown}")


class Greeter(Service):
	@on(GET="/hello/{name}")
	def hello(self, request: HTTPRequest, name: str) -> HTTPResponse:
		return request.respond(f"Hello, {name}", "text/plain; charset=utf-8")

	@on(priority=-1, ANY="/{path:any}")
	def fallback(self, request: HTTPRequest, path: str) -> HTTPResponse:
		return request.respond(f"Fallback {request.method} {path}", "text/plain; charset=utf-8")

	@on(GET="/fail")
	async def fail(self, request: HTTPRequest) -> HTTPResponse:
		raise HTTPRequestError("Nope", 403)


def test_handlers_are_collected():
	handlers = Greeter().handlers
	assert sorted(_.functor.__name__ for _ in handlers) == ["fail", "fallback", "hello"]
	assert all(isinstance(_, Handler) for _ in handlers)


def test_method_routes_win_over_any():
	app = start(Greeter())
	assert send(app, request("/hello/world")).text == "Hello, world"
	assert send(app, request("/hello/world", method="POST")).text == (
		"Fallback POST hello/world"
	)
	assert send(app, request("/other")).text == "Fallback GET other"


def test_priority_orders_routes():
	dispatcher = Dispatcher()
	low = Handler(lambda r: r, [("GET", "/{path:any}")], priority=-1)
	high = Handler(lambda r: r, [("GET", "/static/{path:any}")], priority=10)
	dispatcher.register(low).register(high)
	route, params = dispatcher.match("GET", "/static/a.css")
	assert route is not None and route.handler is high
	assert params == {"path": "a.css"}
	route, _ = dispatcher.match("GET", "/a.css")
	assert route is not None and route.handler is low


def test_prefix():
	dispatcher = Dispatcher()
	handler = Handler(lambda r: r, [("GET", "/{path:any}")])
	dispatcher.register(handler, "/_static/")
	route, params = dispatcher.match("GET", "/_static/base.css")
	assert route is not None
	assert params == {"path": "base.css"}


def test_request_error_becomes_response():
	app = start(Greeter())
	sent = send(app, request("/fail"))
	assert sent.status == 403
	assert sent.text == "Nope"


def test_unmatched_request_is_not_found():
	app = Application()
	asyncio.run(app.start())
	sent = send(app, request("/anything"))
	assert sent.status == 404
	assert sent.text == "Not Found"


def test_service_cannot_be_mounted_twice():
	service = Greeter()
	Application([service])
	with pytest.raises(RuntimeError):
		Application([service])


# EOF
