from pathlib import Path

from conftest import request, responder, send, start
from webserve.services.assets import ASSETS, AssetsService


def test_serves_bundled_assets(site: Path):
	app = start(responder(site), AssetsService())
	sent = send(app, request("/_static/base.css"))
	assert sent.status == 200
	assert sent.headers["Content-Type"] == "text/css; charset=utf-8"
	assert sent.body == (ASSETS / "base.css").read_bytes()


def test_assets_win_over_source_files(site: Path):
	(site / "_static").mkdir()
	(site / "_static" / "base.css").write_text("/* overridden */")
	app = start(AssetsService(), responder(site))
	sent = send(app, request("/_static/base.css"))
	assert sent.body == (ASSETS / "base.css").read_bytes()


def test_missing_asset(site: Path):
	app = start(responder(site), AssetsService())
	sent = send(app, request("/_static/missing.css"))
	assert sent.status == 404
	assert sent.text == "Not Found"


def test_assets_cannot_escape_root(tmp_path: Path):
	root = tmp_path / "assets"
	root.mkdir()
	(tmp_path / "secret.txt").write_text("secret")
	service = AssetsService(root)
	assert service.resolvePath("../secret.txt") is None
	assert service.resolvePath("%2e%2e/secret.txt") is None
	app = start(service)
	assert send(app, request("/_static/%2e%2e/secret.txt")).status == 404


def test_other_methods_reach_responder(site: Path):
	app = start(responder(site), AssetsService())
	sent = send(app, request("/_static/base.css", method="POST"))
	assert sent.status == 405
	assert sent.text == "GET only"


# EOF
