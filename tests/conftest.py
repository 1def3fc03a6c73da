"""Shared fixtures: test settings and an in-process fake of both providers."""

from __future__ import annotations

import itertools
import json

import httpx
import pytest

from reel2canva.core.config import Settings

REEL_URL = "https://www.instagram.com/reel/Cx1AbCdEfGh/"
VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x01" * 2048


class FakeProviders:
    """Routes httpx requests to canned Instagram Graph and Canva Connect answers.

    ``fail`` maps a route name to an HTTP status to return instead.
    ``export_polls`` is how many export status polls report in_progress
    before success (use a large number to simulate a stuck export).
    """

    def __init__(self, fail: dict | None = None, export_polls: int = 1, export_status: str = "success"):
        self.fail = fail or {}
        self.export_polls = export_polls
        self.export_status = export_status
        self.calls: list[tuple[str, str]] = []
        self.requests: list[httpx.Request] = []
        self._ids = itertools.count(1)
        self._export_poll_count: dict[str, int] = {}

    def _next(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def _route(self, request: httpx.Request) -> str:
        host, path, method = request.url.host, request.url.path, request.method
        if host == "graph.facebook.com":
            if path.endswith("/instagram_oembed"):
                return "oembed"
            if path.endswith("/me"):
                return "ig_me"
            return "media"
        if host == "cdn.test":
            return "video"
        if path.endswith("/asset-uploads") and method == "POST":
            return "upload"
        if "/asset-uploads/" in path:
            return "upload_status"
        if path.endswith("/designs") and method == "POST":
            return "create_design"
        if path.endswith("/pages"):
            return "pages"
        if path.endswith("/elements"):
            return "place"
        if "/designs/" in path:
            return "get_design"
        if path.endswith("/exports") and method == "POST":
            return "export"
        if "/exports/" in path:
            return "export_status"
        if path.endswith("/users/me"):
            return "canva_me"
        return "unknown"

    def __call__(self, request: httpx.Request) -> httpx.Response:
        route = self._route(request)
        self.calls.append((route, str(request.url)))
        self.requests.append(request)

        if route in self.fail:
            code = self.fail[route]
            return httpx.Response(code, json={"error": {"message": f"{route} failed with {code}"}})

        if route == "oembed":
            return httpx.Response(200, json={"media_id": "17900001", "author_name": "nasa", "title": "Launch day"})
        if route == "media":
            return httpx.Response(
                200,
                json={
                    "id": "17900001",
                    "media_type": "VIDEO",
                    "media_url": "https://cdn.test/reel.mp4",
                    "permalink": REEL_URL,
                    "caption": "Liftoff",
                    "username": "nasa",
                },
            )
        if route == "video":
            return httpx.Response(200, content=VIDEO_BYTES, headers={"content-type": "video/mp4"})
        if route == "upload":
            return httpx.Response(200, json={"job": {"id": self._next("upload"), "status": "in_progress"}})
        if route == "upload_status":
            job_id = request.url.path.rsplit("/", 1)[-1]
            return httpx.Response(
                200,
                json={"job": {"id": job_id, "status": "success", "asset": {"id": self._next("asset"), "name": "reel"}}},
            )
        if route == "create_design":
            body = json.loads(request.content)
            design_id = self._next("design")
            return httpx.Response(
                200,
                json={
                    "design": {
                        "id": design_id,
                        "title": body.get("title"),
                        "urls": {"edit_url": f"https://www.canva.com/design/{design_id}/edit"},
                    }
                },
            )
        if route == "get_design":
            design_id = request.url.path.rsplit("/", 1)[-1]
            return httpx.Response(200, json={"design": {"id": design_id, "title": "Template", "urls": {}}})
        if route == "pages":
            return httpx.Response(200, json={"items": [{"index": 1}, {"index": 2}]})
        if route == "place":
            return httpx.Response(200, json={"element": {"id": self._next("element")}})
        if route == "export":
            return httpx.Response(200, json={"job": {"id": self._next("export"), "status": "in_progress"}})
        if route == "export_status":
            export_id = request.url.path.rsplit("/", 1)[-1]
            polls = self._export_poll_count.get(export_id, 0) + 1
            self._export_poll_count[export_id] = polls
            if polls < self.export_polls:
                return httpx.Response(200, json={"job": {"id": export_id, "status": "in_progress"}})
            if self.export_status == "failed":
                return httpx.Response(
                    200,
                    json={"job": {"id": export_id, "status": "failed", "error": {"code": "internal_failure", "message": "render crashed"}}},
                )
            return httpx.Response(
                200,
                json={"job": {"id": export_id, "status": "success", "urls": [f"https://export.canva.test/{export_id}.mp4"]}},
            )
        if route == "ig_me":
            return httpx.Response(200, json={"id": "42", "name": "Reel Bot"})
        if route == "canva_me":
            return httpx.Response(200, json={"team_user": {"user_id": "u1", "team_id": "team-9"}})
        return httpx.Response(404, json={"message": "no route"})

    def routes(self) -> list[str]:
        return [route for route, _ in self.calls]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        INSTAGRAM_ACCESS_TOKEN="ig-default-token",
        CANVA_ACCESS_TOKEN="canva-default-token",
        CANVA_TEAM_ID="",
        CANVA_TEMPLATE_ID="",
        CANVA_PAGE_ID="",
        EXPORT_POLL_INTERVAL=0,
        EXPORT_TIMEOUT=5,
        CANVA_JOB_TIMEOUT=5,
    )


@pytest.fixture
def providers() -> FakeProviders:
    return FakeProviders()
