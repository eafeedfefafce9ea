"""Shared fixtures: an in-memory Fleabox data API behind httpx.MockTransport."""

import json
from unittest.mock import Mock

import httpx
import pytest

from backupbox.api import FleaboxClient

PREFIX = "/api/backupbox/data/backups/"


class FakeFleabox:
    """Minimal stand-in for the Fleabox per-app data API."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []
        self.fail_paths: set[str] = set()
        self.fail_metadata_get = False
        self.fail_metadata_put = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if not path.startswith(PREFIX):
            return httpx.Response(404)
        key = path[len(PREFIX) :]
        _, _, relative = key.partition("/")

        if request.method == "GET":
            if relative == "metadata.json" and self.fail_metadata_get:
                return httpx.Response(500)
            if key not in self.objects:
                return httpx.Response(404)
            return httpx.Response(
                200,
                content=self.objects[key],
                headers={"Content-Type": "application/json"},
            )

        if request.method == "PUT":
            if relative == "metadata.json" and self.fail_metadata_put:
                return httpx.Response(500)
            if relative in self.fail_paths:
                return httpx.Response(500)
            self.objects[key] = request.content
            return httpx.Response(200, json={"ok": True})

        return httpx.Response(405)

    def metadata(self, remote_name: str) -> dict:
        return json.loads(self.objects[f"{remote_name}/metadata.json"])

    def uploads(self) -> list[str]:
        """Relative paths of file PUT requests, in request order."""
        paths = []
        for request in self.requests:
            if request.method != "PUT":
                continue
            relative = request.url.path[len(PREFIX) :].partition("/")[2]
            if relative != "metadata.json":
                paths.append(relative)
        return paths


@pytest.fixture
def fake_server():
    """Provide an empty fake data API."""
    return FakeFleabox()


@pytest.fixture
def client(fake_server):
    """Provide a FleaboxClient wired to the fake data API."""
    client = FleaboxClient(
        api_url="http://fleabox.test",
        api_token="",
        app_id="backupbox",
        max_retries=0,
        transport=httpx.MockTransport(fake_server.handler),
    )
    yield client
    client.close()


@pytest.fixture
def no_sleep():
    """Sleep replacement so pacing delays never wait."""
    return Mock()
