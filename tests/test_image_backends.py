"""
Tests for the Venice image client.

HTTP is served by httpx.MockTransport; no network calls.

Run with: python -m pytest tests/test_image_backends.py -v
"""

import asyncio
import json
import sys
from pathlib import Path

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from writarcade.services.image_backends import VeniceImageClient


def client_with(handler, api_key="test-key"):
    client = VeniceImageClient(api_key=api_key, api_base="https://venice.test/api/v1/")
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


async def generate_and_close(client, **kwargs):
    try:
        return await client.generate("A lighthouse in a storm.", "qwen-image", **kwargs)
    finally:
        await client.close()


class TestVeniceImageClient:

    def test_base64_image_becomes_data_url(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"images": ["iVBORw0KGgo="]})

        url = asyncio.run(generate_and_close(client_with(handler), width=1280, height=768))

        assert url == "data:image/png;base64,iVBORw0KGgo="
        assert str(requests[0].url) == "https://venice.test/api/v1/image/generate"
        assert json.loads(requests[0].content) == {
            "prompt": "A lighthouse in a storm.",
            "model": "qwen-image",
            "width": 1280,
            "height": 768,
            "format": "png",
        }

    def test_image_url_field(self):
        handler = lambda request: httpx.Response(200, json={"imageUrl": "https://cdn.test/a.png"})

        assert asyncio.run(generate_and_close(client_with(handler))) == "https://cdn.test/a.png"

    def test_response_without_image(self):
        handler = lambda request: httpx.Response(200, json={"images": []})

        assert asyncio.run(generate_and_close(client_with(handler))) is None

    def test_http_error_raises(self):
        handler = lambda request: httpx.Response(503, json={"error": "busy"})

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(generate_and_close(client_with(handler)))

    def test_missing_key_skips_request(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"images": ["x"]})

        assert asyncio.run(generate_and_close(client_with(handler, api_key=None))) is None
        assert calls == []
