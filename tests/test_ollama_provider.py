"""Tests for the Ollama generator against a mocked transport."""

import asyncio
import json

import httpx
import pytest

from toolpilot.llm import GenerationOptions, OllamaProvider


def make_provider(handler) -> OllamaProvider:
    client = httpx.AsyncClient(base_url="http://ollama.test", transport=httpx.MockTransport(handler))
    return OllamaProvider("http://ollama.test", "llama3.1:8b", client=client)


@pytest.mark.asyncio
async def test_generate_posts_prompt_and_options():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"response": "  Done.  "})

    provider = make_provider(handler)
    text = await provider.generate("User: hi\n\nAssistant:", GenerationOptions(max_tokens=64, temperature=0.1))

    assert text == "Done."
    assert seen["path"] == "/api/generate"
    assert seen["body"] == {
        "model": "llama3.1:8b",
        "prompt": "User: hi\n\nAssistant:",
        "stream": False,
        "options": {"num_predict": 64, "temperature": 0.1},
    }
    await provider.close()


@pytest.mark.asyncio
async def test_http_error_returns_none():
    provider = make_provider(lambda request: httpx.Response(500, text="model not loaded"))
    assert await provider.generate("p", GenerationOptions()) is None


@pytest.mark.asyncio
async def test_empty_response_returns_none():
    provider = make_provider(lambda request: httpx.Response(200, json={"response": ""}))
    assert await provider.generate("p", GenerationOptions(), asyncio.Event()) is None


@pytest.mark.asyncio
async def test_connection_error_returns_none():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    provider = make_provider(handler)
    assert await provider.generate("p", GenerationOptions()) is None
    assert await provider.check_available_async() is False


@pytest.mark.asyncio
async def test_already_cancelled_skips_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"response": "late"})

    provider = make_provider(handler)
    cancel = asyncio.Event()
    cancel.set()

    assert await provider.generate("p", GenerationOptions(), cancel) is None
    assert calls == []


@pytest.mark.asyncio
async def test_cancel_abandons_in_flight_request():
    provider = make_provider(lambda request: httpx.Response(200, json={"response": "late"}))
    started = asyncio.Event()

    async def slow_post(payload):
        started.set()
        await asyncio.sleep(10)
        return "late"

    provider._post_generate = slow_post
    cancel = asyncio.Event()
    generation = asyncio.create_task(provider.generate("p", GenerationOptions(), cancel))
    await started.wait()
    cancel.set()

    assert await asyncio.wait_for(generation, timeout=1) is None


@pytest.mark.asyncio
async def test_list_models():
    provider = make_provider(
        lambda request: httpx.Response(200, json={"models": [{"name": "llama3.1:8b"}, {"name": "qwen2.5"}]})
    )
    assert await provider.list_models() == ["llama3.1:8b", "qwen2.5"]
    assert await provider.check_available_async() is True


@pytest.mark.asyncio
async def test_non_object_body_returns_none():
    provider = make_provider(lambda request: httpx.Response(200, json=["not", "an", "object"]))
    assert await provider.generate("p", GenerationOptions()) is None
    assert await provider.list_models() == []
