"""Tests for heroes.services.llm_service."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from openai import AsyncOpenAI, InternalServerError

from heroes.config import Settings
from heroes.services.llm_service import LLMClient, normalize_json, parse_json_object


class TestNormalizeJson:
    """Tests for normalize_json."""

    def test_strips_markdown_fence(self):
        assert normalize_json('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_extracts_first_object_from_chatter(self):
        assert normalize_json('Sure! {"a": {"b": "}"}} hope that helps') == '{"a": {"b": "}"}}'

    def test_removes_trailing_commas(self):
        assert normalize_json('{"choices": ["A", "B",],}') == '{"choices": ["A", "B"]}'


class TestParseJsonObject:
    """Tests for parse_json_object."""

    def test_parses_object(self):
        assert parse_json_object('{"caption": "Hi"}') == {"caption": "Hi"}

    @pytest.mark.parametrize("raw", ["", "   \n"])
    def test_empty_text_rejected(self, raw):
        with pytest.raises(ValueError):
            parse_json_object(raw)

    def test_rejects_non_object(self):
        with pytest.raises(ValueError):
            parse_json_object("[1, 2]")


class TestLLMClient:
    """Tests for LLMClient.generate_json."""

    @pytest.mark.asyncio
    async def test_requests_json_object(self):
        openai_client = MagicMock()
        openai_client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(
                choices=[SimpleNamespace(message=SimpleNamespace(content='{"caption": "x"}'))]
            )
        )
        client = LLMClient(Settings(llm_model="test-text-model"), client=openai_client)

        raw = await client.generate_json("write page 1")

        assert raw == '{"caption": "x"}'
        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-text-model"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"] == [{"role": "user", "content": "write page 1"}]

    @pytest.mark.asyncio
    async def test_empty_content_is_not_an_object(self):
        openai_client = MagicMock()
        openai_client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=None))])
        )
        client = LLMClient(Settings(), client=openai_client)

        raw = await client.generate_json("x")

        assert raw == ""
        with pytest.raises(ValueError):
            parse_json_object(raw)

    def test_client_does_not_retry(self):
        client = LLMClient(Settings(llm_api_key="test-key"))
        assert client._get_client().max_retries == 0

    @pytest.mark.asyncio
    async def test_server_error_sends_single_request(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(500, json={"error": {"message": "upstream failure"}})

        def make_client(**kwargs):
            return AsyncOpenAI(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)), **kwargs)

        with patch("heroes.services.llm_service.AsyncOpenAI", side_effect=make_client):
            client = LLMClient(Settings(llm_api_key="test-key"))
            with pytest.raises(InternalServerError):
                await client.generate_json("write page 1")

        assert len(requests) == 1
