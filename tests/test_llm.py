"""Tests for the LLM client and the natural-language shell translator."""

import json

import httpx
import pytest

from toolgate.cancellation import CancellationToken
from toolgate.config import LLMConfig
from toolgate.errors import ExecutionError
from toolgate.llm import ChatResponse, LLMClient, LLMError
from toolgate.nl_shell import LLMShellTranslator, clean_command

CONFIG = LLMConfig(base_url="http://llm.test/v1", api_key="secret", model="tiny")


def completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": "stop"}]}


def make_client(handler, max_retries=2):
    return LLMClient(CONFIG, max_retries=max_retries, retry_delay=0, transport=httpx.MockTransport(handler))


class FakeClient:
    """Stands in for LLMClient, recording prompts."""

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    def chat(self, messages):
        self.prompts.append(messages[0]["content"])
        if self.error:
            raise self.error
        return ChatResponse(self.reply, "stop", {})


class TestLLMClient:
    """Tests for LLMClient."""

    def test_chat_request(self):
        """The request goes to /chat/completions with the configured model."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=completion("ls -la"))

        with make_client(handler) as client:
            response = client.chat([{"role": "user", "content": "list"}])
        assert response.content == "ls -la"
        assert response.finish_reason == "stop"
        assert seen[0].url.path == "/v1/chat/completions"
        assert seen[0].headers["authorization"] == "Bearer secret"
        body = json.loads(seen[0].content)
        assert body["model"] == "tiny"
        assert body["messages"] == [{"role": "user", "content": "list"}]

    def test_retries_on_503(self):
        """Service-unavailable responses are retried."""
        responses = [httpx.Response(503), httpx.Response(200, json=completion("pwd"))]
        with make_client(lambda r: responses.pop(0)) as client:
            assert client.chat([]).content == "pwd"
        assert responses == []

    def test_client_error_is_not_retried(self):
        """Other HTTP errors fail straight away."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400, text="bad request")

        with make_client(handler) as client:
            with pytest.raises(LLMError, match="HTTP 400: bad request"):
                client.chat([])
        assert len(calls) == 1

    def test_gives_up_after_retries(self):
        """Persistent failures raise after max_retries + 1 attempts."""
        with make_client(lambda r: httpx.Response(429), max_retries=1) as client:
            with pytest.raises(LLMError, match="Request failed after 2 attempts"):
                client.chat([])

    def test_malformed_response(self):
        """A reply without choices is an LLMError."""
        with make_client(lambda r: httpx.Response(200, json={"id": "x"})) as client:
            with pytest.raises(LLMError, match="Malformed chat completion response"):
                client.chat([])


class TestCleanCommand:
    """Tests for clean_command."""

    def test_strips_fences(self):
        """Markdown fences around the command are removed."""
        assert clean_command("```bash\nls -la\n```") == "ls -la"

    def test_keeps_first_line(self):
        """Trailing explanation lines are dropped."""
        assert clean_command("  git status\nShows the working tree.  ") == "git status"


class TestLLMShellTranslator:
    """Tests for LLMShellTranslator."""

    @pytest.mark.asyncio
    async def test_translate(self):
        """The reply is cleaned and explained."""
        client = FakeClient("```\npwd\n```")
        parsed = await LLMShellTranslator(client).translate("where am I", "/work")
        assert parsed.command == "pwd"
        assert parsed.explanation == 'Parsed "where am I" to: pwd'
        assert "Working directory: /work" in client.prompts[0]
        assert "User request: where am I" in client.prompts[0]

    @pytest.mark.asyncio
    async def test_llm_failure(self):
        """LLM errors become execution errors."""
        translator = LLMShellTranslator(FakeClient(error=LLMError("HTTP 500: boom")))
        with pytest.raises(ExecutionError, match="Failed to parse NL to shell: HTTP 500: boom"):
            await translator.translate("list files", None)

    @pytest.mark.asyncio
    async def test_empty_reply(self):
        """An empty reply cannot be run."""
        with pytest.raises(ExecutionError, match="Failed to parse natural language"):
            await LLMShellTranslator(FakeClient("")).translate("list files", None)

    @pytest.mark.asyncio
    async def test_cancelled(self):
        """A cancelled token stops before the command is returned."""
        token = CancellationToken()
        token.cancel()
        with pytest.raises(ExecutionError, match="NL parsing cancelled"):
            await LLMShellTranslator(FakeClient("ls")).translate("list files", None, token)
