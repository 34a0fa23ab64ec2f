"""Tests for LLMClient output handling."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from resumeforge.llm_client import LLMClient, strip_fences

PARTS = [{"type": "input_text", "text": "hello"}]


@pytest.fixture
def openai_client():
    return MagicMock()


@pytest.fixture
def llm(openai_client):
    return LLMClient(openai_client, model="gpt-test")


def _returns(openai_client, text):
    openai_client.responses.create.return_value = SimpleNamespace(output_text=text)


@pytest.mark.parametrize("raw", [
    '```json\n{"a": 1}\n```',
    '```\n{"a": 1}\n```',
    '  {"a": 1}  ',
])
def test_strip_fences(raw):
    assert strip_fences(raw) == '{"a": 1}'


class TestCompleteJson:
    def test_parses_fenced_object(self, llm, openai_client):
        _returns(openai_client, '```json\n{"changes": [["a", "b"]]}\n```')
        assert llm.complete_json(PARTS, "changes") == {"changes": [["a", "b"]]}

    def test_trailing_commentary_is_cut(self, llm, openai_client):
        _returns(openai_client, '{"score": 70} Hope this helps!')
        assert llm.complete_json(PARTS, "ats_report") == {"score": 70}

    @pytest.mark.parametrize("text", ["", None, "not json at all", "[1, 2, 3]"])
    def test_unusable_output_is_none(self, llm, openai_client, text):
        _returns(openai_client, text)
        assert llm.complete_json(PARTS, "changes") is None

    def test_schema_is_sent_as_text_format(self, llm, openai_client):
        _returns(openai_client, "{}")
        schema = {"type": "object", "properties": {}}

        llm.complete_json(PARTS, "resume_structure", schema=schema, strict=False)

        kwargs = openai_client.responses.create.call_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["input"] == [{"role": "user", "content": PARTS}]
        assert kwargs["text"]["format"] == {
            "type": "json_schema", "name": "resume_structure", "schema": schema, "strict": False,
        }

    def test_no_schema_sends_no_format(self, llm, openai_client):
        _returns(openai_client, "{}")
        llm.complete_json(PARTS, "changes")
        assert "text" not in openai_client.responses.create.call_args.kwargs

    def test_network_errors_propagate(self, llm, openai_client):
        request = httpx.Request("POST", "https://api.openai.com/v1/responses")
        openai_client.responses.create.side_effect = openai.APIConnectionError(request=request)
        with pytest.raises(openai.APIConnectionError):
            llm.complete_json(PARTS, "changes")


class TestCompleteText:
    def test_strips_latex_fence(self, llm, openai_client):
        _returns(openai_client, "```latex\n\\documentclass{article}\n```")
        assert llm.complete_text(PARTS) == "\\documentclass{article}"

    def test_empty(self, llm, openai_client):
        _returns(openai_client, "")
        assert llm.complete_text(PARTS) is None


class TestFiles:
    def test_upload(self, llm, openai_client):
        openai_client.files.create.return_value = SimpleNamespace(id="file-123")

        assert llm.upload_file(b"%PDF", "resume.pdf") == "file-123"

        kwargs = openai_client.files.create.call_args.kwargs
        assert kwargs["purpose"] == "user_data"
        filename, buf = kwargs["file"]
        assert filename == "resume.pdf"
        assert buf.read() == b"%PDF"

    def test_delete(self, llm, openai_client):
        assert llm.delete_file("file-123") is True
        openai_client.files.delete.assert_called_once_with("file-123")

    def test_delete_failure_is_logged_not_raised(self, llm, openai_client):
        openai_client.files.delete.side_effect = openai.OpenAIError("gone")
        assert llm.delete_file("file-123") is False
