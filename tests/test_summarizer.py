"""Tests for the LLM summarizer.

The chat model is always replaced by a stub: either passed directly as
``llm=`` or by patching ``llamap.summarizer._get_llm``.  No Ollama server or
OpenAI key is needed.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from llamap.errors import ConfigurationError, SummarizationError
from llamap.summarizer import (
    DEFAULT_PROMPT_TEMPLATE,
    Summarizer,
    build_messages,
    parse_provider_uri,
    strip_thinking,
)


def _llm(content) -> MagicMock:
    llm = MagicMock()
    llm.invoke.return_value = SimpleNamespace(content=content)
    return llm


# ---------------------------------------------------------------------------
# Provider URIs
# ---------------------------------------------------------------------------

class TestParseProviderUri:
    def test_ollama_with_tag(self) -> None:
        spec = parse_provider_uri("ollama://8b@qwen3")
        assert spec.backend == "ollama"
        assert spec.model == "qwen3:8b"
        assert spec.uri == "ollama://8b@qwen3"

    def test_model_without_tag(self) -> None:
        spec = parse_provider_uri("openai://gpt-4o-mini")
        assert spec.backend == "openai"
        assert spec.model == "gpt-4o-mini"

    def test_backend_is_case_insensitive(self) -> None:
        assert parse_provider_uri("OLLAMA://llama3").backend == "ollama"

    @pytest.mark.parametrize("uri", ["qwen3", "://qwen3", "ollama://", "ollama://8b@"])
    def test_malformed_uri_raises(self, uri: str) -> None:
        with pytest.raises(ConfigurationError):
            parse_provider_uri(uri)

    def test_unknown_backend_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid LLM backend"):
            parse_provider_uri("anthropic://claude")


# ---------------------------------------------------------------------------
# Response cleanup / prompt rendering
# ---------------------------------------------------------------------------

class TestStripThinking:
    def test_filled_think_removed(self) -> None:
        response = "<think>This is inside think tags</think>\n## [Test Title](http://example.com)\nTest content"
        assert strip_thinking(response) == "## [Test Title](http://example.com)\nTest content"

    def test_empty_think_removed(self) -> None:
        response = "<think>\n</think>\n## [Test Title](http://example.com)\nTest content"
        assert strip_thinking(response) == "## [Test Title](http://example.com)\nTest content"

    def test_plain_response_is_trimmed(self) -> None:
        assert strip_thinking("  A summary.\n") == "A summary."

    def test_only_thinking_leaves_nothing(self) -> None:
        assert strip_thinking("<think>hmm</think>") == ""


class TestBuildMessages:
    def test_text_placeholder_is_inlined(self) -> None:
        messages = build_messages("https://example.com/", "BODY", "Summarize {url}:\n{text}")
        assert messages == [("human", "Summarize https://example.com/:\nBODY")]

    def test_text_sent_separately_without_placeholder(self) -> None:
        messages = build_messages("https://example.com/", "BODY", DEFAULT_PROMPT_TEMPLATE)
        assert len(messages) == 2
        assert "https://example.com/" in messages[0][1]
        assert "{url}" not in messages[0][1]
        assert messages[1] == ("human", "BODY")


# ---------------------------------------------------------------------------
# Summarizer
# ---------------------------------------------------------------------------

class TestSummarizer:
    def test_returns_cleaned_summary(self) -> None:
        llm = _llm("<think>plan</think>\nA short digest entry.")
        summarizer = Summarizer(parse_provider_uri("ollama://qwen3"), llm=llm)

        assert summarizer.summarize("https://example.com/", "page text") == "A short digest entry."
        llm.invoke.assert_called_once()

    def test_tag_is_provider_uri(self) -> None:
        summarizer = Summarizer(parse_provider_uri("ollama://8b@qwen3"), llm=_llm("x"))
        assert summarizer.tag == "ollama://8b@qwen3"

    def test_prompt_id_identifies_template(self) -> None:
        spec = parse_provider_uri("ollama://qwen3")
        assert Summarizer(spec, llm=_llm("x")).prompt_id == "default"
        custom = Summarizer(spec, prompt_template="Summarize {text}", llm=_llm("x"))
        assert custom.prompt_id.startswith("sha256:")
        assert custom.template == "Summarize {text}"

    def test_list_content_is_joined(self) -> None:
        llm = _llm([{"type": "text", "text": "Part one. "}, {"type": "text", "text": "Part two."}])
        summarizer = Summarizer(parse_provider_uri("openai://gpt-4o-mini"), llm=llm)
        assert summarizer.summarize("https://example.com/", "t") == "Part one. Part two."

    def test_provider_failure_raises_summarization_error(self) -> None:
        llm = MagicMock()
        llm.invoke.side_effect = TimeoutError("read timed out")
        summarizer = Summarizer(parse_provider_uri("ollama://qwen3"), llm=llm)

        with pytest.raises(SummarizationError, match="read timed out") as excinfo:
            summarizer.summarize("https://example.com/", "t")
        assert excinfo.value.url == "https://example.com/"

    def test_empty_response_raises(self) -> None:
        summarizer = Summarizer(parse_provider_uri("ollama://qwen3"), llm=_llm("<think>x</think>  "))
        with pytest.raises(SummarizationError, match="empty summary"):
            summarizer.summarize("https://example.com/", "t")

    def test_builds_llm_from_spec(self) -> None:
        spec = parse_provider_uri("ollama://8b@qwen3")
        with patch("llamap.summarizer._get_llm", return_value=_llm("S")) as mock_get:
            summarizer = Summarizer(spec)
        mock_get.assert_called_once_with(spec)
        assert summarizer.summarize("https://example.com/", "t") == "S"

    def test_llm_construction_failure_is_configuration_error(self) -> None:
        with patch("llamap.summarizer._get_llm", side_effect=ValueError("bad key")):
            with pytest.raises(ConfigurationError, match="bad key"):
                Summarizer(parse_provider_uri("openai://gpt-4o-mini"))

    def test_ollama_model_is_configured(self) -> None:
        summarizer = Summarizer(parse_provider_uri("ollama://8b@qwen3"))
        assert summarizer._llm.model == "qwen3:8b"
