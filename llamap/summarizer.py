"""LLM page summarizer.

Provider URIs
-------------
The backend and model are selected with a single URI::

    <backend>://[<tag>@]<model>

``ollama://8b@qwen3`` runs Ollama model ``qwen3:8b``;
``openai://gpt-4o-mini`` runs OpenAI ``gpt-4o-mini``.

Backends
--------
``ollama``
    Local Ollama server at ``OLLAMA_BASE_URL``.

``openai``
    OpenAI (or any compatible endpoint at ``OPENAI_BASE_URL``).  The key is
    read from ``LLAMAP_MODEL_API_KEY``.

Prompt templates may use ``{url}`` and ``{text}`` placeholders.  When a
template has no ``{text}`` placeholder the page text is sent as a separate
user message after the prompt.
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from llamap.config import settings
from llamap.errors import ConfigurationError, SummarizationError

logger = logging.getLogger(__name__)

DEFAULT_PROMPT_TEMPLATE = """
You will see a webpage content from {url}.
Create its concise summary for a digest.
Your answer should contain only summary, it will be pasted directly into digest.
Nobody should know it was generated using an LLM.
Try your best to keep original style and language.
Webpage content to summarize:"""

# Reasoning models wrap their chain of thought in <think> tags.
_THINK_STRIPPER = re.compile(r"<think>[\s\S]*</think>\s*")

BACKENDS = ("ollama", "openai")


@dataclass(frozen=True)
class ProviderSpec:
    """A parsed provider URI."""

    uri: str
    backend: str
    model: str


def parse_provider_uri(uri: str) -> ProviderSpec:
    """Split ``backend://[tag@]model`` into backend and model name.

    Raises:
        ConfigurationError: If the URI is malformed or names an unknown backend.
    """
    backend, sep, rest = uri.partition("://")
    backend = backend.lower()
    if not sep or not backend:
        raise ConfigurationError(f"Invalid model URI {uri!r}: expected <backend>://<model>")
    if backend not in BACKENDS:
        raise ConfigurationError(
            f"Invalid LLM backend {backend!r} (choose from {', '.join(BACKENDS)})"
        )

    tag, _, model = rest.rstrip("/").rpartition("@")
    if not model:
        raise ConfigurationError(f"Specify model name as host URL in {uri!r}")
    if tag:
        model = f"{model}:{tag}"
    return ProviderSpec(uri=uri, backend=backend, model=model)


# ---------------------------------------------------------------------------
# LLM helper
# ---------------------------------------------------------------------------

def _get_llm(spec: ProviderSpec) -> Any:
    """Return a configured LangChain chat model for *spec*."""
    if spec.backend == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=spec.model,
            temperature=0,
            api_key=settings.model_api_key or None,
            base_url=settings.openai_base_url,
            timeout=settings.llm_timeout,
        )

    from langchain_ollama import ChatOllama

    client_kwargs: dict[str, Any] = {"timeout": settings.llm_timeout}
    if settings.model_api_key:
        client_kwargs["headers"] = {"Authorization": f"Bearer {settings.model_api_key}"}
    return ChatOllama(
        model=spec.model,
        temperature=0,
        base_url=settings.ollama_base_url,
        client_kwargs=client_kwargs,
    )


def strip_thinking(response: str) -> str:
    """Remove ``<think>…</think>`` blocks and surrounding whitespace."""
    return _THINK_STRIPPER.sub("", response).strip()


def build_messages(url: str, text: str, template: str) -> list[tuple[str, str]]:
    """Render *template* for one page into chat messages."""
    prompt = template.replace("{url}", url).replace("{text}", text)
    messages = [("human", prompt)]
    if "{text}" not in template:
        messages.append(("human", text))
    return messages


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

class Summarizer:
    """Summarizes page text with one provider and one prompt template.

    Args:
        spec: Parsed provider URI.
        prompt_template: Custom template; the built-in digest prompt when ``None``.
        llm: Pre-built chat model (tests); built from *spec* when omitted.
    """

    def __init__(
        self,
        spec: ProviderSpec,
        prompt_template: Optional[str] = None,
        llm: Any = None,
    ) -> None:
        self.spec = spec
        self.template = prompt_template or DEFAULT_PROMPT_TEMPLATE
        if prompt_template:
            digest = hashlib.sha256(prompt_template.encode("utf-8")).hexdigest()
            self.prompt_id = f"sha256:{digest[:12]}"
        else:
            self.prompt_id = "default"

        if llm is None:
            try:
                llm = _get_llm(spec)
            except Exception as exc:  # provider SDKs raise their own types
                raise ConfigurationError(f"Failed to build LLM model: {exc}") from exc
        self._llm = llm

    @property
    def tag(self) -> str:
        """Provider identifier stored alongside every summary."""
        return self.spec.uri

    def summarize(self, url: str, text: str) -> str:
        """Return the summary of one page.

        Raises:
            SummarizationError: If the provider call fails or times out, or
                the response is empty once ``<think>`` blocks are removed.
        """
        messages = build_messages(url, text, self.template)
        try:
            response = self._llm.invoke(messages)
        except Exception as exc:  # provider SDKs raise their own types
            raise SummarizationError(f"LLM error: {exc}", url=url) from exc

        content = response.content if hasattr(response, "content") else str(response)
        if not isinstance(content, str):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part) for part in content
            )

        summary = strip_thinking(content)
        if not summary:
            raise SummarizationError("LLM returned an empty summary", url=url)
        logger.debug("Summarized %s (%d chars)", url, len(summary))
        return summary
