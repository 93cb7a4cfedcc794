"""
Feasibility checker for AdCheck.

Sends one prompt to Claude with the built-in web_search tool enabled and
turns the reply into a ValidationResult.

Flow
────
1. check_streaming(platform_name, search_context, query)
     → yields text tokens in real-time while Claude searches + writes
     → captures cited pages from web_search_tool_result blocks
     → classifies the assembled text and yields the final ValidationResult

2. check(...)
     → blocking wrapper that drains check_streaming() and returns the result
"""

from __future__ import annotations

import logging
from collections.abc import Generator, Iterable
from typing import TYPE_CHECKING

import anthropic

from adcheck.classifier import classify_verdict
from adcheck.models import Source, ValidationResult
from adcheck.prompts import SYSTEM_PROMPT, build_prompt

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)

WEB_SEARCH_BETA = "web-search-2025-03-05"
WEB_SEARCH_TOOL = {"type": "web_search_20250305", "name": "web_search"}


class CheckError(RuntimeError):
    """The AI call failed or returned nothing usable."""


def _normalise_url(url: str) -> str:
    return url.rstrip("/").lower()


class FeasibilityChecker:
    """Asks Claude whether an ad is allowed on a given platform.

    The Anthropic client is lazy-initialised to allow instantiation without
    a live API key (useful in tests when the client is mocked).
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._client: object = None  # Lazy-initialised anthropic.Anthropic instance

    @property
    def client(self) -> object:
        """Lazy-initialise and return the Anthropic SDK client."""
        if self._client is None:
            self._client = anthropic.Anthropic(
                api_key=self.settings.anthropic_api_key,
                timeout=self.settings.request_timeout,
                max_retries=self.settings.max_retries,
            )
        return self._client

    def _search_tool(self, domains: Iterable[str]) -> dict:
        tool = {**WEB_SEARCH_TOOL, "max_uses": self.settings.max_web_searches}
        domains = list(domains)
        if self.settings.restrict_search_domains and domains:
            tool["allowed_domains"] = domains
        return tool

    # ── Streaming check ────────────────────────────────────────────────────

    def check_streaming(
        self,
        platform_name: str,
        search_context: str,
        query: str,
        domains: Iterable[str] = (),
    ) -> Generator[tuple[str, object], None, None]:
        """Stream one feasibility check.

        Yields ``(event_type, payload)`` tuples:

        * ``("token",  str)``              — a text chunk from Claude's reply
        * ``("source", Source)``           — a cited page (deduplicated)
        * ``("result", ValidationResult)`` — the classified result (last event)

        Raises:
            EmptyQueryError: If *query* is blank. Raised before any API call.
            CheckError: On API failures or an empty reply.
        """
        prompt = build_prompt(platform_name, search_context, query)

        sources: list[Source] = []
        seen: set[str] = set()
        text_parts: list[str] = []

        logger.info("Check platform=%r query=%r", platform_name, query)

        try:
            with self.client.beta.messages.stream(
                model=self.settings.check_model,
                max_tokens=self.settings.max_tokens,
                betas=[WEB_SEARCH_BETA],
                tools=[self._search_tool(domains)],
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            ) as stream:
                for event in stream:
                    event_type = getattr(event, "type", None)

                    # ── Capture cited pages ────────────────────────────────
                    if event_type == "content_block_start":
                        block = getattr(event, "content_block", None)
                        if block and getattr(block, "type", None) == "web_search_tool_result":
                            for item in getattr(block, "content", []) or []:
                                if getattr(item, "type", None) != "web_search_result":
                                    continue
                                url = getattr(item, "url", "") or ""
                                key = _normalise_url(url)
                                if not key or key in seen:
                                    continue
                                if len(sources) >= self.settings.max_sources:
                                    continue
                                seen.add(key)
                                src = Source(uri=url, title=getattr(item, "title", None) or None)
                                sources.append(src)
                                yield ("source", src)

                    # ── Stream text tokens ─────────────────────────────────
                    elif event_type == "content_block_delta":
                        delta = getattr(event, "delta", None)
                        if delta and getattr(delta, "type", None) == "text_delta":
                            text_parts.append(delta.text)
                            yield ("token", delta.text)
        except anthropic.APIError as exc:
            raise CheckError(f"AI request failed: {exc}") from exc

        raw_text = "".join(text_parts).strip()
        if not raw_text:
            raise CheckError("AI returned an empty answer.")

        result = ValidationResult(
            verdict=classify_verdict(raw_text),
            summary=raw_text,
            sources=tuple(sources),
        )
        logger.info(
            "Check complete: verdict=%s, %d sources", result.verdict.value, len(sources)
        )
        yield ("result", result)

    # ── Convenience wrapper ────────────────────────────────────────────────

    def check(
        self,
        platform_name: str,
        search_context: str,
        query: str,
        domains: Iterable[str] = (),
    ) -> ValidationResult:
        """Blocking check — searches, writes, and classifies in one go.

        For web use, prefer check_streaming() so the user sees progress.
        """
        result = None
        for event_type, payload in self.check_streaming(
            platform_name, search_context, query, domains=domains
        ):
            if event_type == "result":
                result = payload
        return result
