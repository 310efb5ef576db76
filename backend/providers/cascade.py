"""Ordered fallback strategies run when a provider resolver comes back empty.

Every strategy implements ``attempt(request) -> list[StreamCandidate]``. One
runner iterates them under the request's cancellation signal combined with an
aggregate deadline, gives each its own timeout and stops at the first strategy
that produces a candidate.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Protocol, Sequence
from urllib.parse import urlsplit, urlunsplit

from .errors import AbortedError, ExecutionError, NetworkError
from .extractors import ExtractorSet, PageCache
from .fallback import FallbackClient
from .http import ProviderHttpClient
from .models import ExtractionAttempt, ResolutionResult, StreamCandidate, dedupe_candidates, validate_candidates
from .patterns import DEFAULT_PATTERNS, MiningPatterns, mine_page
from .signals import AbortSignal

logger = logging.getLogger(__name__)

CASCADE_BUDGET_SECONDS = 25.0
ALTERNATE_SEGMENTS: tuple[str, ...] = ("watch", "embed", "stream", "play", "video")


@dataclass(slots=True)
class ExtractionRequest:
    """Inputs shared by every strategy for one resolution."""

    provider: str
    link: str
    type: str
    signal: AbortSignal
    resolver: Any = None
    provider_context: Any = None
    page: PageCache = field(default_factory=PageCache)


class Strategy(Protocol):
    name: str
    timeout: float

    async def attempt(self, request: ExtractionRequest) -> list[StreamCandidate]:
        ...


def alternative_urls(link: str) -> list[str]:
    """Derive sibling URLs by moving the final path segment under alternates.

    Prefix forms (``/watch/{last}``) come first, then suffix forms
    (``/{last}/watch``). The result is de-duplicated, keeps order and never
    contains ``link`` itself.
    """

    parts = urlsplit(link)
    segments = [segment for segment in parts.path.split("/") if segment]
    if not segments:
        return []
    parent, last = segments[:-1], segments[-1]

    shapes = [[*parent, alternate, last] for alternate in ALTERNATE_SEGMENTS]
    shapes += [[*parent, last, alternate] for alternate in ALTERNATE_SEGMENTS]

    urls: list[str] = []
    for shape in shapes:
        url = urlunsplit((parts.scheme, parts.netloc, "/" + "/".join(shape), parts.query, ""))
        if url != link and url not in urls:
            urls.append(url)
    return urls


def _batches(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class AlternativeUrlStrategy:
    """Re-invoke the provider resolver on sibling URL shapes."""

    name = "alternative-url"

    def __init__(self, *, timeout: float = 30.0, concurrency: int = 2) -> None:
        self.timeout = timeout
        self._concurrency = max(1, concurrency)

    async def _try_url(self, request: ExtractionRequest, url: str) -> list[StreamCandidate]:
        logger.debug("Trying alternative URL %s", url)
        try:
            raw = await request.resolver(
                link=url,
                type=request.type,
                signal=request.signal,
                provider_context=request.provider_context,
            )
        except ExecutionError as exc:
            logger.info("Alternative URL %s failed: %s", url, exc)
            return []
        return validate_candidates(raw, source=self.name)

    async def attempt(self, request: ExtractionRequest) -> list[StreamCandidate]:
        if request.resolver is None:
            return []
        for batch in _batches(alternative_urls(request.link), self._concurrency):
            results = await asyncio.gather(*(self._try_url(request, url) for url in batch))
            for candidates in results:
                if candidates:
                    return candidates
        return []


class HostExtractorStrategy:
    """Ask each host extractor in turn whether it recognises the link."""

    name = "host-extractors"

    def __init__(self, extractors: ExtractorSet, *, timeout: float = 20.0) -> None:
        self._extractors = extractors
        self.timeout = timeout

    async def attempt(self, request: ExtractionRequest) -> list[StreamCandidate]:
        for extractor in self._extractors.ordered():
            request.signal.raise_if_aborted()
            candidates = await self._extractors.run(
                extractor.name,
                request.link,
                signal=request.signal,
                require_claim=True,
                page=request.page,
            )
            if candidates:
                logger.info("%s extractor matched %s", extractor.name, request.link)
                return candidates
        return []


class DirectPatternStrategy:
    """Mine the original page for media URLs."""

    name = "direct-pattern"

    def __init__(
        self,
        http: ProviderHttpClient,
        *,
        patterns: MiningPatterns = DEFAULT_PATTERNS,
        timeout: float = 15.0,
    ) -> None:
        self._http = http
        self._patterns = patterns
        self.timeout = timeout

    async def attempt(self, request: ExtractionRequest) -> list[StreamCandidate]:
        page = await request.page.load(
            self._http, request.link, timeout=self.timeout, signal=request.signal
        )
        if page is None:
            return []
        page_url, markup = page
        return mine_page(markup, page_url, patterns=self._patterns)


class LinkedTunnelStrategy:
    """Follow links to redirector pages and mine those pages one level deep."""

    name = "linked-tunnel"

    def __init__(
        self,
        http: ProviderHttpClient,
        *,
        patterns: MiningPatterns = DEFAULT_PATTERNS,
        timeout: float = 25.0,
        link_timeout: float = 10.0,
        max_links: int = 2,
    ) -> None:
        self._http = http
        self._patterns = patterns
        self.timeout = timeout
        self._link_timeout = link_timeout
        self._max_links = max_links

    async def _mine(self, url: str, label: str, signal: AbortSignal) -> list[StreamCandidate]:
        try:
            response = await self._http.get(url, timeout=self._link_timeout, signal=signal)
        except NetworkError as exc:
            logger.warning("Tunnel page %s failed: %s", url, exc)
            return []
        if response.is_error:
            logger.info("Tunnel page %s returned HTTP %s", url, response.status_code)
            return []
        return mine_page(response.text, str(response.url), patterns=self._patterns, label=label)

    async def attempt(self, request: ExtractionRequest) -> list[StreamCandidate]:
        page = await request.page.load(self._http, request.link, signal=request.signal)
        if page is None:
            return []
        links = self._patterns.redirector_links(page[1], limit=self._max_links)
        if not links:
            return []
        logger.info("Following %d tunnel link(s) from %s", len(links), request.link)
        results = await asyncio.gather(
            *(self._mine(url, label, request.signal) for url, label in links)
        )
        return dedupe_candidates(candidate for batch in results for candidate in batch)


class StreamFallbackStrategy:
    """Delegate once to the fallback resolver."""

    name = "stream-fallback"

    def __init__(self, client: FallbackClient, *, timeout: float = 30.0) -> None:
        self._client = client
        self.timeout = timeout

    async def attempt(self, request: ExtractionRequest) -> list[StreamCandidate]:
        return await self._client.resolve(request.link, type=request.type, signal=request.signal)


class CascadeRunner:
    """Run strategies in order until one yields candidates."""

    def __init__(self, strategies: Sequence[Strategy], *, budget: float = CASCADE_BUDGET_SECONDS) -> None:
        self._strategies = list(strategies)
        self._budget = budget

    @property
    def strategies(self) -> list[Strategy]:
        return list(self._strategies)

    async def _attempt(
        self, strategy: Strategy, request: ExtractionRequest
    ) -> tuple[ExtractionAttempt, list[StreamCandidate]]:
        started = time.monotonic()
        attempt = ExtractionAttempt(strategy=strategy.name, succeeded=False)
        try:
            raw = await request.signal.guard(asyncio.wait_for(strategy.attempt(request), timeout=strategy.timeout))
        except asyncio.TimeoutError:
            attempt.error = f"timed out after {strategy.timeout:g}s"
            raw = []
        except AbortedError as exc:
            attempt.error = str(exc)
            raw = []
        except Exception as exc:
            logger.warning("Strategy %s failed: %s", strategy.name, exc)
            attempt.error = f"{exc.__class__.__name__}: {exc}"
            raw = []
        attempt.elapsed = time.monotonic() - started
        candidates = dedupe_candidates(validate_candidates(raw, source=strategy.name))
        attempt.candidates = len(candidates)
        attempt.succeeded = bool(candidates)
        return attempt, candidates

    async def run(self, request: ExtractionRequest) -> ResolutionResult:
        deadline = AbortSignal.timeout(self._budget, message=f"Cascade budget of {self._budget:g}s exhausted")
        scoped = replace(request, signal=AbortSignal.any([request.signal, deadline]))
        attempts: list[ExtractionAttempt] = []
        try:
            for strategy in self._strategies:
                if request.signal.aborted:
                    break
                if scoped.signal.aborted:
                    logger.warning("Cascade budget exhausted before %s", strategy.name)
                    break
                logger.info("Cascade strategy %s for %s", strategy.name, request.link)
                attempt, candidates = await self._attempt(strategy, scoped)
                attempts.append(attempt)
                logger.info(
                    "Strategy %s: %d candidate(s) in %.2fs%s",
                    attempt.strategy,
                    attempt.candidates,
                    attempt.elapsed,
                    f" ({attempt.error})" if attempt.error else "",
                )
                if attempt.succeeded:
                    return ResolutionResult(
                        candidates=candidates, source=strategy.name, attempts=attempts
                    )
        finally:
            deadline.dispose()

        request.signal.raise_if_aborted()
        return ResolutionResult(candidates=[], source="cascade", attempts=attempts)


def build_default_strategies(
    *,
    http: ProviderHttpClient,
    extractors: ExtractorSet,
    fallback: FallbackClient,
    patterns: MiningPatterns = DEFAULT_PATTERNS,
    timeouts: dict[str, float] | None = None,
    strategy_concurrency: int = 2,
    tunnel_link_limit: int = 2,
    tunnel_link_timeout: float = 10.0,
) -> list[Strategy]:
    """Return the five built-in strategies in cascade order."""

    timeouts = timeouts or {}
    return [
        AlternativeUrlStrategy(
            timeout=timeouts.get("alternative-url", 30.0), concurrency=strategy_concurrency
        ),
        HostExtractorStrategy(extractors, timeout=timeouts.get("host-extractors", 20.0)),
        DirectPatternStrategy(http, patterns=patterns, timeout=timeouts.get("direct-pattern", 15.0)),
        LinkedTunnelStrategy(
            http,
            patterns=patterns,
            timeout=timeouts.get("linked-tunnel", 25.0),
            link_timeout=tunnel_link_timeout,
            max_links=tunnel_link_limit,
        ),
        StreamFallbackStrategy(fallback, timeout=timeouts.get("stream-fallback", 30.0)),
    ]
