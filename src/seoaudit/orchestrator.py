"""Audit orchestration: fetch, extract, grade, ask the LLM, persist.

Per-item failures (fetch, LLM call, unparsable output) become zero-score
AuditResults. Only InputError for a bad audit type escapes to the caller.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional, Sequence

from seoaudit.audit_types import AuditType, get_audit_type
from seoaudit.config import Config, RubricThresholds, default_thresholds
from seoaudit.constants import (
    DEFAULT_LLM_TIMEOUT_SECONDS,
    DEFAULT_MAX_BATCH_PAGES,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_PERSIST_TIMEOUT_SECONDS,
)
from seoaudit.context import build_page_context
from seoaudit.database import KEYWORD_AUDIT_KEYS, PAGE_AUDIT_KEYS, AbstractAuditStore, get_store
from seoaudit.errors import ConfigError, FetchFailure, InputError, LLMCallFailure, ParseFailure
from seoaudit.extractor import extract
from seoaudit.fetcher import PageFetcher
from seoaudit.keyword import analyze
from seoaudit.llm import LLMClient, normalize_audit_payload, parse_llm_json
from seoaudit.models import AuditResult, GradeSheet, KeywordRelevance, PageFacts
from seoaudit.rubric import grade

logger = logging.getLogger(__name__)


class AuditOrchestrator:
    """Runs LLM audits for one page, a batch of pages, or several audit types.

    The fetcher, LLM client and store are injected; their lifecycle belongs
    to whoever constructed them.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        llm: Optional[LLMClient],
        store: Optional[AbstractAuditStore] = None,
        thresholds: Optional[RubricThresholds] = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        max_batch_pages: int = DEFAULT_MAX_BATCH_PAGES,
        llm_timeout: float = DEFAULT_LLM_TIMEOUT_SECONDS,
        persist_timeout: float = DEFAULT_PERSIST_TIMEOUT_SECONDS,
    ):
        """Initialize the orchestrator.

        Args:
            fetcher: Page fetch collaborator
            llm: LLM collaborator (may be None for grade-only use)
            store: Optional audit store; results are not persisted without one
            thresholds: Rubric thresholds (default_thresholds when None)
            max_concurrency: Maximum audits running at once in a batch
            max_batch_pages: Maximum pages accepted per batch; extra pages are dropped
            llm_timeout: Seconds allowed for one LLM call
            persist_timeout: Seconds allowed for one store write
        """
        self.fetcher = fetcher
        self.llm = llm
        self.store = store
        self.thresholds = thresholds or default_thresholds
        self.max_concurrency = max(1, max_concurrency)
        self.max_batch_pages = max(1, max_batch_pages)
        self.llm_timeout = llm_timeout
        self.persist_timeout = persist_timeout

    async def _fetch_facts(self, page_url: str) -> PageFacts:
        page = await self.fetcher.fetch(page_url)
        # extract against the final URL so redirects do not turn every link external
        return extract(page.text, page.url or page_url, page.headers)

    async def grade_page(
        self,
        page_url: str,
        keyword: Optional[str] = None,
        audit_type: Optional[str] = None,
    ) -> tuple[PageFacts, Optional[KeywordRelevance], GradeSheet]:
        """Fetch a page and grade it without calling the LLM.

        Raises:
            FetchFailure: If the page cannot be fetched
        """
        facts = await self._fetch_facts(page_url)
        relevance = analyze(facts, keyword) if keyword else None
        sheet = grade(facts, relevance, audit_type, self.thresholds)
        return facts, relevance, sheet

    async def run_audit(
        self,
        site_url: str,
        page_url: str,
        audit_type: str,
        keyword: Optional[str] = None,
        business_context: str = "",
    ) -> AuditResult:
        """Audit one page.

        Args:
            site_url: Site identifier used as the persistence key
            page_url: Page to audit
            audit_type: Registered audit type name
            keyword: Optional target keyword
            business_context: Optional business description for the prompt

        Returns:
            AuditResult; failures are embedded with score 0 and an error

        Raises:
            InputError: If audit_type is not registered
        """
        descriptor = get_audit_type(audit_type)
        keyword = (keyword or "").strip()
        try:
            facts = await self._fetch_facts(page_url)
        except FetchFailure as e:
            logger.warning(str(e))
            return AuditResult.failed(page_url, descriptor.name, str(e), e.kind, keyword=keyword)
        return await self._audit_facts(site_url, page_url, descriptor, facts, keyword, business_context)

    async def run_batch(
        self,
        site_url: str,
        page_urls: Sequence[str],
        audit_type: str,
        keyword: Optional[str] = None,
        business_context: str = "",
    ) -> list[AuditResult]:
        """Audit several pages concurrently with per-page failure isolation.

        At most max_batch_pages pages are audited; results keep input order.

        Raises:
            InputError: If audit_type is not registered or no page URLs are given
        """
        descriptor = get_audit_type(audit_type)
        urls = [url for url in page_urls if url]
        if not urls:
            raise InputError("pageUrls must contain at least one URL")
        if len(urls) > self.max_batch_pages:
            logger.warning(f"Batch of {len(urls)} pages capped at {self.max_batch_pages}")
            urls = urls[: self.max_batch_pages]

        logger.info(f"Starting {descriptor.name} batch of {len(urls)} pages for {site_url}")
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def audit_one(url: str) -> AuditResult:
            async with semaphore:
                return await self.run_audit(site_url, url, descriptor.name, keyword, business_context)

        outcomes = await asyncio.gather(*(audit_one(url) for url in urls), return_exceptions=True)

        results = []
        for url, outcome in zip(urls, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Audit of {url} failed: {outcome}")
                results.append(AuditResult.failed(
                    url,
                    descriptor.name,
                    f"Audit failed: {str(outcome) or type(outcome).__name__}",
                    getattr(outcome, "kind", "audit"),
                    keyword=(keyword or "").strip(),
                ))
            else:
                results.append(outcome)

        succeeded = sum(1 for r in results if r.succeeded)
        logger.info(f"Finished {descriptor.name} batch: {succeeded}/{len(results)} succeeded")
        return results

    async def run_multi(
        self,
        site_url: str,
        page_url: str,
        audit_types: Sequence[str],
        keyword: Optional[str] = None,
        business_context: str = "",
    ) -> list[AuditResult]:
        """Fetch a page once and run several audit types against it concurrently.

        Unknown audit type names are skipped.

        Raises:
            InputError: If none of the audit types is registered
        """
        descriptors = []
        for name in audit_types:
            try:
                descriptor = get_audit_type(name)
            except InputError:
                logger.warning(f"Skipping unknown audit type '{name}'")
                continue
            if descriptor not in descriptors:
                descriptors.append(descriptor)
        if not descriptors:
            raise InputError("No valid audit types provided")

        keyword = (keyword or "").strip()
        try:
            facts = await self._fetch_facts(page_url)
        except FetchFailure as e:
            logger.warning(str(e))
            return [
                AuditResult.failed(page_url, d.name, str(e), e.kind, keyword=keyword)
                for d in descriptors
            ]

        outcomes = await asyncio.gather(
            *(self._audit_facts(site_url, page_url, d, facts, keyword, business_context) for d in descriptors),
            return_exceptions=True,
        )
        results = []
        for descriptor, outcome in zip(descriptors, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"{descriptor.name} audit of {page_url} failed: {outcome}")
                results.append(AuditResult.failed(
                    page_url, descriptor.name, f"Audit failed: {outcome}",
                    getattr(outcome, "kind", "audit"), keyword=keyword,
                ))
            else:
                results.append(outcome)
        return results

    async def _audit_facts(
        self,
        site_url: str,
        page_url: str,
        descriptor: AuditType,
        facts: PageFacts,
        keyword: str,
        business_context: str,
    ) -> AuditResult:
        relevance = analyze(facts, keyword) if keyword else None
        grades: Optional[GradeSheet] = None
        if descriptor.requires_grade:
            grades = grade(facts, relevance, descriptor.rubric_scope, self.thresholds)

        if self.llm is None:
            return AuditResult.failed(
                page_url, descriptor.name, "No LLM client configured", LLMCallFailure.kind,
                keyword=keyword, grades=grades,
            )

        context = build_page_context(facts, descriptor, relevance, grades, business_context)
        try:
            raw = await asyncio.wait_for(
                self.llm.complete(descriptor.full_system_prompt(), context, descriptor.max_tokens),
                timeout=self.llm_timeout,
            )
        except asyncio.TimeoutError:
            message = f"LLM call timed out after {self.llm_timeout:.0f}s"
            logger.error(f"{descriptor.name} audit of {page_url}: {message}")
            return AuditResult.failed(
                page_url, descriptor.name, message, LLMCallFailure.kind, keyword=keyword, grades=grades
            )
        except Exception as e:
            logger.error(f"{descriptor.name} audit of {page_url}: LLM call failed: {e}")
            return AuditResult.failed(
                page_url, descriptor.name, f"Audit failed: {e}", LLMCallFailure.kind,
                keyword=keyword, grades=grades,
            )

        parsed = parse_llm_json(raw)
        if not parsed.ok:
            failure = ParseFailure(parsed.error, parsed.snippet)
            logger.error(
                f"Failed to parse {descriptor.name} response for {page_url}: {failure.message}. "
                f"Raw: {failure.snippet!r}"
            )
            return AuditResult.failed(
                page_url,
                descriptor.name,
                f"Failed to parse audit results: {failure.message}",
                failure.kind,
                keyword=keyword,
                grades=grades,
                raw_snippet=failure.snippet,
            )

        payload = normalize_audit_payload(parsed.value)
        result = AuditResult(
            page_url=page_url,
            audit_type=descriptor.name,
            score=payload["score"],
            summary=payload["summary"],
            strengths=payload["strengths"],
            recommendations=payload["recommendations"],
            standards=payload["standards"] if descriptor.wants_standards else [],
            grades=grades,
            keyword=keyword,
        )
        await self._persist(site_url, result)
        return result

    async def _persist(self, site_url: str, result: AuditResult) -> None:
        """Best-effort upsert in a worker thread; failures and timeouts are logged, never raised."""
        if self.store is None or not result.succeeded:
            return
        row = {
            "site_url": site_url,
            "page_url": result.page_url,
            "audit_type": result.audit_type,
            "score": result.score,
            "summary": result.summary,
            "strengths": result.strengths,
            "recommendations": result.recommendations,
            "audited_at": datetime.now(timezone.utc),
        }
        if result.grades is not None:
            row["grades"] = result.grades.to_dict()["grades"]
            row["overall_grade"] = result.grades.overall_grade

        if result.audit_type == "recommendations" and result.keyword:
            table, keys = "keyword_audits", KEYWORD_AUDIT_KEYS
            row["keyword"] = result.keyword
        else:
            table, keys = "page_audits", PAGE_AUDIT_KEYS
            row["standards"] = result.standards

        try:
            await asyncio.wait_for(
                asyncio.to_thread(self.store.upsert, table, row, keys),
                timeout=self.persist_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Persisting {result.audit_type} audit of {result.page_url} timed out after {self.persist_timeout:.0f}s"
            )
        except Exception as e:
            logger.error(f"Failed to persist {result.audit_type} audit of {result.page_url}: {e}")


@asynccontextmanager
async def open_orchestrator(
    config: Config,
    require_llm: bool = True,
    persist: bool = True,
    thresholds: Optional[RubricThresholds] = None,
) -> AsyncIterator[AuditOrchestrator]:
    """Construct an orchestrator and its collaborators from config, closing them on exit.

    A store that cannot be opened is logged and skipped; persistence never
    blocks an audit.

    Raises:
        ConfigError: If require_llm is set and no LLM API key is configured
    """
    llm = None
    if require_llm:
        llm = LLMClient(
            api_key=config.require_llm_key(),
            model=config.llm_model,
            provider=config.llm_provider,
            max_tokens=config.llm_max_tokens,
            timeout=config.llm_timeout,
        )

    store = None
    if persist:
        try:
            store = get_store(config.db_backend, **_store_kwargs(config))
        except Exception as e:
            logger.error(f"Audit store unavailable, results will not be persisted: {e}")

    fetcher = PageFetcher(user_agent=config.user_agent, timeout=config.fetch_timeout)
    try:
        yield AuditOrchestrator(
            fetcher,
            llm,
            store=store,
            thresholds=thresholds,
            max_concurrency=config.max_concurrency,
            max_batch_pages=config.max_batch_pages,
            llm_timeout=config.llm_timeout,
            persist_timeout=config.persist_timeout,
        )
    finally:
        await fetcher.aclose()
        if llm is not None:
            await llm.aclose()
        if store is not None:
            store.close()


def _store_kwargs(config: Config) -> dict:
    if config.db_backend == "local":
        return {"db_url": config.database_url}
    if config.db_backend == "turso":
        return {}
    raise ConfigError(f"Unknown database backend: '{config.db_backend}'")
