"""SEO fact extraction, page grading and LLM-backed page audits."""

__version__ = "0.1.0"

from seoaudit.extractor import extract
from seoaudit.keyword import analyze
from seoaudit.rubric import grade
from seoaudit.audit_types import AUDIT_TYPES, AuditType, get_audit_type
from seoaudit.orchestrator import AuditOrchestrator, open_orchestrator
from seoaudit.fetcher import PageFetcher
from seoaudit.llm import LLMClient, ParseResult, parse_llm_json
from seoaudit.database import get_store
from seoaudit.models import (
    PageFacts,
    KeywordRelevance,
    CriterionGrade,
    GradeSheet,
    AuditResult,
)
from seoaudit.errors import (
    AuditError,
    InputError,
    ConfigError,
    FetchFailure,
    LLMCallFailure,
    ParseFailure,
    PersistenceFailure,
)
from seoaudit.config import Config, RubricThresholds, settings

__all__ = [
    "extract",
    "analyze",
    "grade",
    "AUDIT_TYPES",
    "AuditType",
    "get_audit_type",
    "AuditOrchestrator",
    "open_orchestrator",
    "PageFetcher",
    "LLMClient",
    "ParseResult",
    "parse_llm_json",
    "get_store",
    "PageFacts",
    "KeywordRelevance",
    "CriterionGrade",
    "GradeSheet",
    "AuditResult",
    "AuditError",
    "InputError",
    "ConfigError",
    "FetchFailure",
    "LLMCallFailure",
    "ParseFailure",
    "PersistenceFailure",
    "Config",
    "RubricThresholds",
    "settings",
]
