"""Framework-free request handlers for the audit routes.

Status mapping: InputError -> 400, ConfigError -> 500, unknown route -> 404.
Everything else is 200, with per-item failures embedded in the body.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from seoaudit.config import Config
from seoaudit.errors import ConfigError, InputError
from seoaudit.models import AuditResult
from seoaudit.orchestrator import AuditOrchestrator, open_orchestrator

logger = logging.getLogger(__name__)


@dataclass
class HandlerResponse:
    status: int
    body: dict = field(default_factory=dict)


def _require_str(body: dict, name: str) -> str:
    value = body.get(name)
    if not isinstance(value, str) or not value.strip():
        raise InputError(f"{name} is required")
    return value.strip()


def _optional_str(body: dict, name: str) -> str:
    value = body.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InputError(f"{name} must be a string")
    return value.strip()


def _require_str_list(body: dict, name: str) -> list[str]:
    value = body.get(name)
    if not isinstance(value, list) or not value:
        raise InputError(f"{name}[] is required")
    items = [v.strip() for v in value if isinstance(v, str) and v.strip()]
    if not items:
        raise InputError(f"{name}[] must contain at least one non-empty string")
    return items


def _as_body(body: Any) -> dict:
    if not isinstance(body, dict):
        raise InputError("Request body must be a JSON object")
    return body


def parse_run_audit(body: Any) -> dict:
    """Validate a /audit/run body into orchestrator arguments."""
    body = _as_body(body)
    return {
        "site_url": _require_str(body, "siteUrl"),
        "page_url": _require_str(body, "pageUrl"),
        "audit_type": _require_str(body, "auditType"),
        "keyword": _optional_str(body, "keyword") or None,
        "business_context": _optional_str(body, "businessContext"),
    }


def parse_run_batch(body: Any) -> dict:
    """Validate a /audit/run-batch body into orchestrator arguments."""
    body = _as_body(body)
    return {
        "site_url": _require_str(body, "siteUrl"),
        "page_urls": _require_str_list(body, "pageUrls"),
        "audit_type": _require_str(body, "auditType"),
        "keyword": _optional_str(body, "keyword") or None,
        "business_context": _optional_str(body, "businessContext"),
    }


def parse_run_multi(body: Any) -> dict:
    """Validate a /audit/run-multi body into orchestrator arguments."""
    body = _as_body(body)
    return {
        "site_url": _require_str(body, "siteUrl"),
        "page_url": _require_str(body, "pageUrl"),
        "audit_types": _require_str_list(body, "auditTypes"),
        "keyword": _optional_str(body, "keyword") or None,
        "business_context": _optional_str(body, "businessContext"),
    }


async def _run_audit(request: dict, orchestrator: AuditOrchestrator) -> dict:
    try:
        result = await orchestrator.run_audit(**request)
    except (InputError, ConfigError):
        raise
    except Exception as e:
        logger.exception(f"Unexpected error auditing {request['page_url']}")
        result = AuditResult.failed(
            request["page_url"], request["audit_type"], f"Audit failed: {e}",
            getattr(e, "kind", "audit"), keyword=request["keyword"] or "",
        )
    return result.to_dict()


async def _run_batch(request: dict, orchestrator: AuditOrchestrator) -> dict:
    results = await orchestrator.run_batch(**request)
    return {"results": [r.to_dict() for r in results]}


async def _run_multi(request: dict, orchestrator: AuditOrchestrator) -> dict:
    try:
        results = await orchestrator.run_multi(**request)
    except (InputError, ConfigError):
        raise
    except Exception as e:
        logger.exception(f"Unexpected error auditing {request['page_url']}")
        results = [
            AuditResult.failed(
                request["page_url"], name, f"Audit failed: {e}",
                getattr(e, "kind", "audit"), keyword=request["keyword"] or "",
            )
            for name in request["audit_types"]
        ]
    return {"results": [r.to_dict() for r in results]}


Route = tuple[Callable[[Any], dict], Callable[[dict, AuditOrchestrator], Awaitable[dict]]]

ROUTES: dict[str, Route] = {
    "/audit/run": (parse_run_audit, _run_audit),
    "/audit/run-batch": (parse_run_batch, _run_batch),
    "/audit/run-multi": (parse_run_multi, _run_multi),
}


def _error_response(error: Exception) -> HandlerResponse:
    if isinstance(error, InputError):
        return HandlerResponse(400, {"error": error.message})
    logger.error(f"Configuration error: {error}")
    return HandlerResponse(500, {"error": str(error)})


async def _handle(route: str, body: Any, orchestrator: AuditOrchestrator) -> HandlerResponse:
    parse, run = ROUTES[route]
    try:
        return HandlerResponse(200, await run(parse(body), orchestrator))
    except (InputError, ConfigError) as e:
        return _error_response(e)


async def handle_run_audit(body: Any, orchestrator: AuditOrchestrator) -> HandlerResponse:
    """POST /audit/run {siteUrl, pageUrl, auditType, keyword?, businessContext?}"""
    return await _handle("/audit/run", body, orchestrator)


async def handle_run_batch(body: Any, orchestrator: AuditOrchestrator) -> HandlerResponse:
    """POST /audit/run-batch {siteUrl, pageUrls[], auditType, keyword?, businessContext?}"""
    return await _handle("/audit/run-batch", body, orchestrator)


async def handle_run_multi(body: Any, orchestrator: AuditOrchestrator) -> HandlerResponse:
    """POST /audit/run-multi {siteUrl, pageUrl, auditTypes[], keyword?, businessContext?}"""
    return await _handle("/audit/run-multi", body, orchestrator)


async def dispatch(
    route: str,
    body: Any,
    config: Config,
    orchestrator: Optional[AuditOrchestrator] = None,
) -> HandlerResponse:
    """Route a request body to its handler.

    Input is validated before configuration is checked, so a malformed
    request is a 400 even when credentials are missing. Without an injected
    orchestrator one is built from config for this request and closed after.

    Args:
        route: Request path, e.g. "/audit/run"
        body: Decoded JSON body
        config: Runtime configuration
        orchestrator: Optional pre-built orchestrator

    Returns:
        HandlerResponse with status and JSON-serializable body
    """
    if route not in ROUTES:
        return HandlerResponse(404, {"error": f"Unknown route: {route}"})
    parse, run = ROUTES[route]
    try:
        request = parse(body)
        if orchestrator is not None:
            return HandlerResponse(200, await run(request, orchestrator))
        async with open_orchestrator(config) as built:
            return HandlerResponse(200, await run(request, built))
    except (InputError, ConfigError) as e:
        return _error_response(e)
