"""Command-line interface for seoaudit."""

import asyncio
import sys
import json
from typing import Optional

from seoaudit.config import Config, RubricThresholds
from seoaudit.errors import AuditError, ConfigError, InputError
from seoaudit.logging_config import setup_logging
from seoaudit.orchestrator import open_orchestrator
from seoaudit.report import render_audit_report, render_grade_report


def _load_thresholds(path: Optional[str]) -> RubricThresholds:
    if path:
        return RubricThresholds.from_file(path)
    return RubricThresholds.from_env()


def _emit(text: str, output_file: Optional[str]) -> None:
    if output_file:
        with open(output_file, "w") as f:
            f.write(text)
        print(f"Results written to {output_file}", file=sys.stderr)
    else:
        print(text)


def _emit_results(results, args) -> None:
    if args.json:
        payload = [r.to_dict() for r in results]
        _emit(json.dumps(payload[0] if len(payload) == 1 else payload, indent=2, default=str), args.output_file)
    else:
        _emit("\n---\n\n".join(render_audit_report(r) for r in results), args.output_file)


async def _audit(args, config: Config) -> int:
    site_url = args.site or args.url
    async with open_orchestrator(config, persist=not args.no_save, thresholds=_load_thresholds(args.thresholds)) as orchestrator:
        result = await orchestrator.run_audit(site_url, args.url, args.type, args.keyword, args.context or "")
    _emit_results([result], args)
    return 0 if result.succeeded else 1


async def _batch(args, config: Config) -> int:
    site_url = args.site or args.urls[0]
    async with open_orchestrator(config, persist=not args.no_save, thresholds=_load_thresholds(args.thresholds)) as orchestrator:
        results = await orchestrator.run_batch(site_url, args.urls, args.type, args.keyword, args.context or "")
    _emit_results(results, args)
    return 0 if all(r.succeeded for r in results) else 1


async def _multi(args, config: Config) -> int:
    site_url = args.site or args.url
    audit_types = [t.strip() for t in args.types.split(",") if t.strip()]
    async with open_orchestrator(config, persist=not args.no_save, thresholds=_load_thresholds(args.thresholds)) as orchestrator:
        results = await orchestrator.run_multi(site_url, args.url, audit_types, args.keyword, args.context or "")
    _emit_results(results, args)
    return 0 if all(r.succeeded for r in results) else 1


async def _grade(args, config: Config) -> int:
    async with open_orchestrator(
        config, require_llm=False, persist=False, thresholds=_load_thresholds(args.thresholds)
    ) as orchestrator:
        facts, relevance, sheet = await orchestrator.grade_page(args.url, args.keyword, args.scope)
    if args.json:
        payload = sheet.to_dict()
        if relevance is not None:
            payload["keyword"] = {
                "keyword": relevance.keyword,
                "positions": relevance.positions(),
                "mentions": relevance.mention_count,
                "density": relevance.density,
            }
        _emit(json.dumps(payload, indent=2), args.output_file)
    else:
        _emit(render_grade_report(sheet, facts, relevance), args.output_file)
    return 0


def _add_common_audit_args(parser) -> None:
    parser.add_argument("--site", help="Site identifier used as the storage key (default: the page URL)")
    parser.add_argument("--keyword", "-k", help="Target keyword")
    parser.add_argument("--context", help="Business context to include in the prompt")
    parser.add_argument("--no-save", action="store_true", help="Do not persist results")


def _add_output_args(parser) -> None:
    parser.add_argument("--json", action="store_true", help="Print JSON instead of a Markdown report")
    parser.add_argument("--output-file", "-f", help="Write output to file")
    parser.add_argument("--thresholds", help="JSON file with rubric threshold overrides")


def main(argv: Optional[list] = None):
    """Main CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="seoaudit - Extract SEO facts, grade pages and run LLM page audits"
    )

    # Global flags (before subcommands)
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Set logging verbosity (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to file in addition to console",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    audit_parser = subparsers.add_parser("audit", help="Run one LLM audit on a page.")
    audit_parser.add_argument("url", help="Page URL to audit")
    audit_parser.add_argument("--type", "-t", default="seo", help="Audit type (default: seo)")
    _add_common_audit_args(audit_parser)
    _add_output_args(audit_parser)
    audit_parser.set_defaults(func=_audit)

    batch_parser = subparsers.add_parser("batch", help="Run one audit type on several pages concurrently.")
    batch_parser.add_argument("urls", nargs="+", help="Page URLs to audit")
    batch_parser.add_argument("--type", "-t", default="seo", help="Audit type (default: seo)")
    _add_common_audit_args(batch_parser)
    _add_output_args(batch_parser)
    batch_parser.set_defaults(func=_batch)

    multi_parser = subparsers.add_parser("multi", help="Fetch a page once and run several audit types.")
    multi_parser.add_argument("url", help="Page URL to audit")
    multi_parser.add_argument(
        "--types", default="seo,content,aeo,schema,compliance",
        help="Comma-separated audit types (default: seo,content,aeo,schema,compliance)",
    )
    _add_common_audit_args(multi_parser)
    _add_output_args(multi_parser)
    multi_parser.set_defaults(func=_multi)

    grade_parser = subparsers.add_parser("grade", help="Grade a page with the deterministic rubric (no LLM).")
    grade_parser.add_argument("url", help="Page URL to grade")
    grade_parser.add_argument("--keyword", "-k", help="Target keyword")
    grade_parser.add_argument(
        "--scope", choices=["compliance", "performance"], help="Add audit-type scoped criteria"
    )
    _add_output_args(grade_parser)
    grade_parser.set_defaults(func=_grade)

    args = parser.parse_args(argv)
    config = Config.from_env()

    # Configure logging based on flags
    setup_logging(
        level=args.log_level or config.log_level,
        log_file=getattr(args, "log_file", None),
    )

    if not hasattr(args, "func"):
        parser.print_help()
        return

    try:
        exit_code = asyncio.run(args.func(args, config))
    except (InputError, ConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except AuditError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
