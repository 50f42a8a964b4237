# src/main.py - v2
"""CLI entry point: enhance, stats, invalidate, sweep commands.

Usage:
    promptlift enhance "<prompt>" [--context ctx.json] [--no-cache] [--max-tokens N] [--json]
    promptlift stats
    promptlift invalidate <project signature>
    promptlift sweep
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from promptlift.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    from promptlift.config.settings import ConfigurationError, load_settings

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="promptlift",
        description=f"promptlift v{__version__} - context-enriched prompt enhancement",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- enhance ---
    p_enhance = subparsers.add_parser("enhance", help="Enhance a prompt")
    p_enhance.add_argument("prompt", help="Prompt to enhance")
    p_enhance.add_argument(
        "--context", type=Path, default=None,
        help="JSON file with request context (framework, dependencies, ...)",
    )
    p_enhance.add_argument(
        "--no-cache", action="store_true",
        help="Skip the response cache lookup",
    )
    p_enhance.add_argument(
        "--max-tokens", type=int, default=None,
        help="Cap the documentation token budget",
    )
    p_enhance.add_argument(
        "--json", action="store_true",
        help="Print the full camelCase response as JSON",
    )
    p_enhance.set_defaults(func=_cmd_enhance)

    # --- stats ---
    p_stats = subparsers.add_parser("stats", help="Show cache hit/miss statistics")
    p_stats.set_defaults(func=_cmd_stats)

    # --- invalidate ---
    p_inv = subparsers.add_parser(
        "invalidate", help="Drop cached context and responses of a project",
    )
    p_inv.add_argument("signature", help="Project signature (16 hex chars)")
    p_inv.set_defaults(func=_cmd_invalidate)

    # --- sweep ---
    p_sweep = subparsers.add_parser(
        "sweep", help="Remove expired and stale-version cache entries",
    )
    p_sweep.set_defaults(func=_cmd_sweep)

    return parser


async def _cmd_enhance(args: argparse.Namespace, settings) -> int:
    """Enhance one prompt and print the result."""
    from promptlift.api.facade import create_orchestrator, enhance

    payload: dict = {"prompt": args.prompt, "options": {"useCache": not args.no_cache}}
    if args.max_tokens is not None:
        payload["options"]["maxTokens"] = args.max_tokens
    if args.context is not None:
        if not args.context.is_file():
            logger.error("Context file not found: %s", args.context)
            return 1
        payload["context"] = json.loads(args.context.read_text(encoding="utf-8"))

    orchestrator = create_orchestrator(settings)
    try:
        response = await enhance(payload, orchestrator)
    finally:
        await orchestrator.aclose()

    if args.json:
        print(json.dumps(response.to_payload(), indent=2, ensure_ascii=False))
    elif response.success:
        print(response.enhanced_prompt)
        m = response.metrics
        print(
            f"\n[{m.processing_time_ms}ms, {m.external_call_count} external calls"
            f"{', cache hit' if m.cache_hit else ''}]",
            file=sys.stderr,
        )
    else:
        print(f"Error: {response.error}", file=sys.stderr)
    return 0 if response.success else 1


async def _cmd_stats(args: argparse.Namespace, settings) -> int:
    """Print persisted hit/miss counters per namespace."""
    from promptlift.cache.cache_factory import create_cache_bundle

    bundle = create_cache_bundle(settings)
    try:
        persisted = await bundle.tiered.persisted_stats()
        entries = await bundle.tiered.durable.count() if bundle.tiered.durable else 0
    finally:
        bundle.close()

    print(f"\nCache statistics ({settings.cache_db_path}):")
    print(f"  Entries: {entries}")
    if not persisted:
        print("  No lookups recorded yet.")
    for namespace, (hits, misses) in sorted(persisted.items()):
        total = hits + misses
        rate = hits / total if total else 0.0
        print(f"  {namespace:<12} hits={hits:<6} misses={misses:<6} hit_rate={rate:.1%}")
    return 0


async def _cmd_invalidate(args: argparse.Namespace, settings) -> int:
    """Drop raw, summarized and response entries of a project signature."""
    from promptlift.api.facade import create_orchestrator

    orchestrator = create_orchestrator(settings)
    try:
        removed = await orchestrator.invalidate(args.signature.strip().lower())
    finally:
        await orchestrator.aclose()

    print(f"\nInvalidated {args.signature}:")
    for namespace, count in removed.items():
        print(f"  {namespace:<12} {count}")
    return 0


async def _cmd_sweep(args: argparse.Namespace, settings) -> int:
    """Run one maintenance pass of the cache sweeper."""
    from promptlift.cache.cache_factory import CacheSweeper, create_cache_bundle

    bundle = create_cache_bundle(settings)
    try:
        counts = await CacheSweeper(bundle).run_once()
    finally:
        bundle.close()

    print("\nSweep complete:")
    print(f"  Expired removed:        {counts['expired']}")
    print(f"  Stale versions removed: {counts['stale_versions']}")
    return 0


def _setup_logging(settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from promptlift.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format="text" if verbose else settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
