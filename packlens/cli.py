"""CLI entrypoints for packlens commands."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Mapping, Optional

from .analysis import AnalysisEngine, AnalysisKind
from .config import ConfigError, PacklensConfig, load_config
from .daemon import ResultCache
from .errors import PacklensError
from .logging import configure_logging, get_logger
from .models import AnalysisOptions, AnalysisRequest, AnalysisResult


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="packlens",
        description="Inspect bundler output for module sizes and duplicated code.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        default=".",
        help="Path to .packlens.yml or the directory containing it.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    descriptions = {
        AnalysisKind.SIZES: "Report raw, minified and gzip sizes per module.",
        AnalysisKind.DUPLICATES: "Report modules duplicated across the bundle.",
        AnalysisKind.COMBINED: "Report sizes and duplicates in one pass.",
    }
    for kind, help_text in descriptions.items():
        sub = subparsers.add_parser(kind.value, help=help_text)
        _add_verbose_option(sub, suppress_default=True)
        sub.add_argument("bundle", help="Bundle file to analyze, or '-' for stdin.")
        sub.add_argument(
            "--manifest",
            help="Module manifest (webpack stats JSON) describing the bundle.",
        )
        sub.add_argument(
            "--minified",
            action="store_true",
            default=None,
            help="Compute minified module sizes.",
        )
        sub.add_argument(
            "--gzip",
            action="store_true",
            default=None,
            help="Compute gzip module sizes.",
        )
        sub.add_argument(
            "--cache",
            nargs="?",
            const="",
            default=None,
            help="Serve results through the persistent cache (optionally at FILE).",
        )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for packlens commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))
    logger = get_logger("cli")

    try:
        config = load_config(Path(args.config))
        request = _build_request(args, config)
        result = _run(AnalysisKind.parse(args.command), request, args.cache, config)
    except (ConfigError, PacklensError, OSError) as exc:
        logger.debug("Analysis failed", exc_info=True)
        parser.exit(1, f"packlens {args.command} failed: {exc}\n")

    print(json.dumps(result.to_dict(), indent=2))


def _build_request(args: argparse.Namespace, config: PacklensConfig) -> AnalysisRequest:
    if args.bundle == "-":
        code = sys.stdin.read()
    else:
        code = Path(args.bundle).read_text(encoding="utf-8")
    manifest: Optional[Mapping[str, Any]] = None
    if args.manifest:
        try:
            manifest = json.loads(Path(args.manifest).read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Manifest {args.manifest} is not valid JSON: {exc}") from exc
    options = AnalysisOptions(
        format=config.analysis.format,
        minified=config.analysis.minified if args.minified is None else args.minified,
        gzip=config.analysis.gzip if args.gzip is None else args.gzip,
    )
    return AnalysisRequest(code=code, options=options, manifest=manifest)


def _run(
    kind: AnalysisKind,
    request: AnalysisRequest,
    cache_arg: Optional[str],
    config: PacklensConfig,
) -> AnalysisResult:
    if cache_arg is None:
        return AnalysisEngine().analyze(kind, request)

    store_path = Path(cache_arg) if cache_arg else config.cache.path

    async def _cached() -> AnalysisResult:
        async with ResultCache(store_path) as cache:
            return await cache.analyze(kind, request)

    return asyncio.run(_cached())


if __name__ == "__main__":
    main(sys.argv[1:])
