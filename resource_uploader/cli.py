"""Command line interface for resource_uploader package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from rich.logging import RichHandler

from .cli_progress import UploadProgressDisplay, human_size, render_configuration_summary
from .models import ResourceMetadata, UploadConfig
from .orchestrator import QueueItem, QueueUploadResult, UploadOrchestrator

CONTENT_TYPES = ("slides", "document")


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug, --log-level or LOG_LEVEL is
    provided. Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    env_level = os.getenv("LOG_LEVEL")
    if silent or (not debug and not log_level and not env_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, (log_level or env_level or "INFO").upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    return logging.getLevelName(level)


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _build_metadata(args: argparse.Namespace, path: Path, multiple: bool) -> ResourceMetadata:
    title = args.title or path.stem
    if args.title and multiple:
        title = f"{args.title} - {path.stem}"
    return ResourceMetadata(
        title=title,
        module_id=args.module,
        content_type=args.content_type,
        owner_scope=args.cohort,
        session_number=args.session,
        order_index=args.order,
        duration_seconds=args.duration,
    )


def _auth_headers(token: Optional[str]) -> Optional[dict]:
    if not token:
        return None
    return {"Authorization": f"Bearer {token}"}


async def _run_upload(
    sources: List[Path],
    args: argparse.Namespace,
    api_url: str,
    config: UploadConfig,
) -> int:
    display = UploadProgressDisplay()
    multiple = len(sources) > 1

    async with UploadOrchestrator(
        api_url,
        config=config,
        headers=_auth_headers(os.getenv("RESOURCE_API_TOKEN")),
    ) as orchestrator:
        if not multiple:
            source = sources[0]
            result = await orchestrator.upload(
                source,
                _build_metadata(args, source, multiple=False),
                display.get_callback(),
            )
            display.stop()
            if result.success:
                display.on_file_complete(result)
            else:
                display.on_file_fail(result)
            display.on_finish(QueueUploadResult.from_results([result]))
            return 0 if result.success else 1

        process = orchestrator.upload_queue([
            QueueItem(source, _build_metadata(args, source, multiple=True))
            for source in sources
        ])
        process.on_file_start(display.on_file_start)
        process.on_file_progress(display.on_file_progress)
        process.on_file_complete(display.on_file_complete)
        process.on_file_fail(display.on_file_fail)
        process.on_finish(display.on_finish)

        queue_result = await process.wait()
        return 0 if queue_result.success else 1


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0: {value}")
    return number


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="resource-up",
        description="Upload learning resource files to the admin backend.",
    )
    parser.add_argument("sources", nargs="*", type=Path, help="Files to upload")
    parser.add_argument("-m", "--module", default=None, help="Target learning module ID")
    parser.add_argument(
        "-t",
        "--title",
        default=None,
        help="Resource title (default: file name without extension)",
    )
    parser.add_argument(
        "--content-type",
        choices=CONTENT_TYPES,
        default="document",
        help="Resource kind (default: document)",
    )
    parser.add_argument(
        "-c",
        "--cohort",
        default="global",
        help="Cohort ID owning the file, or 'global' (default)",
    )
    parser.add_argument("--session", type=_non_negative_int, default=None, help="Session number")
    parser.add_argument("--order", type=_non_negative_int, default=0, help="Order index (default 0)")
    parser.add_argument("--duration", type=_non_negative_int, default=None, help="Duration in seconds")
    parser.add_argument(
        "--api-url",
        default=None,
        help="Resource API base URL (default from RESOURCE_API_URL)",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Concurrent uploads when several files are given",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="resource-up (from resource_uploader)",
    )
    return parser


def _build_config(args: argparse.Namespace) -> UploadConfig:
    kwargs = {"storage_api_key": os.getenv("STORAGE_API_KEY") or None}
    if args.jobs is not None:
        if args.jobs < 1:
            raise CLIError("--jobs must be at least 1")
        kwargs["max_concurrent_uploads"] = args.jobs
    return UploadConfig(**kwargs)


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if not args.sources:
        parser.print_help()
        return 0

    sources = [Path(source).expanduser() for source in args.sources]
    missing = [source for source in sources if not source.exists()]
    if missing:
        for source in missing:
            print(f"ERROR: source does not exist: {source}", file=sys.stderr)
        return 1

    if not args.module:
        print("ERROR: --module is required", file=sys.stderr)
        return 1

    api_url = args.api_url or os.getenv("RESOURCE_API_URL")
    if not api_url:
        print("ERROR: RESOURCE_API_URL environment variable is not set", file=sys.stderr)
        return 1

    try:
        config = _build_config(args)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    total_size = sum(source.stat().st_size for source in sources if source.is_file())
    direct_count = sum(
        1 for source in sources
        if source.is_file() and config.use_direct_upload(source.stat().st_size)
    )
    render_configuration_summary(
        {
            "Files": len(sources),
            "Total Size": human_size(total_size),
            "Direct Uploads": direct_count,
            "Module": args.module,
            "Cohort": args.cohort,
            "Content Type": args.content_type,
            "Resource API": api_url,
            "Storage Key": "set" if config.storage_api_key else "-",
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    try:
        return asyncio.run(_run_upload(sources, args, api_url, config))
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
