"""Command line interface for the asset uploader."""
from __future__ import annotations

import argparse
import asyncio
import logging
import mimetypes
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from rich.logging import RichHandler

from .cli_progress import (
    BatchUploadProgressDisplay,
    render_batch_result,
    render_configuration_summary,
)
from .errors import AssetUploadError, ConfigurationError
from .models import StorageSettings, UploadConfig, UploadRequest
from .orchestrator import BatchUploadOrchestrator
from .protocols import BlobStore
from .services import GCSBlobStore, HTTPAPIClient, InMemoryBlobStore, ListingImageRepository
from .use_cases import attach_uploaded_images

DEFAULT_MIME_TYPE = "application/octet-stream"


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug or --log-level is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent or (not debug and not log_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level.upper(), logging.INFO)

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
            line = line[len("export "):].strip()
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


def _guess_mime_type(path: Path) -> str:
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type or DEFAULT_MIME_TYPE


def _read_requests(paths: Sequence[Path]) -> List[UploadRequest]:
    requests = []
    for path in paths:
        if not path.is_file():
            raise CLIError(f"not a file: {path}")
        try:
            content = path.read_bytes()
        except OSError as exc:
            raise CLIError(f"could not read {path}: {exc}") from exc
        requests.append(UploadRequest(content=content, filename=path.name, mime_type=_guess_mime_type(path)))
    return requests


def _build_config(args: argparse.Namespace) -> UploadConfig:
    """Environment configuration overridden by explicit flags."""
    base = UploadConfig.from_env()
    overrides = {
        "key_prefix": args.prefix,
        "max_attempts": args.attempts,
        "retry_delay": args.retry_delay,
        "max_parallel": args.max_parallel,
        "batch_timeout": args.timeout,
    }
    values = {k: v for k, v in overrides.items() if v is not None}
    if not values:
        return base
    return UploadConfig(
        key_prefix=values.get("key_prefix", base.key_prefix),
        max_attempts=values.get("max_attempts", base.max_attempts),
        retry_delay=values.get("retry_delay", base.retry_delay),
        url_attempts=base.url_attempts,
        url_expires_at=base.url_expires_at,
        max_parallel=values.get("max_parallel", base.max_parallel),
        batch_timeout=values.get("batch_timeout", base.batch_timeout),
        cleanup_on_failure=base.cleanup_on_failure,
    )


def _build_store(backend: str) -> BlobStore:
    if backend == "memory":
        return InMemoryBlobStore()
    if backend == "gcs":
        return GCSBlobStore.from_settings(StorageSettings.from_env())
    raise CLIError(f"unknown storage backend: {backend}")


async def _run_upload(
    requests: List[UploadRequest],
    store: BlobStore,
    config: UploadConfig,
    listing_id: Optional[str],
    api_url: Optional[str],
) -> int:
    orchestrator = BatchUploadOrchestrator(store, config)

    display = BatchUploadProgressDisplay(len(requests))
    display.start()
    try:
        result = await orchestrator.upload(requests, progress_callback=display.on_outcome)
    finally:
        display.stop()

    render_batch_result(result, sizes={r.filename: r.size for r in requests})

    if listing_id is not None:
        if not api_url:
            raise CLIError("--listing-id requires --api-url or MARKETPLACE_API_URL")
        async with HTTPAPIClient(api_url) as api:
            records = await attach_uploaded_images(ListingImageRepository(api), listing_id, result)
        print(f"Attached {len(records)} image(s) to listing {listing_id}")

    return 0 if result.all_success else 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="asset-up",
        description="Upload files to blob storage and print a signed read URL for each.",
    )
    parser.add_argument("files", nargs="*", type=Path, help="Files to upload as one batch")
    parser.add_argument(
        "-b",
        "--backend",
        choices=["gcs", "memory"],
        default="gcs",
        help="Storage backend (memory = dry run, nothing leaves the process)",
    )
    parser.add_argument("-p", "--prefix", default=None, help="Key prefix (default from ASSET_UPLOAD_KEY_PREFIX or imoveis)")
    parser.add_argument("--attempts", type=int, default=None, help="Write attempts per file")
    parser.add_argument("--retry-delay", type=float, default=None, help="Seconds between attempts")
    parser.add_argument("--max-parallel", type=int, default=None, help="Concurrent uploads (default: all files)")
    parser.add_argument("--timeout", type=float, default=None, help="Batch deadline in seconds")
    parser.add_argument(
        "-l",
        "--listing-id",
        default=None,
        help="Attach the resulting URLs to this listing through the marketplace API",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help="Marketplace API URL (default from MARKETPLACE_API_URL)",
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
        version="asset-up (from asset_uploader)",
    )
    return parser


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

    if not args.files:
        parser.print_help()
        return 0

    api_url = args.api_url or os.getenv("MARKETPLACE_API_URL")

    try:
        requests = _read_requests([Path(f).expanduser() for f in args.files])
        config = _build_config(args)
        store = _build_store(args.backend)
    except (CLIError, ConfigurationError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    render_configuration_summary(
        {
            "Files": len(requests),
            "Backend": args.backend,
            "Key Prefix": config.key_prefix,
            "Attempts": config.max_attempts,
            "Retry Delay": f"{config.retry_delay}s",
            "Max Parallel": config.max_parallel or "all",
            "Timeout": f"{config.batch_timeout}s" if config.batch_timeout else "-",
            "Listing": args.listing_id or "-",
            "Marketplace API": api_url or "-",
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    try:
        return asyncio.run(
            _run_upload(
                requests,
                store,
                config,
                listing_id=args.listing_id,
                api_url=api_url,
            )
        )
    except (CLIError, AssetUploadError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
