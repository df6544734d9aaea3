"""Command line interface for streamupload package."""
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from rich.logging import RichHandler

from .cli_progress import (
    TransferProgressDisplay,
    console,
    human_size,
    render_configuration_summary,
    render_response,
)
from .coordinator import UploadCoordinator
from .errors import UploadError
from .models import UploadConfig
from .services import BackgroundUploadSession, DownloadRegistry, DownloadService, HTTPXTransport
from .utils.events import TASK_COMPLETE, TASK_FAIL, TASK_PROGRESS


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
        level = getattr(logging, log_level.upper(), None)
        if not isinstance(level, int):
            env_level = os.getenv("LOG_LEVEL")
            level = getattr(logging, (env_level or "INFO").upper(), logging.INFO)

    handler = RichHandler(
        console=console,
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


def _build_config(args: argparse.Namespace) -> UploadConfig:
    config = UploadConfig.from_env()
    if args.chunk_size:
        config = dataclasses.replace(config, chunk_size=args.chunk_size)
    return config


def _require_file(source: Path) -> Path:
    source = Path(source).expanduser()
    if not source.is_file():
        raise CLIError(f"source is not a file: {source}")
    return source


async def _run_upload(source: Path, url: str, field: str, config: UploadConfig) -> int:
    async with HTTPXTransport(timeout=config.request_timeout) as transport:
        coordinator = UploadCoordinator(transport, config)
        data = await coordinator.upload_media(url, field, source)

    render_response(data)
    return 0 if data is not None else 1


async def _run_video(source: Path, url: Optional[str], config: UploadConfig) -> int:
    async with BackgroundUploadSession(
        identifier=config.session_identifier,
        timeout=config.request_timeout,
        chunk_size=config.chunk_size,
    ) as session:
        display = TransferProgressDisplay()
        session.events.on(TASK_PROGRESS, display.on_progress)
        session.events.on(TASK_COMPLETE, display.on_complete)
        session.events.on(TASK_FAIL, display.on_fail)

        coordinator = UploadCoordinator(config=config)
        try:
            task_id = await coordinator.upload_video(source, lambda: session, url)
        except ValueError as exc:
            raise CLIError(str(exc)) from exc

        with display:
            record = await session.wait(task_id)

    render_response(record.response)
    return 0 if record.success else 1


async def _run_download(url: str, config: UploadConfig) -> int:
    async with HTTPXTransport(timeout=config.request_timeout) as transport:
        downloader = DownloadService(
            transport,
            DownloadRegistry(),
            temp_dir=config.temp_dir,
            chunk_size=config.chunk_size,
        )
        path = await downloader.download(url)

    if path is None:
        print(f"ERROR: download failed: {url}", file=sys.stderr)
        return 1
    console.print(f"{path} ({human_size(path.stat().st_size)})")
    return 0


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=None,
        help="Bytes per streamed chunk (default from STREAMUPLOAD_CHUNK_SIZE or 65536)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stream-up",
        description="Streamed multipart uploads and de-duplicated downloads.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="stream-up (from streamupload)",
    )
    commands = parser.add_subparsers(dest="command")

    upload = commands.add_parser("upload", help="Upload an image or video and print the JSON response")
    upload.add_argument("source", type=Path, help="Local file (jpg, jpeg, png or mov)")
    upload.add_argument("-u", "--url", required=True, help="Destination endpoint")
    upload.add_argument(
        "-f",
        "--field",
        default=None,
        help="Form field name (default from STREAMUPLOAD_MEDIA_FIELD or 'image')",
    )
    _add_common_options(upload)

    video = commands.add_parser("video", help="Upload a video through a background session")
    video.add_argument("source", type=Path, help="Local video file")
    video.add_argument(
        "-u",
        "--url",
        default=None,
        help="Destination endpoint (default from STREAMUPLOAD_VIDEO_ENDPOINT)",
    )
    _add_common_options(video)

    download = commands.add_parser("download", help="Download a URL into the temp directory")
    download.add_argument("url", help="Remote URL")
    _add_common_options(download)

    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

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

    try:
        config = _build_config(args)
    except ValueError as exc:
        print(f"ERROR: invalid configuration: {exc}", file=sys.stderr)
        return 1

    if not args.silent:
        target = getattr(args, "url", None) or config.video_endpoint
        render_configuration_summary(
            {
                "Command": args.command,
                "Source": str(getattr(args, "source", None) or "-"),
                "Target": target or "(missing)",
                "Chunk Size": human_size(config.chunk_size),
                "Temp Dir": str(config.temp_dir),
                "Env File": str(used_env_file) if used_env_file else "-",
                "Logging": effective_log_mode,
            }
        )

    try:
        if args.command == "upload":
            field = args.field or config.media_field
            return asyncio.run(_run_upload(_require_file(args.source), args.url, field, config))
        if args.command == "video":
            return asyncio.run(_run_video(_require_file(args.source), args.url, config))
        return asyncio.run(_run_download(args.url, config))
    except (CLIError, UploadError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
