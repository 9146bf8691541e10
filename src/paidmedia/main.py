"""
main.py — Paid Media Assistant Entry Point

Usage:
    paidmedia                               # interactive chat REPL
    paidmedia --check                       # test the API key against the upstream proxy
    paidmedia --log-level DEBUG             # verbose logging
    paidmedia --config path/to/config.yaml
"""

from __future__ import annotations
# ─────────────────────────────────────────────────────────────────────────────
# Load environment variables before settings are read
# ─────────────────────────────────────────────────────────────────────────────

from dotenv import load_dotenv
from pathlib import Path


def _find_env_file() -> Path | None:
    """Walk up from CWD looking for .env file."""
    cwd = Path.cwd()
    for d in [cwd, *cwd.parents]:
        candidate = d / ".env"
        if candidate.is_file():
            return candidate
    return None


_env_path = _find_env_file()
if _env_path:
    load_dotenv(dotenv_path=_env_path)

# ─────────────────────────────────────────────────────────────────────────────
import argparse
import asyncio
import sys


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="paidmedia",
        description="Paid Media Assistant — streaming campaign planning agent",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: $PAIDMEDIA_CONFIG or config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override log level from config",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        default=False,
        help="Test the configured API key against the LLM proxy and exit",
    )
    return parser.parse_args(argv)


def bootstrap(args: argparse.Namespace):
    """
    Load config, validate it fully, and set up logging.
    Returns (settings, log) ready for use.

    Exits with code 1 (after printing a clear message) if:
      - config.yaml has invalid values (Pydantic ValidationError)
      - cross-field problems are found (ConfigError from validate_all())
    """
    from paidmedia.config.settings import load_settings, ConfigError
    from paidmedia.observability.logger import setup_logging, get_logger
    from pydantic import ValidationError

    # -- Load and parse -------------------------------------------------------
    try:
        settings = load_settings(args.config)
    except ValidationError as exc:
        problems = "\n".join(
            f"  • {e['loc'][-1] if e['loc'] else '?'}: {e['msg']}"
            for e in exc.errors()
        )
        print(
            f"\n❌  Config validation failed:\n\n{problems}\n\n"
            f"    Fix config/config.yaml or your .env file and restart.\n",
            file=sys.stderr,
        )
        sys.exit(1)
    except OSError as exc:
        print(
            f"\n❌  Failed to load config: {type(exc).__name__}: {exc}\n",
            file=sys.stderr,
        )
        sys.exit(1)
    except (ValueError, TypeError) as exc:
        print(
            f"\n❌  Failed to load config: {type(exc).__name__}: {exc}\n",
            file=sys.stderr,
        )
        sys.exit(1)

    # -- Cross-field validation -----------------------------------------------
    try:
        settings.validate_all()
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)

    # -- Logging --------------------------------------------------------------
    # CLI --log-level flag overrides config.yaml
    log_level = args.log_level or settings.log_level

    setup_logging(
        level=log_level,
        log_dir=settings.log_dir,
        json_format=settings.logging.json_format,
        console_output=settings.logging.console_output,
        max_bytes=settings.logging.max_file_size_mb * 1024 * 1024,
        backup_count=settings.logging.backup_count,
    )

    log = get_logger("paidmedia.main")
    return settings, log


async def _check_connection(runtime) -> int:
    result = await runtime.client.test_connection()
    if result.success:
        print("✅  API key accepted by the LLM proxy.")
        return 0
    print(f"\n❌  Connection test failed: {result.error}\n", file=sys.stderr)
    return 1


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings, log = bootstrap(args)

    from paidmedia.runtime import build_runtime

    log.info(
        "paidmedia.starting",
        upstream=settings.proxy.llm_proxy_url,
        model=settings.agent.model,
        check=args.check,
    )

    runtime = build_runtime(settings)

    if args.check:
        try:
            return await _check_connection(runtime)
        finally:
            await runtime.shutdown()

    try:
        await runtime.start()
    except OSError as e:
        log.error("paidmedia.proxy_start_failed", error=str(e))
        print(f"\n❌  Could not start the local auth proxy: {e}\n", file=sys.stderr)
        return 1

    from paidmedia.interfaces.cli import ChatCLI
    return await ChatCLI(runtime).run()


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))
