"""Entry point for ``python -m webcal_ai``.

Provides a CLI that turns a web page into calendar invitations.  Uses
stdlib :mod:`argparse` for argument parsing.

Subcommands:
    run      -- Default. Fetch a page (or read a saved copy), extract
                events, compile the calendar and email it.
    validate -- Check an ``.ics`` file and preview its events.

Exit codes:
    0 -- Completed (including a sent invite or a rejected review).
    1 -- An error occurred (config, page, extraction, or delivery).
    2 -- Argument parsing error (handled by argparse).
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from webcal_ai.calendar.reader import read_calendar
from webcal_ai.calendar.validator import validate_calendar
from webcal_ai.collector import PageCollector, load_local_materials
from webcal_ai.config import ConfigError, Settings, load_settings
from webcal_ai.dispatcher import Dispatcher, PostmarkClient
from webcal_ai.distiller import ContentDistiller
from webcal_ai.exceptions import DispatchError, WebcalError
from webcal_ai.extractor import EventExtractor
from webcal_ai.llm import GeminiClient
from webcal_ai.log import setup_logging
from webcal_ai.models.calendar import CalendarStyle
from webcal_ai.models.session import Stage
from webcal_ai.output import format_calendar_preview, print_run_result
from webcal_ai.session_store import JsonFileStore, SessionRepository
from webcal_ai.workflow import RunResult, SessionController

DEFAULT_TAB_ID = "cli"


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="webcal-ai",
        description="Turn event pages into calendar invitations.",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- "run" subcommand (default) -----------------------------------
    run_parser = subparsers.add_parser(
        "run",
        help="Extract events from a page and send the invitation.",
    )
    run_parser.add_argument("url", type=str, help="Address of the event page.")
    run_parser.add_argument(
        "--html",
        type=str,
        default=None,
        help="Read the page from a saved HTML file instead of fetching it.",
    )
    run_parser.add_argument(
        "--screenshot",
        type=str,
        default=None,
        help="Image of the page to send along with the markup.",
    )
    run_parser.add_argument(
        "--instructions",
        type=str,
        default="",
        help="Free-text hints for the extraction.",
    )
    run_parser.add_argument(
        "--model",
        type=str,
        default="",
        help="Extraction model (defaults to DEFAULT_MODEL from config).",
    )
    run_parser.add_argument(
        "--tentative",
        action="store_true",
        default=False,
        help="Mark the events as tentative.",
    )
    run_parser.add_argument(
        "--multiday",
        action="store_true",
        default=False,
        help="Extract every related session as its own event.",
    )
    run_parser.add_argument(
        "--pre-distill",
        action="store_true",
        default=False,
        help="Shrink the page to its main content before extraction.",
    )
    run_parser.add_argument(
        "--review",
        action="store_true",
        default=False,
        help="Show the events and ask before sending.",
    )
    run_parser.add_argument(
        "--tab-id",
        type=str,
        default=DEFAULT_TAB_ID,
        help="Session identifier (default: %(default)s).",
    )
    run_parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Also write the compiled calendar to this file.",
    )
    run_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug-level logging.",
    )

    # --- "validate" subcommand ----------------------------------------
    validate_parser = subparsers.add_parser(
        "validate",
        help="Check an .ics file and list its events.",
    )
    validate_parser.add_argument("ics_file", type=str, help="Path to the .ics file.")
    validate_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug-level logging.",
    )

    return parser


def _resolve_command(
    parser: argparse.ArgumentParser,
    argv: list[str],
) -> argparse.Namespace:
    """Parse *argv*, routing to ``run`` when no subcommand is given."""
    known_subcommands = {"run", "validate"}
    if not argv:
        parser.error("a page URL or subcommand is required")
    elif argv[0] in {"-h", "--help"}:
        pass
    elif argv[0] not in known_subcommands:
        argv = ["run", *argv]

    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


def build_controller(
    settings: Settings,
    tab_id: str,
) -> tuple[SessionController, PostmarkClient]:
    """Wire a :class:`SessionController` from *settings*.

    Returns the controller and the Postmark client, which the caller
    must close.
    """
    style = CalendarStyle(method=settings.calendar_method, default_timezone=settings.timezone)
    gemini = GeminiClient(api_key=settings.gemini_api_key)
    postmark = PostmarkClient(settings.postmark_api_key)
    controller = SessionController(
        tab_id=tab_id,
        repository=SessionRepository(JsonFileStore(settings.session_store_path)),
        extractor=EventExtractor(gemini, settings.default_model, settings.timezone),
        distiller=ContentDistiller(gemini, settings.distill_model),
        dispatcher=Dispatcher(postmark, settings, style),
        style=style,
        organizer=settings.from_email,
    )
    return controller, postmark


async def _run_async(args: argparse.Namespace, settings: Settings) -> RunResult:
    collector = PageCollector()
    controller, postmark = build_controller(settings, args.tab_id)
    try:
        controller.initialize()
        controller.update_fields(
            url=args.url,
            instructions=args.instructions,
            model=args.model,
            tentative=args.tentative,
            multiday=args.multiday,
            pre_distill=args.pre_distill,
            review_option="review" if args.review else "direct",
        )

        screenshot = Path(args.screenshot) if args.screenshot else None
        if args.html:
            source = load_local_materials(Path(args.html), args.url, screenshot)
            result = await controller.run(source)
        else:
            result = await controller.run(
                lambda url: collector.collect(url, screenshot=screenshot)
            )

        if result.stage is Stage.REVIEWING:
            print_run_result(result)
            if _ask_confirmation():
                try:
                    result = await controller.confirm()
                except DispatchError as exc:
                    result.stage = Stage.COMPLETED_WITH_WARNING
                    result.warning = f"Calendar created but email failed: {exc}"
            else:
                controller.reject()
                result.stage = Stage.REJECTED
        return result
    finally:
        controller.teardown()
        await collector.aclose()
        await postmark.aclose()


def _ask_confirmation() -> bool:
    try:
        answer = input("Send this invitation? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def _handle_run(args: argparse.Namespace) -> int:
    """Execute the ``run`` subcommand."""
    try:
        settings = load_settings()
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if not args.verbose:
        try:
            setup_logging(settings.log_level)
        except ValueError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

    try:
        result = asyncio.run(_run_async(args, settings))
    except WebcalError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print_run_result(result)

    if args.output and result.document:
        Path(args.output).write_text(result.document, encoding="utf-8", newline="")
        print(f"Calendar written to {args.output}")

    return 1 if result.stage is Stage.COLLECTING else 0


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


def _handle_validate(args: argparse.Namespace) -> int:
    """Execute the ``validate`` subcommand."""
    path = Path(args.ics_file)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    errors = validate_calendar(text)
    if errors:
        print(f"{path}: {len(errors)} problem(s)")
        for error in errors:
            print(f"  - {error}")
        return 1

    print(f"{path}: valid")
    print(format_calendar_preview(read_calendar(text)))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the webcal-ai CLI.

    Args:
        argv: Command-line arguments.  Defaults to ``sys.argv[1:]``.

    Returns:
        Exit code.
    """
    parser = build_parser()
    args = _resolve_command(parser, argv if argv is not None else sys.argv[1:])

    log_level = "DEBUG" if getattr(args, "verbose", False) else "INFO"
    setup_logging(log_level)

    if args.command == "validate":
        return _handle_validate(args)

    return _handle_run(args)


if __name__ == "__main__":
    raise SystemExit(main())
