#!/usr/bin/env python3
"""
AskGPT CLI — ask about what you're reading.

Every command has a short name and standard aliases:

    COMMAND         ALIASES         WHAT IT DOES
    -------         -------         ----------------------------------
    ask             query, q        Ask about a highlighted passage
    history         hist, ls        List, show or delete past conversations
    errors          log, tail       Show the diagnostics error log
    info            config, flash   Show configuration at a glance
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from askgpt import __version__

BANNER = r"""
    ╔══════════════════════════════════════════════╗
    ║   AskGPT — talk to your book.                ║
    ╚══════════════════════════════════════════════╝
"""


def _setup_logging(settings) -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


def _load(args):
    from askgpt.config import load_settings

    settings = load_settings(args.config)
    _setup_logging(settings)
    return settings


def _print_result(title: str, result) -> bool:
    if result.ok:
        print(f"\n  ◀ {title}\n")
        for line in result.text.splitlines():
            print(f"    {line}")
        print()
        return True
    print(f"  ✗  {result.kind.value if result.kind else 'error'}: {result.error}")
    return False


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_ask(args):
    """Ask about a highlighted passage."""
    from askgpt.client import AskGPTClient
    from askgpt.history import HistoryStore
    from askgpt.session import ReadingSession

    settings = _load(args)
    settings = settings.with_overrides(
        model=args.model, temperature=args.temperature, max_tokens=args.max_tokens,
    )

    highlighted = args.text
    if args.file:
        try:
            highlighted = Path(args.file).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            print(f"  ✗  Could not read {args.file}: {e}")
            return 1
    if not highlighted or not highlighted.strip():
        print("  ✗  Please highlight some text first (pass it as TEXT or --file).")
        return 1

    session = ReadingSession(
        settings,
        AskGPTClient.from_settings(settings),
        HistoryStore(settings.history_path),
        highlighted_text=highlighted.strip(),
        book_title=args.title,
        book_author=args.author,
    )

    try:
        if args.feature:
            result = session.book_feature(args.feature)
            return 0 if _print_result(args.feature, result) else 1
        if args.prompt:
            result = session.run_prompt(args.prompt)
        else:
            result = session.ask(args.question or "")
    except ValueError as e:
        print(f"  ✗  {e}")
        return 1

    if not _print_result(session.title, result):
        return 1

    if not args.follow:
        return 0

    print("  [follow-up questions; empty line or 'q' to finish]")
    try:
        while True:
            try:
                question = input("  ▶ ").strip()
            except EOFError:
                break
            if not question or question.lower() in ("exit", "quit", "q"):
                break
            _print_result(session.title, session.ask(question))
    except KeyboardInterrupt:
        print()
    return 0


def cmd_history(args):
    """List, show or delete stored conversations."""
    from datetime import datetime
    from askgpt.history import HistoryStore

    settings = _load(args)
    store = HistoryStore(settings.history_path)

    if args.delete is not None:
        try:
            entry = store.remove(args.delete)
        except IndexError:
            print(f"  ✗  No history entry {args.delete}")
            return 1
        print(f"  🗑  Deleted '{entry.title}'")
        return 0

    if args.show is not None:
        try:
            entry = store.get(args.show)
        except IndexError:
            print(f"  ✗  No history entry {args.show}")
            return 1
        print(f"  {entry.title}")
        print("  " + "─" * 56)
        print(entry.rendered_text)
        return 0

    if not len(store):
        print("  No conversation history available")
        return 0

    for i, entry in enumerate(store.entries):
        when = datetime.fromtimestamp(entry.timestamp).strftime("%Y-%m-%d %H:%M")
        print(f"  [{i}] {entry.title} ({when}) — {len(entry.conversation)} messages")
    return 0


def cmd_errors(args):
    """Show the diagnostics error log."""
    from askgpt.diagnostics import show_errors

    settings = _load(args)
    show_errors(
        args.log or settings.error_log_path,
        last_n=args.last,
        kind_filter=args.kind,
        raw=args.raw,
    )
    return 0


def cmd_info(args):
    """Show configuration at a glance."""
    from askgpt.adapter import classify
    from askgpt.config import FEATURE_NAMES
    from askgpt.history import HistoryStore

    settings = _load(args)
    shape = classify(settings.base_url, settings.model)

    print(BANNER)
    print("  Configuration")
    print(f"  ├─ Endpoint:    {settings.base_url} ({shape.style.value})")
    print(f"  ├─ Model:       {settings.model} ({shape.family.value})")
    temperature = settings.temperature if settings.temperature is not None else shape.default_temperature
    print(f"  ├─ Temperature: {temperature if shape.accepts_temperature else 'model default'}")
    print(f"  ├─ Max tokens:  {settings.max_tokens} → {shape.token_field}")
    print(f"  ├─ API key:     {'set' if settings.api_key else 'MISSING'}")
    print(f"  └─ Data dir:    {settings.data_dir}")

    print()
    print("  Prompts")
    names = sorted(settings.custom_prompts)
    print(f"  └─ {', '.join(names) if names else 'none configured'}")

    print()
    print("  Book features")
    for i, name in enumerate(FEATURE_NAMES):
        prefix = "└─" if i == len(FEATURE_NAMES) - 1 else "├─"
        state = "on" if settings.is_feature_enabled(name) else "off"
        print(f"  {prefix} {name}: {state}")

    print()
    print(f"  History: {len(HistoryStore(settings.history_path))} conversations")
    return 0


# ---------------------------------------------------------------------------
# Parser with aliases
# ---------------------------------------------------------------------------

def _add_command(subparsers, names, help_text, func, setup_fn=None):
    """Register a command under multiple names."""
    p = subparsers.add_parser(names[0], help=help_text, aliases=names[1:])
    p.set_defaults(func=func)
    p.add_argument("--config", "-c", default=None, help="Path to config.yaml")
    if setup_fn:
        setup_fn(p)
    return p


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="askgpt",
        description="AskGPT — talk to your book.",
        epilog="Run 'askgpt <command> --help' for command-specific options.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", "-V", action="version",
        version=f"askgpt {__version__}",
    )

    sub = parser.add_subparsers(dest="command", metavar="<command>")

    def setup_ask(p):
        p.add_argument("text", nargs="?", default="", help="Highlighted text")
        p.add_argument("--file", "-f", default=None, help="Read the highlighted text from a file")
        p.add_argument("--question", "-q", default=None, help="Question about the text")
        p.add_argument("--prompt", "-p", default=None, help="Run a configured custom prompt instead")
        p.add_argument("--feature", default=None,
                       choices=["book_analysis", "characters_plot", "discussion", "recommendations"],
                       help="Run a book-level feature instead")
        p.add_argument("--title", default="Unknown Title", help="Book title")
        p.add_argument("--author", default="Unknown Author", help="Book author")
        p.add_argument("--model", "-m", default=None, help="Override model")
        p.add_argument("--temperature", "-t", type=float, default=None, help="Override temperature (0.0-2.0)")
        p.add_argument("--max-tokens", type=int, default=None, help="Override max tokens")
        p.add_argument("--follow", action="store_true", help="Keep asking follow-up questions")

    _add_command(sub, ["ask", "query", "q"],
                 "Ask about a highlighted passage", cmd_ask, setup_ask)

    def setup_history(p):
        p.add_argument("--show", "-s", type=int, default=None, help="Show entry N")
        p.add_argument("--delete", "-d", type=int, default=None, help="Delete entry N")

    _add_command(sub, ["history", "hist", "ls"],
                 "List, show or delete past conversations", cmd_history, setup_history)

    def setup_errors(p):
        p.add_argument("--log", default=None, help="Path to errors.log (default: from config)")
        p.add_argument("--last", "-n", type=int, default=20, help="Show last N entries")
        p.add_argument("--kind", "-k", default=None, help="Only show entries of this kind")
        p.add_argument("--raw", action="store_true", help="Raw JSONL output, no formatting")

    _add_command(sub, ["errors", "log", "tail"],
                 "Show the diagnostics error log", cmd_errors, setup_errors)

    _add_command(sub, ["info", "config", "flash"],
                 "Show configuration at a glance", cmd_info)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        print(BANNER)
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
