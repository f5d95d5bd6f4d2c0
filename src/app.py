"""Application entry point for the rolecast command line."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint

import settings
from adapters.chat_log import ChatLogConversation
from adapters.html_conversation import HtmlConversation
from adapters.macros import build_default_registry
from adapters.settings_store import SettingsStore
from core.config import STYLES
from core.models import parse_speaker
from core.processor import HistoryProcessor
from core.rules_engine import SkippedRule, compile_rule

NAME = "ROLECAST"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


def _configure_logging(config: Optional[dict]) -> None:
    config = config or {}
    if not config.get("enabled", False):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        # stderr keeps stdout clean for the formatted history.
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/rolecast.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _build_processor(store: SettingsStore, chat_path: str, html: bool) -> HistoryProcessor:
    if html:
        conversation = HtmlConversation.from_file(chat_path)
    else:
        conversation = ChatLogConversation(chat_path)
    return HistoryProcessor(conversation, store)


def _emit(text: str, output: Optional[str]) -> None:
    if output:
        with open(output, "w", encoding="utf-8") as handle:
            handle.write(text)
        logging.getLogger(__name__).info("Wrote %s characters to %s", len(text), output)
        return
    sys.stdout.write(text)
    if text and not text.endswith("\n"):
        sys.stdout.write("\n")


def _format(store: SettingsStore, args: argparse.Namespace) -> None:
    processor = _build_processor(store, args.chat, args.html)
    _emit(processor.build_formatted_history(style=args.style, last=args.last), args.output)


def _last(store: SettingsStore, args: argparse.Namespace) -> None:
    processor = _build_processor(store, args.chat, args.html)
    speaker = parse_speaker(args.speaker)
    if args.raw:
        turn = processor.last_matching_turn(speaker)
        _emit(turn.text if turn else "", args.output)
        return
    _emit(processor.last_matching_turn_formatted(speaker, args.style), args.output)


def _expand(store: SettingsStore, args: argparse.Namespace) -> None:
    processor = _build_processor(store, args.chat, args.html)
    registry = build_default_registry(processor, store)
    with open(args.template, "r", encoding="utf-8") as handle:
        template = handle.read()
    _emit(registry.expand(template), args.output)


def _check(store: SettingsStore, args: argparse.Namespace) -> None:
    _print_banner()
    config = store.get_config()
    selection = config.selection
    print(f"style: {config.formatting.style}")
    print(
        f"max_tokens: {selection.max_tokens or 'unlimited'} "
        f"(chars/token {selection.chars_per_token:g}, {'soft' if selection.soft_limit else 'hard'} limit)"
    )
    rules = config.formatting.rewrite_rules
    print(f"{len(rules)} rewrite rules are loaded")
    for index, rule in enumerate(rules, start=1):
        result = compile_rule(rule)
        status = f"skip ({result.reason})" if isinstance(result, SkippedRule) else "ok"
        print(f"{index}. [{rule.scope.value}] {rule.label} -> {status}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="rolecast")
    parser.add_argument("--config", help="Settings file (defaults to ROLECAST_CONFIG or config.json)")
    subparsers = parser.add_subparsers(dest="command")

    def add_chat_args(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("chat", help="Chat log (JSONL/JSON) or, with --html, a saved chat page")
        sub.add_argument("--html", action="store_true", help="Scrape turns from page markup")
        sub.add_argument("--output", "-o", help="Write to a file instead of stdout")

    format_parser = subparsers.add_parser("format", help="Print the formatted history")
    add_chat_args(format_parser)
    format_parser.add_argument("--style", choices=STYLES)
    format_parser.add_argument("--last", type=int, help="Only the newest N selected turns")

    last_parser = subparsers.add_parser("last", help="Print the latest turn of a speaker")
    add_chat_args(last_parser)
    last_parser.add_argument("--speaker", default="user", choices=["user", "other", "any"])
    last_parser.add_argument("--style", choices=STYLES)
    last_parser.add_argument("--raw", action="store_true", help="Print the unformatted message text")

    expand_parser = subparsers.add_parser("expand", help="Expand {{macros}} in a template file")
    add_chat_args(expand_parser)
    expand_parser.add_argument("template", help="Template file containing macros")

    subparsers.add_parser("check", help="Show settings and rewrite rule status")

    args = parser.parse_args(argv)
    store = SettingsStore.from_file(args.config)
    _configure_logging(store.get("logging"))
    logging.getLogger(__name__).debug("Running command %s", args.command)

    if args.command == "format":
        _format(store, args)
        return
    if args.command == "last":
        _last(store, args)
        return
    if args.command == "expand":
        _expand(store, args)
        return
    if args.command == "check":
        _check(store, args)
        return
    parser.print_help()


if __name__ == "__main__":
    main()
