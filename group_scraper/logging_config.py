"""Dual logging system: human-friendly console + detailed debug file.

The console gets short, colored lines for the events an operator cares
about (groups scraped, fetch failures, session problems). Everything,
DEBUG included, goes to ``data/logs/debug.log`` as JSON lines.
"""

import logging
import re
import sys
from datetime import datetime
from pathlib import Path

import structlog

PROJECT_ROOT = Path(__file__).parent.parent

LOGS_DIR = PROJECT_ROOT / "data" / "logs"
DEBUG_LOG_PATH = LOGS_DIR / "debug.log"

GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"

# Events that always read the same on the console
FIXED_MESSAGES = {
    "Starting Group Scraper": "Starting group scraper...",
    "Database initialized": "Database ready",
    "Scheduler started": "Scheduler started",
    "Running initial scrape": "\nStarting initial scan of all groups...",
    "Starting scrape job": "\n--- Starting new scan ---",
    "Loading cookies": "Loading saved Facebook session...",
    "Session validated": "Logged into Facebook",
    "Cookies saved": "Session saved",
    "Starting browser": "Launching browser...",
    "Shutting down": "Shutting down...",
}


def _first_number(msg: str) -> str:
    match = re.search(r"(\d+)", msg)
    return match.group(1) if match else "?"


def _scraping_group(msg: str, event: dict) -> str:
    return f"\nScraping: {event.get('group_name') or event.get('group_id', 'unknown')}"


def _group_complete(msg: str, event: dict) -> str:
    return (
        f"  {event.get('extracted', 0)} posts extracted, "
        f"{event.get('kept', 0)} passed filters, {event.get('saved', 0)} saved"
    )


def _job_complete(msg: str, event: dict) -> str:
    return (
        f"\nScan complete: {event.get('total_posts', 0)} posts saved from "
        f"{event.get('groups_scraped', 0)} groups ({event.get('elapsed_seconds', 0):.0f}s)"
    )


def _fetch_failed(msg: str, event: dict) -> str:
    return f"  {event.get('strategy', '')} failed: {event.get('error', '')}"


def _no_posts(msg: str, event: dict) -> str:
    return f"No posts retrieved for group {event.get('group_id', '')}"


def _session_invalid(msg: str, event: dict) -> str:
    return "Facebook login required - run scripts/login_facebook.py first"


def _scan_failed(msg: str, event: dict) -> str:
    return f"Scan failed: {event.get('error', '')}"


FORMATTED_MESSAGES = [
    ("Scrape interval", lambda msg, event: f"Will check groups every {_first_number(msg)} minutes"),
    ("Groups to monitor", lambda msg, event: f"Monitoring {_first_number(msg)} Facebook groups"),
    ("Scraping group", _scraping_group),
    ("Group scrape complete", _group_complete),
    ("Scrape job complete", _job_complete),
    ("Fetch failed", _fetch_failed),
    ("No posts retrieved", _no_posts),
    ("Session invalid", _session_invalid),
    ("Scrape job failed", _scan_failed),
]


class HumanConsoleHandler(logging.Handler):
    """Prints formatted records to stdout, minus DEBUG and per-post chatter."""

    SUPPRESS_PATTERNS = (
        "Candidate rejected",
        "Post filtered out",
    )

    def emit(self, record):
        if record.levelno < logging.INFO:
            return
        try:
            msg = self.format(record)
        except Exception:
            self.handleError(record)
            return
        if any(pattern in msg for pattern in self.SUPPRESS_PATTERNS):
            return
        print(msg, file=sys.stdout, flush=True)


class HumanFormatter(logging.Formatter):
    """Turns structlog event dicts into one readable console line."""

    def format(self, record):
        event = record.msg if isinstance(record.msg, dict) else {}
        msg = str(event.get("event", "")) if event else record.getMessage()
        text = self._humanize(msg, event, record.levelno)
        return _decorate(text, record.levelno)

    def _humanize(self, msg: str, event: dict, levelno: int) -> str:
        for prefix, text in FIXED_MESSAGES.items():
            if prefix in msg:
                return text
        for prefix, render in FORMATTED_MESSAGES:
            if prefix in msg:
                return render(msg, event)
        if levelno >= logging.ERROR and event.get("error"):
            return f"{msg}: {event['error']}"
        return msg


def _decorate(text: str, levelno: int) -> str:
    stamp = datetime.now().strftime("%H:%M:%S")
    if levelno >= logging.ERROR:
        return f"{RED}[{stamp}] Error: {text}{RESET}"
    if levelno >= logging.WARNING:
        return f"{YELLOW}[{stamp}] Warning: {text}{RESET}"
    return f"{DIM}[{stamp}]{RESET} {text}"


def setup_logging(level: str = "INFO"):
    """Install the console and debug-file handlers and configure structlog."""
    LOGS_DIR.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.DEBUG)

    console_handler = HumanConsoleHandler()
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(HumanFormatter())
    root_logger.addHandler(console_handler)

    file_handler = logging.FileHandler(DEBUG_LOG_PATH, mode="a", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
        ],
    ))
    root_logger.addHandler(file_handler)

    # wrap_for_formatter leaves the event dict on record.msg for HumanFormatter
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger()


def _console(color: str, message: str):
    stamp = datetime.now().strftime("%H:%M:%S")
    print(f"{color}[{stamp}] {message}{RESET}", flush=True)


def print_status(message: str):
    stamp = datetime.now().strftime("%H:%M:%S")
    print(f"{DIM}[{stamp}]{RESET} {message}", flush=True)


def print_success(message: str):
    _console(GREEN, message)


def print_error(message: str):
    _console(RED, f"Error: {message}")


def print_warning(message: str):
    _console(YELLOW, f"Warning: {message}")
