"""gent CLI — talk to the browsing agent from the terminal.

Usage:
    gent [agent] [options]          # Interactive session
    gent agent <query> [options]    # One-shot query
    gent dumps                      # List diagnostic dumps
    gent --help

Options:
    --headless     Run Chrome without a window
    --verbose, -v  Show debug logging
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

from gent.agent.config import get_browser_config

_NO_COLOR = os.environ.get("NO_COLOR") or not sys.stdout.isatty()

QUIT_COMMANDS = ("\\q", "quit", "exit")


# ── Colors (disable with NO_COLOR env var) ──


def _dim(s: str) -> str:
    return s if _NO_COLOR else f"\033[2m{s}\033[0m"


def _bold(s: str) -> str:
    return s if _NO_COLOR else f"\033[1m{s}\033[0m"


def _cyan(s: str) -> str:
    return s if _NO_COLOR else f"\033[36m{s}\033[0m"


def _green(s: str) -> str:
    return s if _NO_COLOR else f"\033[32m{s}\033[0m"


def _red(s: str) -> str:
    return s if _NO_COLOR else f"\033[31m{s}\033[0m"


# ── Logging ──


class ConsoleHandler(logging.Handler):
    """Progress to stdout, problems to stderr in red."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            if record.levelno >= logging.WARNING:
                print(_red(f"ERROR: {msg}" if record.levelno >= logging.ERROR else msg), file=sys.stderr)
            elif record.levelno <= logging.DEBUG:
                print(_dim(msg))
            else:
                print(msg)
        except Exception:
            self.handleError(record)


class ConsoleFormatter(logging.Formatter):
    """Plain messages; full tracebacks only when debugging."""

    def __init__(self, tracebacks: bool = False) -> None:
        super().__init__("%(message)s")
        self.tracebacks = tracebacks

    def formatException(self, ei) -> str:
        if self.tracebacks:
            return super().formatException(ei)
        return f"  {ei[0].__name__}: {ei[1]}"


def setup_logging(level: int = logging.INFO) -> None:
    logger = logging.getLogger("gent")
    logger.handlers.clear()
    handler = ConsoleHandler()
    handler.setFormatter(ConsoleFormatter(tracebacks=level <= logging.DEBUG))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


# ── Commands ──


def print_help() -> None:
    print(__doc__)


async def _open_session(headless: bool | None):
    from gent.core import BrowserSession

    cfg = get_browser_config()
    return await BrowserSession.launch(
        headless=cfg["headless"] if headless is None else headless,
        chrome_path=cfg["chrome_path"],
        args=cfg["args"],
        port=cfg["port"],
        timeout_ms=cfg["timeout_ms"],
        new_page_timeout_ms=cfg["new_page_timeout_ms"],
        screenshot_quality=cfg["screenshot_quality"],
    )


async def _ask_or_dump(agents, query: str) -> str:
    """Forward a query; on failure save the main agent's state, then re-raise."""
    try:
        return await agents.ask(query)
    except Exception:
        path = agents.primary.dump_data()
        print(_red(f"✗ Agent failed — state saved to {path}"), file=sys.stderr)
        raise


async def run_agent(query: str | None, headless: bool | None = None) -> None:
    """Run the agent interactively, or once for `query`."""
    from gent.agent.hierarchy import AgentHierarchy

    session = await _open_session(headless)
    try:
        agents = AgentHierarchy.from_config(session)

        if query:
            print(await _ask_or_dump(agents, query))
            return

        print(_bold("gent agent") + _dim(" (type \\q to exit, 'reset' to clear)\n"))
        while True:
            try:
                line = await asyncio.to_thread(input, _cyan("Query: "))
            except (EOFError, KeyboardInterrupt):
                print()
                break
            if line in QUIT_COMMANDS:
                break
            if not line.strip():
                continue
            if line.strip().lower() == "reset":
                agents.reset()
                print(_dim("Chat cleared.\n"))
                continue

            await _ask_or_dump(agents, line)
            print()
    finally:
        await session.close()


def run_dumps() -> None:
    import time

    from gent.agent.dumps import list_dumps

    dumps = list_dumps()
    if not dumps:
        print(_dim("No dumps."))
        return
    for d in dumps:
        when = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(d["created_at"]))
        print(f"{when}  {d['model']:<20} {d['turn_count']:>4} turns  {_dim(d['path'])}")


def main() -> None:
    """CLI entry point."""
    args = sys.argv[1:]

    if args and args[0] in ("--help", "-h", "help"):
        print_help()
        return

    if args and args[0] in ("--version", "-V", "version"):
        from gent import __version__
        print(f"gent {__version__}")
        return

    verbose = any(a in ("--verbose", "-v") for a in args)
    headless = True if "--headless" in args else None
    args = [a for a in args if a not in ("--verbose", "-v", "--headless")]

    cmd = args[0].lower() if args else "agent"
    cmd_args = args[1:]

    try:
        if cmd == "dumps":
            run_dumps()
            return

        if cmd != "agent":
            print(_red(f"Unknown command: {cmd}"))
            print("Run 'gent --help' to see all commands.")
            sys.exit(1)

        query = " ".join(cmd_args) or None
        if verbose:
            setup_logging(logging.DEBUG)
        else:
            # One-shot prints only the answer; interactive shows progress.
            setup_logging(logging.WARNING if query else logging.INFO)
        asyncio.run(run_agent(query, headless=headless))
    except KeyboardInterrupt:
        pass
    except Exception as e:
        print(_red(f"✗ Error: {e}"), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
