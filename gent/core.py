"""Core CDP connection and the browser automation boundary.

Everything the agent does to a browser goes through this module: launching
Chrome with remote debugging, opening an isolated context, creating pages
and driving them (navigate, screenshot, evaluate, click, type).

One websocket is opened to the browser-level DevTools endpoint; pages are
attached in flat-session mode, so every command travels over the same
connection tagged with the page's session id.

    browser = await Browser.launch(headless=True)
    ctx = await browser.new_context()
    page = await ctx.new_page()
    await page.goto("https://example.com")
    png = await page.screenshot(format="png")
    await browser.close()
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import os
import shutil
import subprocess
import sys
import tempfile
from dataclasses import dataclass
from typing import Any, Callable
from urllib.error import URLError
from urllib.request import urlopen

import websockets
from websockets.asyncio.client import connect as ws_connect

from gent.js_expressions import click_point_js, focus_js

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30_000


# ── Errors ──


class CDPError(Exception):
    """Error from the Chrome DevTools Protocol."""

    pass


class BrowserNotRunning(Exception):
    """Raised when the DevTools endpoint is unreachable."""

    def __init__(self, cdp_url: str) -> None:
        self.cdp_url = cdp_url
        super().__init__(
            f"Cannot connect to browser at {cdp_url}\n\n"
            f"Make sure Chrome/Chromium is running with remote debugging enabled."
        )


class BrowserLaunchError(Exception):
    """Raised when Chrome cannot be started or never exposes DevTools."""

    pass


# ── CDP connection (async) ──


Listener = Callable[[dict, "str | None"], None]


class EventWaiter:
    """A one-shot subscription to a CDP event.

    The listener is registered on construction, so create the waiter
    *before* issuing the command that triggers the event.
    """

    def __init__(
        self,
        conn: CDPConnection,
        method: str,
        predicate: Callable[[dict, str | None], bool] | None = None,
    ) -> None:
        self._conn = conn
        self._method = method
        self._predicate = predicate
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()
        conn.on(method, self._on_event)

    def _on_event(self, params: dict, session_id: str | None) -> None:
        if self._future.done():
            return
        if self._predicate is None or self._predicate(params, session_id):
            self._future.set_result(params)

    async def wait(self, timeout: float) -> dict:
        """Wait for the event. Raises TimeoutError after `timeout` seconds."""
        try:
            return await asyncio.wait_for(self._future, timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"Timed out after {timeout:.1f}s waiting for {self._method}")
        finally:
            self._conn.off(self._method, self._on_event)

    def cancel(self) -> None:
        self._conn.off(self._method, self._on_event)
        if not self._future.done():
            self._future.cancel()


class CDPConnection:
    """Persistent websocket to a DevTools endpoint.

    A reader task matches command replies to their pending futures by id
    and fans protocol events out to registered listeners.
    """

    def __init__(self, ws: Any) -> None:
        self._ws = ws
        self._id = 0
        self._pending: dict[int, asyncio.Future] = {}
        self._listeners: dict[str, list[Listener]] = {}
        self._reader = asyncio.create_task(self._read_loop())

    @classmethod
    async def connect(cls, ws_url: str) -> CDPConnection:
        ws = await ws_connect(ws_url, max_size=None)
        return cls(ws)

    async def _read_loop(self) -> None:
        try:
            async for raw in self._ws:
                msg = json.loads(raw)
                msg_id = msg.get("id")
                if msg_id is not None:
                    fut = self._pending.pop(msg_id, None)
                    if fut is not None and not fut.done():
                        fut.set_result(msg)
                    continue
                method = msg.get("method")
                for listener in list(self._listeners.get(method, ())):
                    listener(msg.get("params", {}), msg.get("sessionId"))
        except websockets.ConnectionClosed:
            logger.debug("CDP connection closed")
        finally:
            for fut in self._pending.values():
                if not fut.done():
                    fut.set_exception(CDPError("CDP connection closed"))
            self._pending.clear()

    async def send(
        self,
        method: str,
        session_id: str | None = None,
        timeout: float = 30.0,
        **params: Any,
    ) -> dict:
        """Send a CDP command and wait for its reply."""
        self._id += 1
        msg_id = self._id
        payload: dict[str, Any] = {"id": msg_id, "method": method, "params": params}
        if session_id:
            payload["sessionId"] = session_id

        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = fut
        try:
            await self._ws.send(json.dumps(payload))
            msg = await asyncio.wait_for(fut, timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"CDP command {method} timed out after {timeout:.1f}s")
        finally:
            self._pending.pop(msg_id, None)

        if "error" in msg:
            raise CDPError(msg["error"].get("message", str(msg["error"])))
        return msg.get("result", {})

    def on(self, method: str, listener: Listener) -> None:
        self._listeners.setdefault(method, []).append(listener)

    def off(self, method: str, listener: Listener) -> None:
        listeners = self._listeners.get(method, [])
        if listener in listeners:
            listeners.remove(listener)

    def expect_event(
        self,
        method: str,
        predicate: Callable[[dict, str | None], bool] | None = None,
    ) -> EventWaiter:
        return EventWaiter(self, method, predicate)

    async def close(self) -> None:
        self._reader.cancel()
        try:
            await self._reader
        except asyncio.CancelledError:
            pass
        await self._ws.close()


# ── Page ──


class Page:
    """One attached page target.

    Selector-based operations poll for the element until the default
    timeout expires, then raise TimeoutError.
    """

    def __init__(
        self,
        conn: CDPConnection,
        target_id: str,
        session_id: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self._conn = conn
        self.target_id = target_id
        self.session_id = session_id
        self.timeout_ms = timeout_ms

    def set_default_timeout(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms

    @property
    def _timeout(self) -> float:
        return self.timeout_ms / 1000

    async def _send(self, method: str, **params: Any) -> dict:
        return await self._conn.send(method, session_id=self.session_id, **params)

    def _own_event(self, params: dict, session_id: str | None) -> bool:
        return session_id == self.session_id

    async def goto(self, url: str) -> None:
        """Navigate and wait for the load event."""
        waiter = self._conn.expect_event("Page.loadEventFired", self._own_event)
        try:
            result = await self._send("Page.navigate", url=url)
        except Exception:
            waiter.cancel()
            raise
        if result.get("errorText"):
            waiter.cancel()
            raise CDPError(f"Navigation to {url} failed: {result['errorText']}")
        await waiter.wait(self._timeout)

    async def screenshot(self, format: str = "png", quality: int | None = None) -> bytes:
        """Capture the viewport. `quality` only applies to jpeg."""
        params: dict[str, Any] = {"format": format}
        if format == "jpeg" and quality is not None:
            params["quality"] = quality
        result = await self._send("Page.captureScreenshot", **params)
        return base64.b64decode(result.get("data", ""))

    async def evaluate(self, expression: str) -> Any:
        """Evaluate a JS expression and return its JSON-serializable value."""
        result = await self._send(
            "Runtime.evaluate",
            expression=expression,
            returnByValue=True,
            awaitPromise=True,
        )
        exc = result.get("exceptionDetails")
        if exc:
            desc = exc.get("exception", {}).get("description", exc.get("text", ""))
            raise CDPError(f"JS Error: {desc}")
        return result.get("result", {}).get("value")

    async def _wait_for(self, expression: str, selector: str) -> Any:
        deadline = asyncio.get_running_loop().time() + self._timeout
        while True:
            value = await self.evaluate(expression)
            if value:
                return value
            if asyncio.get_running_loop().time() >= deadline:
                raise TimeoutError(
                    f"Element {selector!r} not found after {self.timeout_ms}ms"
                )
            await asyncio.sleep(0.1)

    async def click(self, selector: str) -> None:
        """Scroll the element into view and click its center."""
        point = await self._wait_for(click_point_js(selector), selector)
        x, y = point["x"], point["y"]
        await self._send("Input.dispatchMouseEvent", type="mouseMoved", x=x, y=y)
        for etype in ("mousePressed", "mouseReleased"):
            await self._send(
                "Input.dispatchMouseEvent",
                type=etype, x=x, y=y, button="left", clickCount=1,
            )

    async def type(self, selector: str, text: str) -> None:
        """Focus the element and insert `text` at the caret."""
        await self._wait_for(focus_js(selector), selector)
        await self._send("Input.insertText", text=text)

    async def close(self) -> None:
        await self._conn.send("Target.closeTarget", targetId=self.target_id)

    def __repr__(self) -> str:
        return f"Page(target_id={self.target_id!r})"


# ── Browser context ──


class PageWaiter:
    """Pending wait for the next page opened inside a context."""

    def __init__(self, context: BrowserContext) -> None:
        self._context = context
        self._waiter = context._conn.expect_event("Target.targetCreated", self._is_new_page)

    def _is_new_page(self, params: dict, session_id: str | None) -> bool:
        info = params.get("targetInfo", {})
        return (
            info.get("type") == "page"
            and info.get("browserContextId") == self._context.context_id
        )

    async def wait(self, timeout: float) -> Page:
        params = await self._waiter.wait(timeout)
        return await self._context._attach(params["targetInfo"]["targetId"])

    def cancel(self) -> None:
        self._waiter.cancel()


class BrowserContext:
    """An isolated browser context (separate cookies and storage)."""

    def __init__(self, conn: CDPConnection, context_id: str) -> None:
        self._conn = conn
        self.context_id = context_id

    async def _attach(self, target_id: str) -> Page:
        result = await self._conn.send("Target.attachToTarget", targetId=target_id, flatten=True)
        page = Page(self._conn, target_id, result["sessionId"])
        await page._send("Page.enable")
        return page

    async def new_page(self) -> Page:
        result = await self._conn.send(
            "Target.createTarget", url="about:blank", browserContextId=self.context_id
        )
        return await self._attach(result["targetId"])

    def expect_page(self) -> PageWaiter:
        """Start listening for a page opened in this context (e.g. by a click)."""
        return PageWaiter(self)

    async def close(self) -> None:
        await self._conn.send("Target.disposeBrowserContext", browserContextId=self.context_id)


# ── Browser ──


def _fetch_version(cdp_url: str) -> dict:
    try:
        return json.loads(urlopen(f"{cdp_url}/json/version", timeout=2).read())
    except (URLError, OSError):
        raise BrowserNotRunning(cdp_url)


class Browser:
    """A Chrome/Chromium instance reachable over CDP.

    Use `Browser.launch()` to start a fresh, throwaway instance or
    `Browser.connect()` to attach to one that is already running.
    """

    def __init__(
        self,
        conn: CDPConnection,
        process: subprocess.Popen | None = None,
        user_data_dir: str | None = None,
    ) -> None:
        self._conn = conn
        self._process = process
        self._user_data_dir = user_data_dir

    @classmethod
    async def connect(cls, cdp_url: str, **kwargs: Any) -> Browser:
        """Attach to a running browser's DevTools endpoint."""
        data = await asyncio.to_thread(_fetch_version, cdp_url)
        ws_url = data.get("webSocketDebuggerUrl")
        if not ws_url:
            raise CDPError("Browser did not expose webSocketDebuggerUrl")
        conn = await CDPConnection.connect(ws_url)
        await conn.send("Target.setDiscoverTargets", discover=True)
        return cls(conn, **kwargs)

    @classmethod
    async def launch(
        cls,
        headless: bool = False,
        chrome_path: str | None = None,
        args: list[str] | None = None,
        port: int = 9222,
    ) -> Browser:
        """Launch Chrome with remote debugging on a throwaway profile.

        Args:
            headless: Run without a visible window.
            chrome_path: Path to the Chrome/Chromium binary. Auto-detected
                         if not provided.
            args: Extra command-line switches.
            port: DevTools port.
        """
        chrome = chrome_path or _find_chrome()
        if not chrome:
            raise BrowserLaunchError(
                "Chrome/Chromium not found. Install it or set CHROME_BIN_PATH.\n\n"
                "Install options:\n"
                "  macOS:   brew install --cask google-chrome\n"
                "  Ubuntu:  sudo apt install chromium-browser\n"
                "  Fedora:  sudo dnf install chromium"
            )

        data_dir = tempfile.mkdtemp(prefix="gent-profile-")
        cmd = [
            chrome,
            f"--remote-debugging-port={port}",
            f"--user-data-dir={data_dir}",
            "--no-first-run",
            "--no-default-browser-check",
        ]
        if headless:
            cmd.append("--headless=new")
        cmd.extend(args or [])

        logger.debug("Launching %s", " ".join(cmd))
        proc = subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)

        cdp_url = f"http://127.0.0.1:{port}"
        deadline = asyncio.get_running_loop().time() + 10
        while asyncio.get_running_loop().time() < deadline:
            try:
                return await cls.connect(cdp_url, process=proc, user_data_dir=data_dir)
            except BrowserNotRunning:
                await asyncio.sleep(0.3)

        proc.kill()
        shutil.rmtree(data_dir, ignore_errors=True)
        raise BrowserLaunchError(
            f"Chrome started but CDP not ready on port {port} after 10s.\n"
            f"Check if another process is using port {port}."
        )

    async def new_context(self) -> BrowserContext:
        result = await self._conn.send("Target.createBrowserContext")
        return BrowserContext(self._conn, result["browserContextId"])

    async def close(self) -> None:
        try:
            await self._conn.send("Browser.close", timeout=5.0)
        except (CDPError, TimeoutError):
            logger.debug("Browser.close failed, terminating process", exc_info=True)
        await self._conn.close()
        if self._process is not None:
            self._process.terminate()
            await asyncio.to_thread(self._process.wait)
        if self._user_data_dir:
            shutil.rmtree(self._user_data_dir, ignore_errors=True)


# ── Session context ──


@dataclass
class BrowserSession:
    """The browser state shared by the agent's tools.

    Holds the engine, the lazily created context and the currently active
    page. Navigating or a click that opens a new page replaces `page`.
    """

    browser: Browser
    timeout_ms: int = 5000
    new_page_timeout_ms: int = 500
    screenshot_quality: int = 65
    context: BrowserContext | None = None
    page: Page | None = None

    @classmethod
    async def launch(
        cls,
        headless: bool = False,
        chrome_path: str | None = None,
        args: list[str] | None = None,
        port: int = 9222,
        **settings: Any,
    ) -> BrowserSession:
        browser = await Browser.launch(
            headless=headless, chrome_path=chrome_path, args=args, port=port
        )
        return cls(browser=browser, **settings)

    async def ensure_context(self) -> BrowserContext:
        if self.context is None:
            self.context = await self.browser.new_context()
        return self.context

    def require_page(self) -> Page:
        if self.page is None:
            raise CDPError("No website is open. Open one with website_open first.")
        return self.page

    async def close(self) -> None:
        await self.browser.close()


def _find_chrome() -> str | None:
    """Auto-detect Chrome/Chromium binary path."""
    candidates = []

    if sys.platform == "darwin":
        candidates = [
            "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
            "/Applications/Chromium.app/Contents/MacOS/Chromium",
            "/Applications/Microsoft Edge.app/Contents/MacOS/Microsoft Edge",
        ]
    elif sys.platform == "linux":
        candidates = [
            "google-chrome",
            "google-chrome-stable",
            "chromium",
            "chromium-browser",
            "microsoft-edge",
        ]
    elif sys.platform == "win32":
        candidates = [
            os.path.expandvars(r"%ProgramFiles%\Google\Chrome\Application\chrome.exe"),
            os.path.expandvars(r"%ProgramFiles(x86)%\Google\Chrome\Application\chrome.exe"),
            os.path.expandvars(r"%LocalAppData%\Google\Chrome\Application\chrome.exe"),
        ]

    for c in candidates:
        if os.path.isfile(c):
            return c
        if os.path.sep not in c:
            found = shutil.which(c)
            if found:
                return found

    return None
