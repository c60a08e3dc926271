"""
ActionDriver — 要素への操作の実行

Replay Engine / Test Runner から見た「ページ」を抽象化する。
要素の特定は snapshot() で取得した Document 上で行い、
操作はドライバーが対応する実体（静的 Document またはライブページ）に対して実行する。

主な機能:
  - ActionDriver: ドライバーの共通 Protocol
  - DocumentDriver: lxml の Document を直接変更し、DOM イベントを配信する
  - PlaywrightDriver: Playwright の async Page を操作する
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

from lxml.html import HtmlElement

from ..dom.document import INDEX_ATTR, Document, set_element_value
from ..dom.snapshot import PageSnapshotter, index_selector
from ..errors import ActionExecutionError

if TYPE_CHECKING:
    from playwright.async_api import Locator, Page

logger = logging.getLogger(__name__)

HIGHLIGHT_STYLE = "outline: 3px solid #ff5722; outline-offset: 2px;"

# ハイライト前の outline は要素のプロパティに保持し、連続したハイライトでも上書きしない
_HIGHLIGHT_SCRIPT = """(el, args) => {
    const active = window.__pagecraftHighlights || (window.__pagecraftHighlights = new Set());
    let saved = el.__pagecraftHighlight;
    if (saved) {
        clearTimeout(saved.timer);
    } else {
        saved = {outline: el.style.outline, offset: el.style.outlineOffset};
        saved.revert = () => {
            el.style.outline = saved.outline;
            el.style.outlineOffset = saved.offset;
            delete el.__pagecraftHighlight;
            active.delete(el);
        };
        el.__pagecraftHighlight = saved;
        active.add(el);
    }
    el.style.outline = '3px solid #ff5722';
    el.style.outlineOffset = '2px';
    saved.timer = setTimeout(saved.revert, args.duration);
}"""

_CLEAR_HIGHLIGHTS_SCRIPT = """() => {
    for (const el of Array.from(window.__pagecraftHighlights || [])) {
        const saved = el.__pagecraftHighlight;
        if (saved) {
            clearTimeout(saved.timer);
            saved.revert();
        }
    }
}"""

_FILLABLE_INPUT_TYPES = frozenset({
    "text", "email", "password", "number", "search", "tel", "url", "date",
    "datetime-local", "month", "time", "week", "",
})


def _safe_filename(name: str) -> str:
    """ファイル名に使用できない文字を置換する。"""
    sanitized = re.sub(r"[^\w\-]", "_", name).strip("_")
    return sanitized[:80] or "screenshot"


@runtime_checkable
class ActionDriver(Protocol):
    """要素操作ドライバーの Protocol。"""

    async def snapshot(self) -> Document:
        """現在のページ状態を Document として返す。"""
        ...

    async def click(self, element: HtmlElement) -> None: ...

    async def fill(self, element: HtmlElement, value: str) -> None: ...

    async def select(self, element: HtmlElement, value: str) -> None: ...

    async def navigate(self, url: str) -> None: ...

    async def highlight(self, element: HtmlElement, duration_ms: int) -> None: ...

    async def clear_highlights(self) -> None:
        """残っているハイライトを即座に元に戻す。"""
        ...

    async def capture_screenshot(self, name: str) -> Optional[str]:
        """スクリーンショットを保存し、パスを返す。保存しない場合は None。"""
        ...


# ---------------------------------------------------------------------------
# DocumentDriver
# ---------------------------------------------------------------------------

class DocumentDriver:
    """静的な Document を操作するドライバー。

    操作は Document の属性を書き換え、対応する DOM イベントを配信する。
    同じ Document を購読している StepRecorder はこの操作を記録できる。

    Args:
        document: 操作対象の Document
        pages: navigate() で読み込む {URL: HTML}
        screenshot_dir: capture_screenshot() で HTML を保存するディレクトリ
    """

    def __init__(
        self,
        document: Document,
        pages: Optional[dict[str, str]] = None,
        screenshot_dir: Optional[Path] = None,
    ) -> None:
        self._document = document
        self._pages = dict(pages or {})
        self._screenshot_dir = screenshot_dir
        # 要素 → (ハイライト前の style, 復元タイマー)
        self._highlights: dict[HtmlElement, tuple[Optional[str], asyncio.TimerHandle]] = {}

    @property
    def document(self) -> Document:
        return self._document

    async def snapshot(self) -> Document:
        return self._document

    async def click(self, element: HtmlElement) -> None:
        self._ensure_enabled("click", element)
        if element.tag == "input" and element.get("type", "").lower() in ("checkbox", "radio"):
            if element.get("type", "").lower() == "radio" or element.get("checked") is None:
                element.set("checked", "checked")
            else:
                del element.attrib["checked"]
        self._document.dispatch("click", element)

    async def fill(self, element: HtmlElement, value: str) -> None:
        self._ensure_enabled("fill", element)
        if element.get("readonly") is not None:
            raise ActionExecutionError("fill", "Element is readonly")
        if not _is_fillable(element):
            raise ActionExecutionError("fill", f"Element is not an <input>, <textarea> or [contenteditable]: <{element.tag}>")

        if element.get("contenteditable") is not None and element.tag not in ("input", "textarea"):
            for child in list(element):
                element.remove(child)
            element.text = value
        else:
            set_element_value(element, value)
        self._document.dispatch("input", element)
        self._document.dispatch("change", element)

    async def select(self, element: HtmlElement, value: str) -> None:
        self._ensure_enabled("select", element)
        if element.tag != "select":
            raise ActionExecutionError("select", f"Element is not a <select>: <{element.tag}>")
        try:
            set_element_value(element, value)
        except ValueError as e:
            raise ActionExecutionError("select", str(e)) from e
        self._document.dispatch("change", element)

    async def navigate(self, url: str) -> None:
        html = self._pages.get(url)
        if html is None:
            logger.info("登録されていない URL のため Document を維持します: %s", url)
            self._document.url = url
            return
        self._document = Document.from_html(html, url=url)
        logger.info("ページを読み込みました: %s", url)

    async def highlight(self, element: HtmlElement, duration_ms: int) -> None:
        pending = self._highlights.pop(element, None)
        if pending is None:
            original = element.get("style")
        else:
            original, handle = pending
            handle.cancel()
        element.set("style", f"{original}; {HIGHLIGHT_STYLE}" if original else HIGHLIGHT_STYLE)

        if duration_ms <= 0:
            _restore_style(element, original)
            return
        handle = asyncio.get_running_loop().call_later(duration_ms / 1000, self._revert_highlight, element)
        self._highlights[element] = (original, handle)

    async def clear_highlights(self) -> None:
        for element in list(self._highlights):
            self._revert_highlight(element)

    def _revert_highlight(self, element: HtmlElement) -> None:
        original, handle = self._highlights.pop(element)
        handle.cancel()
        _restore_style(element, original)

    async def capture_screenshot(self, name: str) -> Optional[str]:
        if self._screenshot_dir is None:
            return None
        self._screenshot_dir.mkdir(parents=True, exist_ok=True)
        path = self._screenshot_dir / f"{_safe_filename(name)}.html"
        path.write_text(self._document.to_html(), encoding="utf-8")
        return str(path)

    @staticmethod
    def _ensure_enabled(action: str, element: HtmlElement) -> None:
        if element.get("disabled") is not None or element.get("aria-disabled") == "true":
            raise ActionExecutionError(action, "Element is disabled")


def _restore_style(element: HtmlElement, original: Optional[str]) -> None:
    if original is None:
        element.attrib.pop("style", None)
    else:
        element.set("style", original)


def _is_fillable(element: HtmlElement) -> bool:
    if element.tag == "textarea":
        return True
    if element.tag == "input":
        return element.get("type", "").lower() in _FILLABLE_INPUT_TYPES
    return element.get("contenteditable") is not None


# ---------------------------------------------------------------------------
# PlaywrightDriver
# ---------------------------------------------------------------------------

class PlaywrightDriver:
    """Playwright の async Page を操作するドライバー。

    snapshot() で各要素にインデックス属性を付与し、
    操作時はそのインデックスでライブ要素を特定する。

    Args:
        page: Playwright の Page
        screenshot_dir: スクリーンショットの保存先
        timeout_ms: 各操作のタイムアウト（ミリ秒）
    """

    def __init__(
        self,
        page: Page,
        screenshot_dir: Optional[Path] = None,
        timeout_ms: int = 10_000,
    ) -> None:
        self._page = page
        self._snapshotter = PageSnapshotter(page)
        self._screenshot_dir = screenshot_dir
        self._timeout_ms = timeout_ms

    @property
    def page(self) -> Page:
        return self._page

    async def snapshot(self) -> Document:
        return await self._snapshotter.capture()

    async def click(self, element: HtmlElement) -> None:
        await self._locate(element).click(timeout=self._timeout_ms)

    async def fill(self, element: HtmlElement, value: str) -> None:
        locator = self._locate(element)
        await locator.fill(value, timeout=self._timeout_ms)
        await locator.dispatch_event("change")

    async def select(self, element: HtmlElement, value: str) -> None:
        await self._locate(element).select_option(value, timeout=self._timeout_ms)

    async def navigate(self, url: str) -> None:
        await self._page.goto(url)
        await self._page.wait_for_load_state("domcontentloaded")

    async def highlight(self, element: HtmlElement, duration_ms: int) -> None:
        await self._locate(element).evaluate(_HIGHLIGHT_SCRIPT, {"duration": duration_ms})

    async def clear_highlights(self) -> None:
        await self._page.evaluate(_CLEAR_HIGHLIGHTS_SCRIPT)

    async def capture_screenshot(self, name: str) -> Optional[str]:
        if self._screenshot_dir is None:
            return None
        self._screenshot_dir.mkdir(parents=True, exist_ok=True)
        path = self._screenshot_dir / f"{_safe_filename(name)}.png"
        await self._page.screenshot(path=str(path), full_page=True)
        return str(path)

    def _locate(self, element: HtmlElement) -> Locator:
        index = element.get(INDEX_ATTR)
        if index is None:
            raise ActionExecutionError("locate", "要素にスナップショットのインデックスがありません")
        return self._page.locator(index_selector(index))
