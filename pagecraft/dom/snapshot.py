"""
Snapshot — ライブページからの Document 生成とイベント中継

Playwright のページに JavaScript を注入し、DOM と計算済みスタイルを
スナップショットとして取得する。取得した HTML は lxml で解析し、
Document として SelectorEngine / ElementDetector / StepRecorder に渡す。

主な機能:
  - PageSnapshotter: ページ全体のスナップショット取得
  - PlaywrightEventBridge: ページ上の click / input / change を
    キャプチャフェーズで受け取り、スナップショット上の DomEvent として配信する

各要素には data-pagecraft-idx 属性でインデックスが付与される。
ライブページ上の要素はこの属性で再特定する。
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from .document import INDEX_ATTR, Document, DomEvent, EventHandler, ListenerRegistry, Subscription

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)

_JS_DIR = Path(__file__).parent / "js"

# ページ側から呼び出す Python コールバック名
BINDING_NAME = "__pagecraft_on_event"


def load_snapshot_script() -> str:
    """スナップショット取得スクリプトを読み込む。"""
    return (_JS_DIR / "snapshot.js").read_text(encoding="utf-8")


def load_listener_script() -> str:
    """イベントリスナー注入スクリプトを読み込む（スナップショット関数を埋め込み済み）。"""
    listener = (_JS_DIR / "listener.js").read_text(encoding="utf-8")
    return listener.replace("__SNAPSHOT_FN__", load_snapshot_script().strip())


def index_selector(index: str) -> str:
    """インデックス属性でライブ要素を特定する CSS セレクタ。"""
    return f'[{INDEX_ATTR}="{index}"]'


# ---------------------------------------------------------------------------
# PageSnapshotter
# ---------------------------------------------------------------------------

class PageSnapshotter:
    """Playwright ページのスナップショットを Document として取得する。

    使用例::

        snapshotter = PageSnapshotter(page)
        document = await snapshotter.capture()
    """

    def __init__(self, page: Page) -> None:
        self._page = page
        self._script = load_snapshot_script()

    async def capture(self) -> Document:
        """現在のページ状態を Document に変換する。"""
        payload = await self._page.evaluate(self._script)
        document = Document.from_snapshot(payload, url=payload.get("url", self._page.url))
        logger.debug("スナップショットを取得しました: %s (%d 要素)", document.url, len(payload.get("records", [])))
        return document


# ---------------------------------------------------------------------------
# PlaywrightEventBridge
# ---------------------------------------------------------------------------

class PlaywrightEventBridge:
    """ライブページのイベントを Document 上の DomEvent として配信する。

    ページ側ではキャプチャフェーズのリスナーがイベントごとにスナップショットを取得し、
    expose_function 経由で Python 側に JSON を送信する。
    Python 側ではスナップショットから Document を生成し、
    インデックス属性で発生元要素を特定して購読者に配信する。
    """

    def __init__(self, page: Page) -> None:
        self._page = page
        self._listeners = ListenerRegistry()
        self._installed = False
        self._last_document: Optional[Document] = None

    @property
    def last_document(self) -> Optional[Document]:
        """最後に受信したイベントのスナップショット。"""
        return self._last_document

    def subscribe(
        self, handlers: dict[str, EventHandler], capture: bool = True
    ) -> Subscription:
        return self._listeners.add(handlers, capture=capture)

    async def install(self) -> None:
        """コールバックの公開とリスナースクリプトの注入を行う。

        以降のページ遷移でも自動で再注入される。
        """
        if self._installed:
            return

        script = load_listener_script()
        await self._page.expose_function(BINDING_NAME, self._on_event)
        await self._page.add_init_script(f"({script})();")
        await self._page.evaluate(script)
        self._installed = True
        logger.info("イベントリスナーを注入しました: %s", self._page.url)

    def _on_event(self, data_json: str) -> None:
        """ページ側から送信されたイベントを処理する。

        Args:
            data_json: JSON 形式のイベントデータ
        """
        try:
            data = json.loads(data_json)
        except json.JSONDecodeError:
            logger.warning("不正なイベントデータ: %s", data_json[:200])
            return

        document = Document.from_snapshot(data, url=data.get("url", ""))
        target = document.find_by_index(str(data.get("idx", "")))
        if target is None:
            logger.warning("イベント発生元の要素が見つかりません: idx=%s", data.get("idx"))
            return

        self._last_document = document
        self._listeners.dispatch(DomEvent(type=data.get("type", ""), target=target, document=document))
