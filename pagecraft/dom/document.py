"""
Document — lxml ベースの DOM モデル

セレクタ生成・要素検出・記録・再生が共通で扱う DOM 表現を提供する。
HTML は lxml.html で解析し、CSS クエリは cssselect で XPath に変換して評価する。

主な機能:
  - Document: CSS クエリ、要素の列挙、レイアウト（表示状態・サイズ）の取得
  - Layout: 計算済みスタイルと矩形サイズ
  - element_text() / element_value(): テキスト・フォーム値の取得
  - ListenerRegistry / Subscription: キャプチャフェーズのイベント購読

レイアウト情報:
  静的な HTML では inline style 属性（display / visibility / opacity / cursor /
  width / height）と hidden 属性から算出する。ライブページのスナップショットでは
  ブラウザの計算済みスタイルで上書きされる。
"""

from __future__ import annotations

import functools
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, Protocol, runtime_checkable

import lxml.html
from cssselect import SelectorError
from lxml import etree
from lxml.cssselect import CSSSelector
from lxml.html import HtmlElement

from ..errors import InvalidSelectorError

logger = logging.getLogger(__name__)

# スナップショットで各要素に付与するインデックス属性
INDEX_ATTR = "data-pagecraft-idx"

# ブラウザが描画しない要素
_NON_RENDERED_TAGS = frozenset({
    "head", "script", "style", "title", "meta", "link", "noscript", "template", "base",
})

# テキスト抽出の対象外
_NON_TEXT_TAGS = frozenset({"script", "style", "noscript", "template"})

_WS_RE = re.compile(r"\s+")
_PX_RE = re.compile(r"^(-?\d+(?:\.\d+)?)(px)?$")


# ---------------------------------------------------------------------------
# レイアウト
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Layout:
    """要素の計算済みスタイルと矩形サイズ。

    Attributes:
        display: CSS display
        visibility: CSS visibility
        opacity: CSS opacity
        cursor: CSS cursor
        width: 矩形の幅
        height: 矩形の高さ
    """

    display: str = "block"
    visibility: str = "visible"
    opacity: float = 1.0
    cursor: str = "auto"
    width: float = 1.0
    height: float = 1.0

    @property
    def is_visible(self) -> bool:
        """display/visibility/opacity/矩形サイズのすべてが可視条件を満たすか。"""
        return (
            self.display != "none"
            and self.visibility != "hidden"
            and self.opacity != 0
            and self.width > 0
            and self.height > 0
        )


def parse_inline_style(style: str) -> dict[str, str]:
    """inline style 属性を {プロパティ: 値} に分解する。

    プロパティ名・値とも小文字化し、!important は除去する。
    """
    result: dict[str, str] = {}
    for decl in style.split(";"):
        if ":" not in decl:
            continue
        prop, _, value = decl.partition(":")
        value = value.strip().lower()
        if value.endswith("!important"):
            value = value[: -len("!important")].strip()
        result[prop.strip().lower()] = value
    return result


def _parse_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    m = _PX_RE.match(value.strip())
    if not m:
        return default
    return float(m.group(1))


# ---------------------------------------------------------------------------
# テキスト・値ヘルパー
# ---------------------------------------------------------------------------

def _collect_text(node: HtmlElement, chunks: list[str]) -> None:
    if node.tag in _NON_TEXT_TAGS:
        return
    if node.text:
        chunks.append(node.text)
    for child in node:
        if isinstance(child.tag, str):
            _collect_text(child, chunks)
        if child.tail:
            chunks.append(child.tail)


def element_text(el: HtmlElement) -> str:
    """要素の表示テキストを返す。

    script/style を除いたテキストを連結し、空白を 1 つに畳んでトリムする。
    """
    chunks: list[str] = []
    _collect_text(el, chunks)
    return _WS_RE.sub(" ", "".join(chunks)).strip()


def option_value(option: HtmlElement) -> str:
    """option 要素の値（value 属性がなければテキスト）。"""
    value = option.get("value")
    return value if value is not None else element_text(option)


def element_value(el: HtmlElement) -> str:
    """フォーム要素の現在値を返す。

    - textarea: テキスト
    - select: selected 属性付き option の値。なければ先頭 option の値
    - その他: value 属性
    """
    if el.tag == "textarea":
        return el.text or ""

    if el.tag == "select":
        options = el.xpath(".//option")
        selected = [o for o in options if o.get("selected") is not None]
        chosen = selected[0] if selected else (options[0] if options else None)
        return option_value(chosen) if chosen is not None else ""

    return el.get("value", "")


def set_element_value(el: HtmlElement, value: str) -> None:
    """フォーム要素の値を設定する。select の場合は一致する option を選択する。

    Raises:
        ValueError: select に一致する option がない場合
    """
    if el.tag == "textarea":
        for child in list(el):
            el.remove(child)
        el.text = value
        return

    if el.tag == "select":
        options = el.xpath(".//option")
        matched = [o for o in options if option_value(o) == value]
        if not matched:
            raise ValueError(f"一致する option がありません: {value}")
        first = matched[0]
        for option in options:
            if option is first:
                option.set("selected", "selected")
            elif "selected" in option.attrib:
                del option.attrib["selected"]
        return

    el.set("value", value)


def is_descendant(el: HtmlElement, ancestor: HtmlElement) -> bool:
    """el が ancestor 自身またはその子孫であるか。"""
    node: Optional[HtmlElement] = el
    while node is not None:
        if node is ancestor:
            return True
        node = node.getparent()
    return False


def same_tag_siblings(el: HtmlElement) -> list[HtmlElement]:
    """el と同じタグ名を持つ兄弟要素（el 自身を含む、文書順）。"""
    parent = el.getparent()
    if parent is None:
        return [el]
    return [child for child in parent if child.tag == el.tag]


# ---------------------------------------------------------------------------
# イベント購読
# ---------------------------------------------------------------------------

@dataclass
class DomEvent:
    """DOM イベント。

    Attributes:
        type: イベント種別（click / input / change）
        target: イベントの発生元要素
        document: target を含む Document
    """

    type: str
    target: HtmlElement
    document: "Document"


EventHandler = Callable[[DomEvent], None]


@dataclass(eq=False)
class _Listener:
    event_type: str
    handler: EventHandler
    capture: bool


class Subscription:
    """イベント購読のハンドル。cancel() で全リスナーを解除する。"""

    def __init__(self, registry: ListenerRegistry, listeners: list[_Listener]) -> None:
        self._registry = registry
        self._listeners = listeners

    @property
    def active(self) -> bool:
        return bool(self._listeners)

    def cancel(self) -> None:
        """購読を解除する。複数回呼び出しても安全。"""
        for listener in self._listeners:
            self._registry.remove(listener)
        self._listeners = []


class ListenerRegistry:
    """イベントリスナーの登録と配信。

    キャプチャフェーズのリスナーを先に、登録順で呼び出す。
    リスナー内の例外はログに記録し、後続のリスナーへの配信は継続する。
    """

    def __init__(self) -> None:
        self._listeners: list[_Listener] = []

    def add(self, handlers: dict[str, EventHandler], capture: bool = True) -> Subscription:
        listeners = [_Listener(t, h, capture) for t, h in handlers.items()]
        self._listeners.extend(listeners)
        return Subscription(self, listeners)

    def remove(self, listener: _Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def dispatch(self, event: DomEvent) -> None:
        matching = [l for l in self._listeners if l.event_type == event.type]
        for listener in sorted(matching, key=lambda l: not l.capture):
            try:
                listener.handler(event)
            except Exception:
                logger.exception("イベントリスナーでエラーが発生しました: %s", event.type)

    def __len__(self) -> int:
        return len(self._listeners)


@runtime_checkable
class EventSource(Protocol):
    """キャプチャフェーズのイベント購読を提供するオブジェクト。"""

    def subscribe(
        self, handlers: dict[str, EventHandler], capture: bool = True
    ) -> Subscription: ...


# ---------------------------------------------------------------------------
# Document 本体
# ---------------------------------------------------------------------------

@functools.lru_cache(maxsize=512)
def _compile_css(css: str) -> CSSSelector:
    return CSSSelector(css, translator="html")


class Document:
    """lxml ツリーをラップした DOM モデル。

    使用例::

        doc = Document.from_html('<button id="go">Go</button>')
        button = doc.query("#go")
    """

    def __init__(
        self,
        root: HtmlElement,
        url: str = "",
        layouts: Optional[dict[HtmlElement, Layout]] = None,
    ) -> None:
        self._root = root
        self.url = url
        self._layout_overrides: dict[HtmlElement, Layout] = dict(layouts or {})
        self._events = ListenerRegistry()

    # -------------------------------------------------------------------
    # 生成
    # -------------------------------------------------------------------

    @classmethod
    def from_html(cls, html: str, url: str = "") -> Document:
        """HTML 文字列から Document を生成する。"""
        if not html.strip():
            html = "<html><body></body></html>"
        return cls(lxml.html.document_fromstring(html), url=url)

    @classmethod
    def from_snapshot(cls, payload: dict[str, Any], url: str = "") -> Document:
        """ライブページのスナップショットから Document を生成する。

        payload の形式::

            {"html": "<html>...</html>",
             "records": [{"idx": "0", "display": "block", ..., "value": "..."}]}

        records の計算済みスタイルをレイアウトとして適用し、
        フォーム要素の現在値と checked 状態を属性へ反映する。
        """
        doc = cls.from_html(payload.get("html", ""), url=url)
        by_index = {str(r["idx"]): r for r in payload.get("records", [])}

        for el in doc.elements():
            record = by_index.get(el.get(INDEX_ATTR, ""))
            if record is None:
                continue
            doc._layout_overrides[el] = Layout(
                display=str(record.get("display", "block")),
                visibility=str(record.get("visibility", "visible")),
                opacity=float(record.get("opacity", 1.0)),
                cursor=str(record.get("cursor", "auto")),
                width=float(record.get("width", 0.0)),
                height=float(record.get("height", 0.0)),
            )
            if "value" in record and el.tag in ("input", "textarea", "select"):
                try:
                    set_element_value(el, str(record["value"]))
                except ValueError:
                    logger.debug("select の値を反映できません: %s", record["value"])
            if record.get("checked") is True:
                el.set("checked", "checked")
            elif record.get("checked") is False and "checked" in el.attrib:
                del el.attrib["checked"]
        return doc

    # -------------------------------------------------------------------
    # ツリーアクセス
    # -------------------------------------------------------------------

    @property
    def root(self) -> HtmlElement:
        return self._root

    @property
    def body(self) -> HtmlElement:
        body = self._root.find(".//body")
        return body if body is not None else self._root

    def elements(self) -> Iterator[HtmlElement]:
        """全要素を文書順に列挙する（コメント等は除く）。"""
        return self._root.iter(etree.Element)

    def find_by_index(self, index: str) -> Optional[HtmlElement]:
        """スナップショットのインデックス属性で要素を取得する。"""
        for el in self.elements():
            if el.get(INDEX_ATTR) == index:
                return el
        return None

    def query_all(self, css: str) -> list[HtmlElement]:
        """CSS セレクタに一致する要素を文書順で返す。

        Raises:
            InvalidSelectorError: セレクタの構文が不正な場合
        """
        try:
            selector = _compile_css(css)
        except SelectorError as e:
            raise InvalidSelectorError(css, str(e)) from e

        try:
            return selector(self._root)
        except etree.XPathError as e:
            raise InvalidSelectorError(css, str(e)) from e

    def query(self, css: str) -> Optional[HtmlElement]:
        """CSS セレクタに一致する最初の要素を返す。"""
        matches = self.query_all(css)
        return matches[0] if matches else None

    def to_html(self) -> str:
        return lxml.html.tostring(self._root, encoding="unicode")

    # -------------------------------------------------------------------
    # レイアウト
    # -------------------------------------------------------------------

    def set_layout(self, el: HtmlElement, layout: Layout) -> None:
        self._layout_overrides[el] = layout

    def layout(self, el: HtmlElement) -> Layout:
        """要素のレイアウトを返す。スナップショット値があればそれを優先する。"""
        override = self._layout_overrides.get(el)
        if override is not None:
            return override
        return self._compute_static_layout(el)

    def is_visible(self, el: HtmlElement) -> bool:
        return self.layout(el).is_visible

    def _compute_static_layout(self, el: HtmlElement) -> Layout:
        styles = parse_inline_style(el.get("style", ""))

        parent = el.getparent()
        parent_layout = self.layout(parent) if parent is not None else None

        display = styles.get("display", "block")
        if (
            el.get("hidden") is not None
            or el.tag in _NON_RENDERED_TAGS
            or (el.tag == "input" and el.get("type", "").lower() == "hidden")
            or (parent_layout is not None and parent_layout.display == "none")
        ):
            display = "none"

        # visibility と cursor は継承プロパティ
        inherited_visibility = parent_layout.visibility if parent_layout else "visible"
        inherited_cursor = parent_layout.cursor if parent_layout else "auto"
        visibility = styles.get("visibility", inherited_visibility)
        cursor = styles.get("cursor", inherited_cursor)

        opacity = _parse_float(styles.get("opacity"), 1.0)

        if display == "none":
            width = height = 0.0
        else:
            width = _parse_float(styles.get("width"), 1.0)
            height = _parse_float(styles.get("height"), 1.0)

        return Layout(
            display=display,
            visibility=visibility,
            opacity=opacity,
            cursor=cursor,
            width=width,
            height=height,
        )

    # -------------------------------------------------------------------
    # イベント
    # -------------------------------------------------------------------

    def subscribe(
        self, handlers: dict[str, EventHandler], capture: bool = True
    ) -> Subscription:
        """イベント種別ごとのハンドラを登録する。

        Args:
            handlers: {イベント種別: ハンドラ}
            capture: キャプチャフェーズで受け取るか

        Returns:
            全ハンドラをまとめて解除できる Subscription
        """
        return self._events.add(handlers, capture=capture)

    def dispatch(self, event_type: str, target: HtmlElement) -> DomEvent:
        """target を発生元とするイベントを配信する。"""
        event = DomEvent(type=event_type, target=target, document=self)
        self._events.dispatch(event)
        return event

    @property
    def listener_count(self) -> int:
        return len(self._events)
