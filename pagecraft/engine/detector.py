"""
ElementDetector — ページ上のインタラクティブ要素の検出

Document 全体を走査し、操作対象となる要素のカタログを生成する。
ページオブジェクト作成時の自動検出で使用する。

走査パス（要素の同一性で重複除去）:
  1. 分類ごとの CSS セレクタ（button, input, checkbox, ... switch）
  2. クリックハンドラ属性を持つ要素（文書順）
  3. div / span / li / td / th のうち cursor: pointer または tabindex を持つ要素（文書順）

主な機能:
  - detect(): ElementDescriptor のリストを発見順で返す
  - アクティブなモーダルがある場合はモーダル内のみを走査
  - 重複する要素名への連番付与
  - group_by_section(): ナビゲーション・フォーム等のセクション単位での分類
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from lxml.html import HtmlElement

from ..dom.document import Document, element_text, is_descendant
from ..errors import InvalidSelectorError
from ..model.schema import ElementDescriptor, ElementKind
from .classifier import classify, has_click_binding
from .naming import derive_name, element_label, unique_name
from .selector import SelectorEngine, css_string, split_classes

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# 走査対象の定義
# ---------------------------------------------------------------------------

KIND_SELECTORS: tuple[tuple[ElementKind, tuple[str, ...]], ...] = (
    (ElementKind.BUTTON, (
        "button", 'input[type="button"]', 'input[type="submit"]',
        'input[type="reset"]', '[role="button"]',
    )),
    (ElementKind.INPUT, (
        'input[type="text"]', 'input[type="email"]', 'input[type="password"]',
        'input[type="number"]', 'input[type="search"]', 'input[type="tel"]',
        'input[type="url"]', 'input[type="date"]', "input:not([type])", '[role="textbox"]',
    )),
    (ElementKind.CHECKBOX, ('input[type="checkbox"]', '[role="checkbox"]')),
    (ElementKind.RADIO, ('input[type="radio"]', '[role="radio"]')),
    (ElementKind.SELECT, ("select", '[role="combobox"]', '[role="listbox"]')),
    (ElementKind.LINK, ("a[href]", '[role="link"]')),
    (ElementKind.TEXTAREA, ("textarea",)),
    (ElementKind.TAB, ('[role="tab"]',)),
    (ElementKind.MENUITEM, ('[role="menuitem"]', '[role="menuitemcheckbox"]', '[role="menuitemradio"]')),
    (ElementKind.OPTION, ('[role="option"]',)),
    (ElementKind.SWITCH, ('[role="switch"]',)),
)

GENERIC_CONTAINER_TAGS = frozenset({"div", "span", "li", "td", "th"})

MODAL_SELECTORS: tuple[str, ...] = (
    '[role="dialog"][aria-modal="true"]',
    '[role="alertdialog"]',
    ".modal.show",
    ".modal.in",
    '[data-modal="true"]',
    "dialog[open]",
)


# ---------------------------------------------------------------------------
# ElementDetector 本体
# ---------------------------------------------------------------------------

class ElementDetector:
    """インタラクティブ要素の検出器。

    使用例::

        detector = ElementDetector(document)
        for descriptor in detector.detect():
            print(descriptor.name, descriptor.selector)
    """

    def __init__(self, document: Document) -> None:
        self._document = document
        self._engine = SelectorEngine(document, mode="detector")

    # -------------------------------------------------------------------
    # パブリック API
    # -------------------------------------------------------------------

    def detect(self) -> list[ElementDescriptor]:
        """要素カタログを発見順で返す。"""
        descriptors = [descriptor for _, descriptor in self._scan()]
        logger.info("要素を検出しました: %d 件", len(descriptors))
        return descriptors

    def group_by_section(self) -> dict[str, list[ElementDescriptor]]:
        """検出した要素をページのセクションごとに分類する。

        Returns:
            {セクション名: 要素リスト}。セクション名は navigation / main / header /
            footer / フォーム名 / general のいずれか
        """
        sections: dict[str, list[ElementDescriptor]] = {}
        for element, descriptor in self._scan():
            sections.setdefault(find_section(element), []).append(descriptor)
        return sections

    def detect_active_modal(self) -> Optional[HtmlElement]:
        """表示中のモーダルを返す。複数ある場合は文書順で最後（最前面）のもの。"""
        active: Optional[HtmlElement] = None
        for selector in MODAL_SELECTORS:
            for el in self._document.query_all(selector):
                if self._document.is_visible(el):
                    if active is None or _document_position(el) > _document_position(active):
                        active = el
        return active

    def modal_name(self, modal: HtmlElement) -> str:
        """モーダルの表示名（aria-label / aria-labelledby / 見出し）。"""
        label = modal.get("aria-label")
        if label:
            return label.strip()

        labelledby = modal.get("aria-labelledby")
        if labelledby:
            try:
                title = self._document.query(f"[id={css_string(labelledby)}]")
            except InvalidSelectorError:
                title = None
            if title is not None and element_text(title):
                return element_text(title)

        for heading in modal.iter("h1", "h2", "h3"):
            text = element_text(heading)
            if text:
                return text
        return "modal"

    # -------------------------------------------------------------------
    # 走査
    # -------------------------------------------------------------------

    def _scan(self) -> list[tuple[HtmlElement, ElementDescriptor]]:
        scope = self.detect_active_modal()
        if scope is not None:
            logger.info("モーダル内のみを走査します: %s", self.modal_name(scope))

        seen: set[HtmlElement] = set()
        used_names: dict[str, int] = {}
        results: list[tuple[HtmlElement, ElementDescriptor]] = []

        for element, index in self._iter_candidates():
            if element in seen:
                continue
            seen.add(element)

            if scope is not None and not is_descendant(element, scope):
                continue
            if not self._document.is_visible(element):
                continue

            descriptor = self._describe(element, index, used_names)
            logger.debug("検出: %s → %s (%s)", element_label(element), descriptor.name, descriptor.selector)
            results.append((element, descriptor))

        return results

    def _iter_candidates(self) -> Iterator[tuple[HtmlElement, int]]:
        """3 パスの候補要素と、パス内での位置インデックスを列挙する。"""
        # パス 1: 分類ごとのセレクタ
        for _, selectors in KIND_SELECTORS:
            for selector in selectors:
                for index, element in enumerate(self._document.query_all(selector)):
                    yield element, index

        # パス 2: クリックハンドラ属性
        bound = [el for el in self._document.elements() if has_click_binding(el)]
        for index, element in enumerate(bound):
            yield element, index

        # パス 3: cursor: pointer または tabindex を持つ汎用コンテナ
        generic = [
            el for el in self._document.elements()
            if el.tag in GENERIC_CONTAINER_TAGS
            and (
                self._document.layout(el).cursor == "pointer"
                or el.get("tabindex") is not None
            )
        ]
        for index, element in enumerate(generic):
            yield element, index

    def _describe(
        self, element: HtmlElement, index: int, used_names: dict[str, int]
    ) -> ElementDescriptor:
        kind = classify(element, self._document)
        name = unique_name(derive_name(element, kind, index), used_names)
        best = self._engine.best_selector(element)

        return ElementDescriptor(
            name=name,
            type=kind,
            selector=best.value,
            selector_candidate=best,
            text=element_text(element)[:50],
            placeholder=element.get("placeholder"),
            id=element.get("id"),
            classes=split_classes(element),
            tag=element.tag.lower(),
        )


# ---------------------------------------------------------------------------
# セクション判定
# ---------------------------------------------------------------------------

def _document_position(element: HtmlElement) -> int:
    """文書内での前順位置。"""
    return len(element.xpath("preceding::*")) + sum(1 for _ in element.iterancestors())


def find_section(element: HtmlElement) -> str:
    """祖先をたどり、要素が属するセクション名を返す。"""
    current: Optional[HtmlElement] = element
    while current is not None:
        role = current.get("role")
        element_id = current.get("id")
        classes = split_classes(current)
        tag = current.tag

        if role == "navigation" or tag == "nav" or element_id == "nav" or any("nav" in c for c in classes):
            return "navigation"
        if role == "main" or tag == "main" or element_id == "main" or any("main" in c for c in classes):
            return "main"
        if role == "form" or tag == "form":
            return current.get("name") or element_id or "form"
        if tag == "header" or element_id == "header" or any("header" in c for c in classes):
            return "header"
        if tag == "footer" or element_id == "footer" or any("footer" in c for c in classes):
            return "footer"

        current = current.getparent()
    return "general"
