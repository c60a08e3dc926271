"""
Classifier — 要素の分類

DOM 要素を ElementKind に分類する。

判定順序:
  1. 明示的な ARIA role（タグより優先。<div role="button"> は button）
  2. タグ・type 属性
  3. クリックハンドラ属性、または計算済み cursor: pointer → button
  4. 上記以外は element
"""

from __future__ import annotations

from typing import Optional

from lxml.html import HtmlElement

from ..dom.document import Document
from ..model.schema import ElementKind

_ROLE_KINDS: dict[str, ElementKind] = {
    "button": ElementKind.BUTTON,
    "checkbox": ElementKind.CHECKBOX,
    "radio": ElementKind.RADIO,
    "link": ElementKind.LINK,
    "textbox": ElementKind.INPUT,
    "searchbox": ElementKind.INPUT,
    "combobox": ElementKind.SELECT,
    "listbox": ElementKind.SELECT,
    "tab": ElementKind.TAB,
    "menuitem": ElementKind.MENUITEM,
    "menuitemcheckbox": ElementKind.MENUITEM,
    "menuitemradio": ElementKind.MENUITEM,
    "option": ElementKind.OPTION,
    "switch": ElementKind.SWITCH,
}

_BUTTON_INPUT_TYPES = frozenset({"button", "submit", "reset", "image"})

# フレームワークごとのクリックバインディング属性
CLICK_BINDING_ATTRIBUTES: tuple[str, ...] = (
    "onclick",
    "ng-click",
    "@click",
    "v-on:click",
    "(click)",
    "data-action",
    "jsaction",
)


def has_click_binding(element: HtmlElement) -> bool:
    """クリックハンドラ属性を持つか。"""
    return any(attr in element.attrib for attr in CLICK_BINDING_ATTRIBUTES)


def classify(element: HtmlElement, document: Optional[Document] = None) -> ElementKind:
    """要素を ElementKind に分類する。

    Args:
        element: 対象要素
        document: cursor 判定に使用する Document（省略時は cursor 判定を行わない）

    Returns:
        要素の分類
    """
    role = (element.get("role") or "").strip().lower()
    if role in _ROLE_KINDS:
        return _ROLE_KINDS[role]

    tag = element.tag
    if tag == "button":
        return ElementKind.BUTTON
    if tag == "input":
        input_type = element.get("type", "text").lower()
        if input_type == "checkbox":
            return ElementKind.CHECKBOX
        if input_type == "radio":
            return ElementKind.RADIO
        if input_type in _BUTTON_INPUT_TYPES:
            return ElementKind.BUTTON
        return ElementKind.INPUT
    if tag == "select":
        return ElementKind.SELECT
    if tag == "textarea":
        return ElementKind.TEXTAREA
    if tag == "a":
        return ElementKind.LINK

    if has_click_binding(element):
        return ElementKind.BUTTON
    if document is not None and document.layout(element).cursor == "pointer":
        return ElementKind.BUTTON

    return ElementKind.ELEMENT
