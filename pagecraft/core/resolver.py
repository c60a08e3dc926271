"""
セレクタリゾルバ — セレクタ文字列から Document 上の要素を特定

記録されたステップのセレクタを解析し、Document の要素に解決する。

解決規則:
  - role=<role>[name="<name>"]: ロールごとの固定 CSS 群で候補を集め、
    aria-label / テキスト / value / title / name 属性のいずれかが name と
    完全一致する最初の要素
  - text="<text>": トリム済みテキストが完全一致する文書順で最初の要素
  - それ以外: CSS セレクタとして直接クエリ（構文エラーは一致なし）
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from lxml.html import HtmlElement

from ..dom.document import Document, element_text
from ..errors import ElementNotFoundError, InvalidSelectorError
from ..model.selectors import CssSelector, RoleSelector, TextSelector, parse_selector

logger = logging.getLogger(__name__)

# ロールごとの候補 CSS セレクタ
ROLE_CSS: dict[str, str] = {
    "button": 'button, [role="button"], input[type="button"], input[type="submit"]',
    "link": 'a, [role="link"]',
    "textbox": 'input[type="text"], input:not([type]), input[type="email"], input[type="password"], '
               'input[type="search"], textarea, [role="textbox"]',
    "checkbox": 'input[type="checkbox"], [role="checkbox"]',
    "radio": 'input[type="radio"], [role="radio"]',
    "combobox": 'select, [role="combobox"]',
    "listbox": 'select, [role="listbox"]',
    "option": 'option, [role="option"]',
    "tab": '[role="tab"]',
    "menuitem": '[role="menuitem"]',
    "switch": '[role="switch"]',
}

# アクセシブルネームとの照合に使用する属性
_NAME_ATTRIBUTES = ("aria-label", "value", "title", "name")


def _matches_name(element: HtmlElement, name: str) -> bool:
    if element_text(element) == name:
        return True
    return any(element.get(attr) == name for attr in _NAME_ATTRIBUTES)


def _resolve_role(document: Document, selector: RoleSelector) -> Optional[HtmlElement]:
    css = ROLE_CSS.get(selector.role, f'[role="{selector.role}"]')
    for element in document.query_all(css):
        if _matches_name(element, selector.name):
            return element
    return None


def _resolve_text(document: Document, selector: TextSelector) -> Optional[HtmlElement]:
    for element in document.elements():
        if element_text(element) == selector.text:
            return element
    return None


def _resolve_css(document: Document, selector: CssSelector) -> Optional[HtmlElement]:
    try:
        return document.query(selector.css)
    except InvalidSelectorError as e:
        logger.debug("CSS セレクタを解決できません: %s", e)
        return None


def find_element(
    document: Document,
    selector: Union[str, CssSelector, RoleSelector, TextSelector],
) -> Optional[HtmlElement]:
    """セレクタを要素に解決する。見つからなければ None。"""
    if isinstance(selector, str):
        selector = parse_selector(selector)

    if isinstance(selector, RoleSelector):
        return _resolve_role(document, selector)
    if isinstance(selector, TextSelector):
        return _resolve_text(document, selector)
    return _resolve_css(document, selector)


def resolve_element(
    document: Document,
    selector: Union[str, CssSelector, RoleSelector, TextSelector],
) -> HtmlElement:
    """セレクタを要素に解決する。

    Raises:
        ElementNotFoundError: 一致する要素がない場合
    """
    element = find_element(document, selector)
    if element is None:
        token = selector if isinstance(selector, str) else selector.to_token()
        raise ElementNotFoundError(token)
    return element
