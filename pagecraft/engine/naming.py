"""
Naming — 要素名の生成

要素の属性から人間が読める識別子を生成する。
属性のみから決まる純粋関数であり、同じ入力には常に同じ名前を返す。

名前の取得元（最初に空でないものを採用）:
  id → name → aria-label → placeholder → テキスト（30 文字未満）
  → 最初の data-* 属性値 → "<kind><index+1>"

生成例: id="login-btn", kind=button → "loginBtnButton"
"""

from __future__ import annotations

import re
from typing import Iterator, Union

from lxml.html import HtmlElement

from ..dom.document import INDEX_ATTR, element_text
from ..model.schema import ElementKind

_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9\s]")
_WS_RE = re.compile(r"\s+")
_WORD_SPLIT_RE = re.compile(r"[^a-zA-Z0-9]+")

MAX_TEXT_NAME_LENGTH = 30


# ---------------------------------------------------------------------------
# 文字列変換ヘルパー
# ---------------------------------------------------------------------------

def capitalize(word: str) -> str:
    """先頭を大文字、残りを小文字にする。"""
    return word[:1].upper() + word[1:].lower()


def sanitize_name(raw: str) -> str:
    """英数字以外を単語区切りとして camelCase に変換する（"login-btn" → "loginBtn"）。"""
    cleaned = _WS_RE.sub(" ", _NON_ALNUM_RE.sub(" ", raw)).strip()
    if not cleaned:
        return ""
    words = cleaned.split(" ")
    return words[0].lower() + "".join(capitalize(w) for w in words[1:])


def _split_words(name: str) -> list[str]:
    """区切り文字と camelCase 境界で単語に分割する。"""
    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", name)
    return [w for w in _WORD_SPLIT_RE.split(spaced) if w]


def to_pascal_case(name: str) -> str:
    """PascalCase に変換する（"login page" → "LoginPage"）。"""
    return "".join(w[:1].upper() + w[1:] for w in _split_words(name))


def to_camel_case(name: str) -> str:
    """camelCase に変換する（"Login Page" → "loginPage"）。"""
    pascal = to_pascal_case(name)
    return pascal[:1].lower() + pascal[1:]


def to_snake_case(name: str) -> str:
    """snake_case に変換する（"loginPage" → "login_page"）。"""
    return "_".join(w.lower() for w in _split_words(name))


# ---------------------------------------------------------------------------
# 名前生成
# ---------------------------------------------------------------------------

def _name_sources(element: HtmlElement) -> Iterator[str]:
    """優先順位順に名前の取得元文字列を列挙する。"""
    for attr in ("id", "name", "aria-label", "placeholder"):
        value = element.get(attr)
        if value:
            yield value

    text = element_text(element)
    if text and len(text) < MAX_TEXT_NAME_LENGTH:
        yield text

    for attr, value in element.attrib.items():
        if attr.startswith("data-") and attr != INDEX_ATTR and value:
            yield value
            break


def derive_name(
    element: HtmlElement,
    kind: Union[ElementKind, str],
    fallback_index: int = 0,
) -> str:
    """要素の識別名を生成する。

    サニタイズ後に空になる取得元は読み飛ばし、次の取得元を使用する。

    Args:
        element: 対象要素
        kind: 要素の分類（名前のサフィックスになる）
        fallback_index: 取得元がない場合の連番（0 始まり）

    Returns:
        camelCase の要素名
    """
    kind_value = ElementKind(kind).value

    for raw in _name_sources(element):
        base = sanitize_name(raw)
        if base:
            return f"{base}{capitalize(kind_value)}"

    return f"{kind_value}{fallback_index + 1}"


def unique_name(name: str, used: dict[str, int]) -> str:
    """重複する名前に連番サフィックスを付与する。

    used は呼び出し間で共有するカウンタ。最初の出現はそのまま、
    2 回目以降は name2, name3, ... を返す。
    """
    count = used.get(name, 0) + 1
    used[name] = count
    if count == 1:
        return name
    candidate = f"{name}{count}"
    while candidate in used:
        count += 1
        candidate = f"{name}{count}"
    used[name] = count
    used[candidate] = 1
    return candidate


def element_label(element: HtmlElement) -> str:
    """ログ表示用の短いラベル（tag#id.class）。"""
    label = element.tag
    if element.get("id"):
        label += f"#{element.get('id')}"
    classes = element.get("class", "").split()
    if classes:
        label += "." + ".".join(classes[:2])
    return label
