"""
コード生成の共通処理

各ジェネレータが共有する、ページオブジェクトメソッドの照合・
自動メソッドの導出・文字列エスケープ・データ駆動変数の扱いを提供する。
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, runtime_checkable

from ..engine.naming import to_pascal_case
from ..model.schema import ElementKind, Language, PageObject, Project, Step, TestSpec, Tool
from ..model.selectors import RoleSelector, TextSelector, parse_selector

# ${key} 形式のデータ駆動変数
VAR_PATTERN = re.compile(r"\$\{([a-zA-Z_][a-zA-Z0-9_]*)\}")

# ページオブジェクトのメソッドとして呼び出すアクション
METHOD_ACTIONS = ("click", "fill", "select")


def escape_string(value: str) -> str:
    """ダブルクォート文字列リテラル用にエスケープする。"""
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


def escape_single(value: str) -> str:
    """シングルクォート文字列リテラル用にエスケープする。"""
    return (
        value.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


def pascal_method(action: str, element_name: str) -> str:
    """<action><PascalName> 形式のメソッド名を返す。"""
    return f"{action}{to_pascal_case(element_name)}"


def extract_params(steps: list[Step]) -> list[str]:
    """ステップ値中の ${key} をパラメータ名として出現順に返す。"""
    params: list[str] = []
    for step in steps:
        for match in VAR_PATTERN.finditer(step.value or ""):
            if match.group(1) not in params:
                params.append(match.group(1))
    return params


def xpath_literal(value: str) -> str:
    """XPath の文字列リテラルを返す。両方の引用符を含む場合は concat() を使う。"""
    if '"' not in value:
        return f'"{value}"'
    if "'" not in value:
        return f"'{value}'"
    parts = value.split('"')
    return "concat(" + ", '\"', ".join(f'"{p}"' for p in parts) + ")"


# ロール → 対応するタグの XPath 条件
_ROLE_XPATH: dict[str, str] = {
    "button": 'self::button or (self::input and (@type="button" or @type="submit"))',
    "link": "self::a",
    "textbox": (
        "self::textarea or (self::input and (not(@type) or @type=\"text\" or @type=\"email\" "
        "or @type=\"password\" or @type=\"search\"))"
    ),
    "checkbox": 'self::input and @type="checkbox"',
    "radio": 'self::input and @type="radio"',
    "combobox": "self::select",
    "listbox": "self::select",
    "option": "self::option",
}


def selector_to_xpath(token: str) -> Optional[str]:
    """role= / text= トークンを XPath に変換する。CSS の場合は None。"""
    selector = parse_selector(token)
    if isinstance(selector, TextSelector):
        return f"//*[normalize-space(.)={xpath_literal(selector.text)}]"
    if isinstance(selector, RoleSelector):
        name = xpath_literal(selector.name)
        role_cond = f'@role="{selector.role}"'
        if selector.role in _ROLE_XPATH:
            role_cond = f"{role_cond} or {_ROLE_XPATH[selector.role]}"
        return (
            f"//*[({role_cond}) and "
            f"(normalize-space(.)={name} or @aria-label={name} or @value={name} or @title={name})]"
        )
    return None


# ---------------------------------------------------------------------------
# メソッド照合
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MethodMatch:
    """ステップに対応するページオブジェクトのメソッド。

    Attributes:
        page_name: ページオブジェクト名
        method_name: メソッド名（<action><PascalName> またはカスタムメソッド名）
        custom: カスタムメソッドか
    """

    page_name: str
    method_name: str
    custom: bool = False


def _match_in_page(step: Step, page_name: str, page: PageObject, element_name: str) -> MethodMatch:
    for method in page.methods:
        if any(s.selector == step.selector and s.action == step.action for s in method.steps):
            return MethodMatch(page_name, method.name, custom=True)
    return MethodMatch(page_name, pascal_method(step.action, element_name))


def find_page_method(step: Step, pages: Mapping[str, PageObject]) -> Optional[MethodMatch]:
    """ステップを実行するページオブジェクトのメソッドを探す。

    1. step の page_name / element_name が示すページ
    2. 全ページから selector が一致する要素
    の順に探し、同じ selector・action を含むカスタムメソッドがあればそれを優先する。
    """
    if step.action not in METHOD_ACTIONS:
        return None

    if step.page_name and step.element_name and step.page_name in pages:
        return _match_in_page(step, step.page_name, pages[step.page_name], step.element_name)

    for page_name, page in pages.items():
        element_name = page.find_element_by_selector(step.selector)
        if element_name is not None:
            return _match_in_page(step, page_name, page, element_name)
    return None


# ---------------------------------------------------------------------------
# 自動メソッド
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AutoMethod:
    """要素の分類から導出されるメソッド。

    Attributes:
        name: メソッド名（camelCase）
        operation: click / fill / select / check / uncheck
        element: 要素名
        takes_value: 値を引数に取るか
    """

    name: str
    operation: str
    element: str
    takes_value: bool = False


def auto_methods(page: PageObject) -> list[AutoMethod]:
    """要素の分類からメソッドを導出する。カスタムメソッドがある場合は空。"""
    if page.methods:
        return []

    methods: list[AutoMethod] = []
    for name, element in page.elements.items():
        kind = element.type
        if kind in (ElementKind.BUTTON, ElementKind.LINK, ElementKind.TAB, ElementKind.MENUITEM):
            methods.append(AutoMethod(pascal_method("click", name), "click", name))
        elif kind in (ElementKind.INPUT, ElementKind.TEXTAREA):
            methods.append(AutoMethod(pascal_method("fill", name), "fill", name, takes_value=True))
        elif kind == ElementKind.SELECT:
            methods.append(AutoMethod(pascal_method("select", name), "select", name, takes_value=True))
        elif kind in (ElementKind.CHECKBOX, ElementKind.SWITCH):
            methods.append(AutoMethod(pascal_method("check", name), "check", name))
            methods.append(AutoMethod(pascal_method("uncheck", name), "uncheck", name))
        elif kind == ElementKind.RADIO:
            methods.append(AutoMethod(pascal_method("select", name), "check", name))
    return methods


def pages_for_test(test_spec: TestSpec, pages: Mapping[str, PageObject]) -> dict[str, PageObject]:
    """テストスペックが参照するページオブジェクトを返す。

    page_names とステップの page_name の両方を対象にする。
    """
    names: list[str] = list(test_spec.page_names)
    for test_case in test_spec.test_cases:
        for step in test_case.steps:
            if step.page_name and step.page_name not in names:
                names.append(step.page_name)
    return {name: pages[name] for name in names if name in pages}


# ---------------------------------------------------------------------------
# ジェネレータ Protocol
# ---------------------------------------------------------------------------

@runtime_checkable
class CodeGenerator(Protocol):
    """(tool, language) ごとのコードジェネレータの共通インターフェース。"""

    tool: Tool
    language: Language
    file_extension: str

    def render_page(self, page: PageObject) -> str:
        """ページオブジェクトのソースコードを生成する。"""
        ...

    def render_test(self, test_spec: TestSpec, pages: Mapping[str, PageObject]) -> str:
        """テストスペックのソースコードを生成する。"""
        ...

    def page_path(self, page: PageObject) -> str:
        """ページオブジェクトの出力パス（プロジェクトルートからの相対パス）。"""
        ...

    def test_path(self, test_spec: TestSpec) -> str:
        """テストスペックの出力パス。"""
        ...

    def support_files(self, project: Project) -> dict[str, str]:
        """設定ファイル・依存関係ファイル・実行スクリプト等の {パス: 内容}。"""
        ...


# ---------------------------------------------------------------------------
# 値の式
# ---------------------------------------------------------------------------

def python_value(value: Optional[str], scope: Optional[str] = None) -> str:
    """ステップ値を Python の式に変換する。

    Args:
        value: ステップ値
        scope: "data" の場合 ${key} を data["key"]、"params" の場合は引数名 key に置き換える。
            None の場合は文字列リテラルのまま出力する

    Returns:
        Python の式（"..." / data["key"] / f"..."）
    """
    text = value or ""
    if scope is None or not VAR_PATTERN.search(text):
        return f'"{escape_string(text)}"'

    whole = VAR_PATTERN.fullmatch(text)
    if whole:
        key = whole.group(1)
        return f'data["{key}"]' if scope == "data" else key

    parts: list[str] = []
    last = 0
    for match in VAR_PATTERN.finditer(text):
        literal = escape_string(text[last:match.start()]).replace("{", "{{").replace("}", "}}")
        parts.append(literal)
        key = match.group(1)
        parts.append(f"{{data['{key}']}}" if scope == "data" else f"{{{key}}}")
        last = match.end()
    parts.append(escape_string(text[last:]).replace("{", "{{").replace("}", "}}"))
    return 'f"' + "".join(parts) + '"'


def js_value(value: Optional[str], scope: Optional[str] = None) -> str:
    """ステップ値を JavaScript の式に変換する。

    scope の扱いは python_value() と同じ（"data" → data.key）。
    変数を含む文字列はテンプレートリテラルになる。
    """
    text = value or ""
    if scope is None or not VAR_PATTERN.search(text):
        return f"'{escape_single(text)}'"

    whole = VAR_PATTERN.fullmatch(text)
    if whole:
        key = whole.group(1)
        return f"data.{key}" if scope == "data" else key

    def _literal(chunk: str) -> str:
        return chunk.replace("\\", "\\\\").replace("`", "\\`").replace("${", "\\${")

    parts: list[str] = []
    last = 0
    for match in VAR_PATTERN.finditer(text):
        parts.append(_literal(text[last:match.start()]))
        key = match.group(1)
        parts.append(f"${{data.{key}}}" if scope == "data" else f"${{{key}}}")
        last = match.end()
    parts.append(_literal(text[last:]))
    return "`" + "".join(parts) + "`"


def unique_identifier(name: str, used: set[str]) -> str:
    """used に含まれない識別子を返す（name, name_2, name_3, ...）。"""
    candidate = name
    n = 2
    while candidate in used:
        candidate = f"{name}_{n}"
        n += 1
    used.add(candidate)
    return candidate
