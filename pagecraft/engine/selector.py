"""
SelectorEngine — 要素からのセレクタ候補生成

DOM 要素を受け取り、固定の優先順位に従ってセレクタ候補を列挙し、
最もスコアの高い候補を最良セレクタとして選択する。

優先順位（スコア）:
  1. テスト用属性 data-testid 等（100）
  2. ARIA ロール + アクセシブルネーム（80）。role=<role>[name="<name>"] トークン
  3. 動的でない id（60）
  4. name 属性（50）
  5. テキスト（40、detector モードのみ）。text="<text>" トークン
  6. class の組み合わせ（20、detector モードのみ）
  7. 構造パス（10）

テスト用属性・id・name・class の候補は、文書を再クエリして
ちょうど 1 要素に一致する場合のみ採用する。構文エラーになるセレクタは
一致なしとして扱い、次の優先順位へ進む。
"""

from __future__ import annotations

import logging
import re
from typing import Literal, Optional

from lxml.html import HtmlElement

from ..dom.document import Document, element_text, same_tag_siblings
from ..errors import InvalidSelectorError
from ..model.selectors import RoleSelector, SelectorCandidate, SelectorKind, TextSelector

logger = logging.getLogger(__name__)

SelectorMode = Literal["detector", "recorder"]

# ---------------------------------------------------------------------------
# 定数
# ---------------------------------------------------------------------------

TEST_ID_ATTRIBUTES: tuple[str, ...] = (
    "data-testid",
    "data-test",
    "data-cy",
    "data-qa",
    "data-automation-id",
    "data-component",
    "data-widget",
)

ROLE_ALLOW_LIST = frozenset({"button", "link", "textbox", "checkbox", "radio", "combobox"})

# 50 文字以上のアクセシブルネーム・テキストは不安定なため採用しない
MAX_NAME_LENGTH = 50

TEXT_CANDIDATE_TAGS = frozenset({"button", "a", "label", "span", "div"})

VOLATILE_CLASSES = frozenset({"active", "focus", "hover", "selected", "disabled"})

MAX_PATH_DEPTH = 5

_DYNAMIC_ID_PATTERNS = (
    re.compile(r"\d{3,}$"),
    re.compile(r"^[a-f0-9]{10,}$", re.IGNORECASE),
)


# ---------------------------------------------------------------------------
# CSS エスケープ
# ---------------------------------------------------------------------------

def css_escape(ident: str) -> str:
    """CSS 識別子をエスケープする（CSS.escape 相当）。"""
    out: list[str] = []
    for i, ch in enumerate(ident):
        code = ord(ch)
        if code == 0:
            out.append("�")
        elif 0x01 <= code <= 0x1F or code == 0x7F:
            out.append(f"\\{code:x} ")
        elif i == 0 and ch.isdigit() and ch.isascii():
            out.append(f"\\{code:x} ")
        elif i == 1 and ch.isdigit() and ch.isascii() and ident[0] == "-":
            out.append(f"\\{code:x} ")
        elif i == 0 and ch == "-" and len(ident) == 1:
            out.append("\\-")
        elif code >= 0x80 or ch in "-_" or (ch.isascii() and ch.isalnum()):
            out.append(ch)
        else:
            out.append(f"\\{ch}")
    return "".join(out)


def css_string(value: str) -> str:
    """属性セレクタ用のダブルクォート文字列を生成する。"""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def is_dynamic_id(element_id: str) -> bool:
    """自動生成されたように見える id か判定する。

    末尾に 3 桁以上の数字が続く、または全体が 10 文字以上の 16 進文字列の場合に True。
    """
    return any(p.search(element_id) for p in _DYNAMIC_ID_PATTERNS)


def is_volatile_class(name: str) -> bool:
    """状態を表すクラス（active, ng-* 等）か判定する。"""
    return name in VOLATILE_CLASSES or name.startswith("ng-")


def split_classes(el: HtmlElement) -> list[str]:
    return [c for c in el.get("class", "").split() if c]


# ---------------------------------------------------------------------------
# SelectorEngine 本体
# ---------------------------------------------------------------------------

class SelectorEngine:
    """要素のセレクタ候補を生成するエンジン。

    mode="recorder" では text / class 候補を生成しない。
    同一の DOM に対しては常に同じ結果を返す。

    使用例::

        engine = SelectorEngine(document)
        best = engine.best_selector(element)
    """

    def __init__(self, document: Document, mode: SelectorMode = "detector") -> None:
        self._document = document
        self._mode = mode

    @property
    def mode(self) -> SelectorMode:
        return self._mode

    # -------------------------------------------------------------------
    # パブリック API
    # -------------------------------------------------------------------

    def all_candidates(self, element: HtmlElement) -> list[SelectorCandidate]:
        """優先順位順のセレクタ候補リストを返す。末尾は必ず構造パス。"""
        candidates: list[SelectorCandidate] = []
        candidates.extend(self._test_id_candidates(element))

        role = self._role_candidate(element)
        if role is not None:
            candidates.append(role)

        id_candidate = self._id_candidate(element)
        if id_candidate is not None:
            candidates.append(id_candidate)

        name_candidate = self._name_candidate(element)
        if name_candidate is not None:
            candidates.append(name_candidate)

        if self._mode == "detector":
            text = self._text_candidate(element)
            if text is not None:
                candidates.append(text)
            candidates.extend(self._class_candidates(element))

        candidates.append(
            SelectorCandidate.of(SelectorKind.CSS, self.generate_path_selector(element))
        )
        return candidates

    def best_selector(self, element: HtmlElement) -> SelectorCandidate:
        """最もスコアの高い候補を返す。同点の場合はリストの先頭側が優先。"""
        return max(self.all_candidates(element), key=lambda c: c.score)

    def generate_path_selector(self, element: HtmlElement) -> str:
        """祖先をたどって構造パスセレクタを生成する。

        id を持つノードに到達した時点で打ち切る。最大 5 セグメント。
        同じタグの兄弟が複数ある場合は :nth-of-type() を付与する。
        """
        path: list[str] = []
        current: Optional[HtmlElement] = element

        while current is not None and isinstance(current.tag, str):
            segment = current.tag.lower()

            element_id = current.get("id")
            if element_id:
                path.insert(0, f"{segment}#{css_escape(element_id)}")
                break

            siblings = same_tag_siblings(current)
            if len(siblings) > 1:
                index = next(i for i, s in enumerate(siblings) if s is current) + 1
                segment += f":nth-of-type({index})"

            path.insert(0, segment)
            current = current.getparent()

            if len(path) >= MAX_PATH_DEPTH:
                break

        return " > ".join(path)

    # -------------------------------------------------------------------
    # 候補生成（優先順位順）
    # -------------------------------------------------------------------

    def _test_id_candidates(self, element: HtmlElement) -> list[SelectorCandidate]:
        candidates = []
        for attr in TEST_ID_ATTRIBUTES:
            value = element.get(attr)
            if not value:
                continue
            selector = f"[{attr}={css_string(value)}]"
            if self._is_unique(selector):
                candidates.append(
                    SelectorCandidate.of(SelectorKind.DATA_TESTID, selector, attribute=attr)
                )
        return candidates

    def _role_candidate(self, element: HtmlElement) -> Optional[SelectorCandidate]:
        role = element.get("role")
        aria_label = element.get("aria-label")

        if role and role in ROLE_ALLOW_LIST:
            name = aria_label or element_text(element)
            source = "explicit"
        elif element.tag == "button" or (
            element.tag == "input" and element.get("type", "").lower() == "submit"
        ):
            # 暗黙の button ロール
            role = "button"
            name = element_text(element) or element.get("value") or aria_label
            source = "implicit"
        else:
            return None

        if not name or len(name) >= MAX_NAME_LENGTH:
            return None

        token = RoleSelector(role=role, name=name).to_token()
        return SelectorCandidate.of(SelectorKind.ROLE, token, role=role, name=name, source=source)

    def _id_candidate(self, element: HtmlElement) -> Optional[SelectorCandidate]:
        element_id = element.get("id")
        if not element_id:
            return None
        if is_dynamic_id(element_id):
            logger.debug("動的 id のため除外: %s", element_id)
            return None
        selector = f"#{css_escape(element_id)}"
        if not self._is_unique(selector):
            return None
        return SelectorCandidate.of(SelectorKind.ID, selector)

    def _name_candidate(self, element: HtmlElement) -> Optional[SelectorCandidate]:
        name = element.get("name")
        if not name:
            return None
        selector = f"[name={css_string(name)}]"
        if not self._is_unique(selector):
            return None
        return SelectorCandidate.of(SelectorKind.NAME, selector)

    def _text_candidate(self, element: HtmlElement) -> Optional[SelectorCandidate]:
        if element.tag not in TEXT_CANDIDATE_TAGS:
            return None
        text = element_text(element)
        if not (0 < len(text) < MAX_NAME_LENGTH):
            return None
        # text トークンは文書順で最初に一致した要素に解決されるため、
        # その要素が自身である場合のみ採用する
        first = next(
            (el for el in self._document.elements() if element_text(el) == text),
            None,
        )
        if first is not element:
            return None
        return SelectorCandidate.of(SelectorKind.TEXT, TextSelector(text=text).to_token())

    def _class_candidates(self, element: HtmlElement) -> list[SelectorCandidate]:
        classes = [c for c in split_classes(element) if not is_volatile_class(c)]
        if not classes:
            return []

        candidates = []
        for cls in classes:
            selector = f".{css_escape(cls)}"
            if self._is_unique(selector):
                candidates.append(SelectorCandidate.of(SelectorKind.CLASS, selector))

        if len(classes) > 1:
            combined = "".join(f".{css_escape(c)}" for c in classes)
            if self._is_unique(combined):
                candidates.append(SelectorCandidate.of(SelectorKind.CLASS, combined))
        return candidates

    # -------------------------------------------------------------------
    # 内部ヘルパー
    # -------------------------------------------------------------------

    def _is_unique(self, selector: str) -> bool:
        """セレクタが文書内でちょうど 1 要素に一致するか。構文エラーは False。"""
        try:
            return len(self._document.query_all(selector)) == 1
        except InvalidSelectorError:
            logger.debug("セレクタ候補の検証に失敗しました: %s", selector)
            return False
