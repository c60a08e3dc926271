"""
SelectorEngine のユニットテスト

テスト対象:
  - 優先順位とスコアに従った候補の列挙と最良セレクタの選択
  - ユニーク性チェック（テスト用属性・id・name・class）
  - 動的 id の除外、アクセシブルネームの長さ制限
  - recorder モードでの text / class 候補の抑止
  - 構造パスセレクタ（id での打ち切り、nth-of-type、最大 5 セグメント）
  - css_escape / is_dynamic_id
  - Hypothesis によるプロパティテスト（パス深さ・決定性）
"""

from __future__ import annotations

import pytest
from hypothesis import given, settings

from pagecraft.dom.document import Document
from pagecraft.engine.selector import (
    MAX_PATH_DEPTH,
    SelectorEngine,
    css_escape,
    css_string,
    is_dynamic_id,
)
from pagecraft.model.selectors import SelectorKind
from conftest import nested_html


def _kinds(candidates) -> list[SelectorKind]:
    return [c.kind for c in candidates]


# ===========================================================================
# テスト: 候補の優先順位
# ===========================================================================

class TestCandidatePriority:
    """候補の列挙と最良セレクタのテスト。"""

    def test_test_id_wins(self, login_document: Document) -> None:
        """data-testid を持つ要素ではテスト用属性の候補が最良になること。"""
        engine = SelectorEngine(login_document)
        button = login_document.query("button")

        candidates = engine.all_candidates(button)
        assert _kinds(candidates) == [
            SelectorKind.DATA_TESTID,
            SelectorKind.ROLE,
            SelectorKind.TEXT,
            SelectorKind.CSS,
        ]
        best = engine.best_selector(button)
        assert best.value == '[data-testid="login-btn"]'
        assert best.score == 100

    def test_role_token_for_button(self, login_document: Document) -> None:
        """暗黙の button ロールから role トークンが生成されること。"""
        engine = SelectorEngine(login_document)
        role = next(
            c for c in engine.all_candidates(login_document.query("button"))
            if c.kind == SelectorKind.ROLE
        )
        assert role.value == 'role=button[name="Sign in"]'
        assert role.details["source"] == "implicit"

    def test_id_preferred_over_name(self, login_document: Document) -> None:
        """id と name を持つ要素では id が最良になること。"""
        engine = SelectorEngine(login_document)
        username = login_document.query("#username")

        assert _kinds(engine.all_candidates(username)) == [
            SelectorKind.ID,
            SelectorKind.NAME,
            SelectorKind.CSS,
        ]
        assert engine.best_selector(username).value == "#username"

    def test_duplicate_test_id_rejected(self) -> None:
        """複数要素に一致するテスト用属性は採用されないこと。"""
        doc = Document.from_html(
            '<div data-testid="row"><span id="a">1</span></div><div data-testid="row">2</div>'
        )
        engine = SelectorEngine(doc)
        first = doc.query_all('[data-testid="row"]')[0]
        assert SelectorKind.DATA_TESTID not in _kinds(engine.all_candidates(first))

    def test_dynamic_id_rejected(self) -> None:
        """動的 id が除外され、次の優先順位の候補が選ばれること。"""
        doc = Document.from_html('<button id="btn-12345">Save</button>')
        engine = SelectorEngine(doc)
        best = engine.best_selector(doc.query("button"))
        assert best.kind == SelectorKind.ROLE
        assert best.value == 'role=button[name="Save"]'

    def test_explicit_role_uses_aria_label(self) -> None:
        """明示的なロールでは aria-label がアクセシブルネームになること。"""
        doc = Document.from_html('<div role="link" aria-label="Docs">Read more</div>')
        best = SelectorEngine(doc).best_selector(doc.query("div[role]"))
        assert best.value == 'role=link[name="Docs"]'
        assert best.details["source"] == "explicit"

    def test_role_outside_allow_list_ignored(self) -> None:
        """許可リスト外のロールでは role 候補が生成されないこと。"""
        doc = Document.from_html('<div role="tab">Tab</div>')
        candidates = SelectorEngine(doc).all_candidates(doc.query("div[role]"))
        assert SelectorKind.ROLE not in _kinds(candidates)

    def test_long_accessible_name_rejected(self) -> None:
        """50 文字以上のアクセシブルネームは採用されないこと。"""
        doc = Document.from_html(f"<button>{'x' * 50}</button>")
        candidates = SelectorEngine(doc).all_candidates(doc.query("button"))
        assert SelectorKind.ROLE not in _kinds(candidates)
        assert SelectorKind.TEXT not in _kinds(candidates)

    def test_text_candidate_must_resolve_to_self(self) -> None:
        """同じテキストの要素が先にある場合は text 候補が採用されないこと。"""
        doc = Document.from_html(
            "<p><span>Hello</span> there</p><section><span>Hello</span> again</section>"
        )
        engine = SelectorEngine(doc)
        first, second = doc.query_all("span")

        assert SelectorKind.TEXT in _kinds(engine.all_candidates(first))
        assert SelectorKind.TEXT not in _kinds(engine.all_candidates(second))

    def test_class_candidates(self) -> None:
        """ユニークなクラスの組み合わせが候補になり、状態クラスは除外されること。"""
        doc = Document.from_html(
            '<ul><li class="a b active"></li><li class="a"></li><li class="b c"></li></ul>'
        )
        engine = SelectorEngine(doc)
        classes = [
            c.value for c in engine.all_candidates(doc.query("li"))
            if c.kind == SelectorKind.CLASS
        ]
        assert classes == [".a.b"]

    def test_recorder_mode_skips_text_and_class(self) -> None:
        """recorder モードでは text / class 候補が生成されないこと。"""
        doc = Document.from_html('<div><span class="label">Hello</span><span>World</span></div>')
        span = doc.query("span")

        detector_kinds = _kinds(SelectorEngine(doc, mode="detector").all_candidates(span))
        recorder = SelectorEngine(doc, mode="recorder")
        assert SelectorKind.TEXT in detector_kinds
        assert SelectorKind.CLASS in detector_kinds
        assert _kinds(recorder.all_candidates(span)) == [SelectorKind.CSS]
        assert recorder.best_selector(span).value == "html > body > div > span:nth-of-type(1)"

    def test_invalid_selector_is_not_unique(self, login_document: Document) -> None:
        """構文エラーになるセレクタはユニークでないと判定されること。"""
        engine = SelectorEngine(login_document)
        assert engine._is_unique("input[") is False


# ===========================================================================
# テスト: 構造パス
# ===========================================================================

class TestPathSelector:
    """generate_path_selector のテスト。"""

    def test_stops_at_id(self) -> None:
        """id を持つ祖先でパスが打ち切られること。"""
        doc = Document.from_html('<div id="root"><ul><li>a</li><li>b</li></ul></div>')
        second = doc.query_all("li")[1]
        path = SelectorEngine(doc).generate_path_selector(second)
        assert path == "div#root > ul > li:nth-of-type(2)"
        assert doc.query_all(path) == [second]

    def test_max_five_segments(self) -> None:
        """深い要素でもパスが 5 セグメントまでであること。"""
        doc = Document.from_html("<div>" * 8 + "<b>x</b>" + "</div>" * 8)
        path = SelectorEngine(doc).generate_path_selector(doc.query("b"))
        assert path == "div > div > div > div > b"

    def test_id_is_escaped(self) -> None:
        """数字で始まる id がエスケープされること。"""
        doc = Document.from_html('<div id="1st"><b>x</b></div>')
        path = SelectorEngine(doc).generate_path_selector(doc.query("b"))
        assert path == "div#\\31 st > b"
        assert doc.query_all(path) == [doc.query("b")]

    @settings(max_examples=50, deadline=None)
    @given(nested_html())
    def test_path_depth_and_match(self, html: str) -> None:
        """任意の入れ子でパスが 5 セグメント以下で、対象要素に一致すること。"""
        doc = Document.from_html(html)
        target = doc.query(".target")
        path = SelectorEngine(doc).generate_path_selector(target)

        assert len(path.split(" > ")) <= MAX_PATH_DEPTH
        assert target in doc.query_all(path)

    @settings(max_examples=50, deadline=None)
    @given(nested_html())
    def test_best_selector_is_deterministic(self, html: str) -> None:
        """同じ DOM に対して常に同じ最良セレクタが返ること。"""
        doc = Document.from_html(html)
        target = doc.query(".target")
        first = SelectorEngine(doc).best_selector(target)
        second = SelectorEngine(doc).best_selector(target)
        assert first == second


# ===========================================================================
# テスト: ヘルパー
# ===========================================================================

class TestHelpers:
    """css_escape / css_string / is_dynamic_id のテスト。"""

    @pytest.mark.parametrize(
        "ident, expected",
        [
            ("login", "login"),
            ("a.b", "a\\.b"),
            ("1abc", "\\31 abc"),
            ("-1a", "-\\31 a"),
            ("-", "\\-"),
            ("a b", "a\\ b"),
        ],
    )
    def test_css_escape(self, ident: str, expected: str) -> None:
        """CSS.escape 相当のエスケープが行われること。"""
        assert css_escape(ident) == expected

    def test_css_string(self) -> None:
        """属性値の引用符とバックスラッシュがエスケープされること。"""
        assert css_string('say "hi"\\') == '"say \\"hi\\"\\\\"'

    @pytest.mark.parametrize(
        "element_id, dynamic",
        [
            ("user-123", True),
            ("user-12", False),
            ("deadbeef01", True),
            ("DEADBEEF0", False),
            ("header", False),
            ("login-btn", False),
        ],
    )
    def test_is_dynamic_id(self, element_id: str, dynamic: bool) -> None:
        """末尾 3 桁以上の数字・10 文字以上の 16 進文字列が動的と判定されること。"""
        assert is_dynamic_id(element_id) is dynamic
