"""
セレクタモデルのユニットテスト

テスト対象:
  - SelectorCandidate のスコア決定（kind から再計算）
  - coerce_candidate による旧形式セレクタの変換
  - RoleSelector / TextSelector の to_token
  - parse_selector によるトークン解析（旧形式 text= を含む）
"""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from pagecraft.model.selectors import (
    SELECTOR_SCORES,
    CssSelector,
    RoleSelector,
    SelectorCandidate,
    SelectorKind,
    TextSelector,
    coerce_candidate,
    parse_selector,
)


# ===========================================================================
# テスト: SelectorCandidate
# ===========================================================================

class TestSelectorCandidate:
    """SelectorCandidate のテスト。"""

    @pytest.mark.parametrize(
        "kind, score",
        [
            (SelectorKind.DATA_TESTID, 100),
            (SelectorKind.ROLE, 80),
            (SelectorKind.ID, 60),
            (SelectorKind.NAME, 50),
            (SelectorKind.TEXT, 40),
            (SelectorKind.CLASS, 20),
            (SelectorKind.CSS, 10),
            (SelectorKind.XPATH, 5),
        ],
    )
    def test_score_table(self, kind: SelectorKind, score: int) -> None:
        """種別ごとの固定スコアが設定されること。"""
        assert SelectorCandidate.of(kind, "x").score == score
        assert SELECTOR_SCORES[kind] == score

    def test_given_score_is_ignored(self) -> None:
        """入力の score が kind のスコアで上書きされること。"""
        candidate = SelectorCandidate(kind="id", value="#a", score=999)
        assert candidate.score == 60

    def test_candidate_is_frozen(self) -> None:
        """候補が変更不可であること。"""
        candidate = SelectorCandidate.of(SelectorKind.ID, "#a")
        with pytest.raises(Exception):
            candidate.value = "#b"

    def test_to_selector(self) -> None:
        """to_selector でタグ付きセレクタに変換されること。"""
        candidate = SelectorCandidate.of(SelectorKind.ROLE, 'role=button[name="OK"]')
        assert candidate.to_selector() == RoleSelector(role="button", name="OK")


# ===========================================================================
# テスト: coerce_candidate
# ===========================================================================

class TestCoerceCandidate:
    """coerce_candidate の旧形式変換のテスト。"""

    def test_string_becomes_legacy_css(self) -> None:
        """文字列が legacy フラグ付きの css 候補に変換されること。"""
        candidate = coerce_candidate("#login")
        assert candidate.kind == SelectorKind.CSS
        assert candidate.value == "#login"
        assert candidate.is_legacy

    def test_candidate_dict_is_validated(self) -> None:
        """kind を持つ辞書がそのまま検証されること。"""
        candidate = coerce_candidate({"kind": "data-testid", "value": '[data-testid="x"]'})
        assert candidate.kind == SelectorKind.DATA_TESTID
        assert candidate.score == 100
        assert not candidate.is_legacy

    def test_type_value_dict(self) -> None:
        """{type, value} 形式の辞書が対応する種別に変換されること。"""
        candidate = coerce_candidate({"type": "id", "value": "#a"})
        assert candidate.kind == SelectorKind.ID
        assert candidate.is_legacy

    def test_unknown_type_falls_back_to_css(self) -> None:
        """未知の type が css として扱われること。"""
        candidate = coerce_candidate({"type": "weird", "value": ".a"})
        assert candidate.kind == SelectorKind.CSS

    def test_selector_dict(self) -> None:
        """{selector} 形式の辞書が css 候補に変換されること。"""
        candidate = coerce_candidate({"selector": "form > button"})
        assert candidate.kind == SelectorKind.CSS
        assert candidate.value == "form > button"

    @pytest.mark.parametrize("value", [None, 42, {}, {"type": "id"}])
    def test_unconvertible_raises(self, value) -> None:
        """変換できない値で ValueError が送出されること。"""
        with pytest.raises(ValueError):
            coerce_candidate(value)


# ===========================================================================
# テスト: タグ付きセレクタ
# ===========================================================================

class TestParseSelector:
    """parse_selector / to_token のテスト。"""

    def test_role_token(self) -> None:
        """role トークンが RoleSelector に解析されること。"""
        selector = parse_selector('role=button[name="Sign in"]')
        assert selector == RoleSelector(role="button", name="Sign in")
        assert selector.to_token() == 'role=button[name="Sign in"]'

    def test_quoted_text_token(self) -> None:
        """引用符付き text トークンが TextSelector に解析されること。"""
        assert parse_selector('text="Go"') == TextSelector(text="Go")

    def test_legacy_text_token(self) -> None:
        """旧形式の text=<text> が TextSelector に解析されること。"""
        assert parse_selector("text=Go home") == TextSelector(text="Go home")

    def test_css_passthrough(self) -> None:
        """トークン以外の文字列が CssSelector として扱われること。"""
        selector = parse_selector("#login > button")
        assert isinstance(selector, CssSelector)
        assert selector.to_token() == "#login > button"

    def test_quotes_are_escaped(self) -> None:
        """名前に含まれる引用符がエスケープされ、解析で復元されること。"""
        selector = RoleSelector(role="link", name='Say "hi"')
        token = selector.to_token()
        assert token == 'role=link[name="Say \\"hi\\""]'
        assert parse_selector(token) == selector

    @given(st.text(min_size=1, max_size=30))
    def test_text_token_round_trip(self, text: str) -> None:
        """任意のテキストで to_token → parse_selector が元に戻ること。"""
        assert parse_selector(TextSelector(text=text).to_token()) == TextSelector(text=text)
