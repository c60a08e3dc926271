"""
ElementDetector のユニットテスト

テスト対象:
  - detect() の発見順・要素名・最良セレクタ
  - 不可視要素の除外と要素の重複除去
  - 重複名への連番付与、取得元がない場合のフォールバック名
  - クリックハンドラ属性・tabindex を持つ汎用要素の検出
  - アクティブなモーダルへの走査範囲の限定と modal_name
  - group_by_section / find_section
"""

from __future__ import annotations

import pytest

from pagecraft.dom.document import Document
from pagecraft.engine.detector import ElementDetector, find_section
from pagecraft.model.schema import ElementKind


def _detect_names(html: str) -> list[str]:
    return [d.name for d in ElementDetector(Document.from_html(html)).detect()]


# ===========================================================================
# テスト: detect
# ===========================================================================

class TestDetect:
    """detect のテスト。"""

    def test_login_form(self, login_document: Document) -> None:
        """ログインフォームの要素が分類順に検出されること。"""
        descriptors = ElementDetector(login_document).detect()

        assert [d.name for d in descriptors] == [
            "signInButton",
            "usernameInput",
            "passwordInput",
            "rememberCheckbox",
            "roleSelect",
            "homeLinkLink",
        ]
        button = descriptors[0]
        assert button.type == ElementKind.BUTTON
        assert button.selector == '[data-testid="login-btn"]'
        assert button.selector_candidate.score == 100
        assert button.text == "Sign in"
        assert button.tag == "button"

    def test_descriptor_fields(self, login_document: Document) -> None:
        """id / placeholder が記述子に含まれること。"""
        username = ElementDetector(login_document).detect()[1]
        assert username.id == "username"
        assert username.placeholder == "User name"
        assert username.selector == "#username"

    def test_hidden_elements_are_skipped(self) -> None:
        """不可視要素が検出されないこと。"""
        names = _detect_names(
            '<button>Visible</button><button style="display:none">Hidden</button>'
            '<div style="visibility:hidden"><a href="/">Gone</a></div>'
        )
        assert names == ["visibleButton"]

    def test_element_is_reported_once(self) -> None:
        """複数の走査パスに一致する要素が 1 回だけ検出されること。"""
        names = _detect_names('<button onclick="go()" style="cursor:pointer">Go</button>')
        assert names == ["goButton"]

    def test_duplicate_names_get_suffix(self) -> None:
        """同名の要素に連番が付与されること。"""
        names = _detect_names("<button>Save</button><form><button>Save</button></form>")
        assert names == ["saveButton", "saveButton2"]

    def test_fallback_names(self) -> None:
        """取得元がない要素に kind と連番の名前が付くこと。"""
        assert _detect_names("<button></button><button></button>") == ["button1", "button2"]

    def test_click_binding_div(self) -> None:
        """クリックハンドラ属性を持つ div が button として検出されること。"""
        doc = Document.from_html('<div onclick="go()">Go</div>')
        descriptors = ElementDetector(doc).detect()
        assert [(d.name, d.type) for d in descriptors] == [("goButton", ElementKind.BUTTON)]

    def test_tabindex_list_item(self) -> None:
        """tabindex を持つ li が検出されること。"""
        assert _detect_names('<ul><li tabindex="0">Item</li><li>Other</li></ul>') == ["itemElement"]

    def test_empty_document(self) -> None:
        """要素がない文書で空リストが返ること。"""
        assert ElementDetector(Document.from_html("")).detect() == []


# ===========================================================================
# テスト: モーダル
# ===========================================================================

class TestModal:
    """アクティブなモーダルのテスト。"""

    def test_scan_limited_to_modal(self) -> None:
        """表示中のモーダルがある場合にモーダル内のみが走査されること。"""
        names = _detect_names(
            "<button>Behind</button>"
            '<div role="dialog" aria-modal="true" aria-label="Confirm"><button>OK</button></div>'
        )
        assert names == ["okButton"]

    def test_hidden_modal_is_ignored(self) -> None:
        """非表示のモーダルは走査範囲に影響しないこと。"""
        names = _detect_names(
            "<button>Behind</button>"
            '<div role="alertdialog" style="display:none"><button>OK</button></div>'
        )
        assert names == ["behindButton"]

    def test_topmost_modal_wins(self) -> None:
        """複数のモーダルがある場合に文書順で最後のものが選ばれること。"""
        doc = Document.from_html(
            '<dialog open id="first"><button>A</button></dialog>'
            '<div class="modal show" id="second"><button>B</button></div>'
        )
        detector = ElementDetector(doc)
        assert detector.detect_active_modal().get("id") == "second"
        assert [d.name for d in detector.detect()] == ["bButton"]

    @pytest.mark.parametrize(
        "html, expected",
        [
            ('<div role="alertdialog" aria-label=" Delete item "><h2>x</h2></div>', "Delete item"),
            ('<div role="alertdialog" aria-labelledby="t"><h2 id="t">Settings</h2></div>', "Settings"),
            ('<div role="alertdialog"><p>x</p><h3>Warning</h3></div>', "Warning"),
            ('<div role="alertdialog"><p>x</p></div>', "modal"),
        ],
    )
    def test_modal_name(self, html: str, expected: str) -> None:
        """aria-label → aria-labelledby → 見出し → "modal" の順で名前が決まること。"""
        doc = Document.from_html(html)
        detector = ElementDetector(doc)
        assert detector.modal_name(detector.detect_active_modal()) == expected

    def test_no_modal(self, login_document: Document) -> None:
        """モーダルがない場合に None が返ること。"""
        assert ElementDetector(login_document).detect_active_modal() is None


# ===========================================================================
# テスト: セクション
# ===========================================================================

class TestSections:
    """group_by_section / find_section のテスト。"""

    def test_group_login_page(self, login_document: Document) -> None:
        """フォーム名とナビゲーションでグループ化されること。"""
        sections = ElementDetector(login_document).group_by_section()

        assert list(sections) == ["login", "navigation"]
        assert len(sections["login"]) == 5
        assert [d.name for d in sections["navigation"]] == ["homeLinkLink"]

    @pytest.mark.parametrize(
        "html, expected",
        [
            ('<header><button id="t">x</button></header>', "header"),
            ('<div class="site-footer"><button id="t">x</button></div>', "footer"),
            ('<div role="main"><button id="t">x</button></div>', "main"),
            ('<form id="signup"><button id="t">x</button></form>', "signup"),
            ("<form><button id='t'>x</button></form>", "form"),
            ('<div><button id="t">x</button></div>', "general"),
        ],
    )
    def test_find_section(self, html: str, expected: str) -> None:
        """祖先の role / タグ / id / class からセクション名が決まること。"""
        doc = Document.from_html(html)
        assert find_section(doc.query("#t")) == expected
