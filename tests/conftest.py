"""
テスト共通フィクスチャ・Hypothesis ストラテジー定義

全テストモジュールで共有するフィクスチャとデータ生成器を提供する。
ブラウザは起動せず、lxml ベースの Document と DocumentDriver で代替する。
"""

from pathlib import Path

import pytest
from hypothesis import strategies as st

from pagecraft.core.drivers import DocumentDriver
from pagecraft.dom.document import Document
from pagecraft.model.schema import Step

# ---------------------------------------------------------------------------
# サンプル HTML
# ---------------------------------------------------------------------------

LOGIN_HTML = """\
<html>
<head><title>Login</title></head>
<body>
  <nav class="top-nav">
    <a href="/home" id="home-link">Home</a>
  </nav>
  <main>
    <form name="login">
      <input type="text" id="username" name="username" placeholder="User name">
      <input type="password" id="password" name="password">
      <select id="role" name="role">
        <option value="user">User</option>
        <option value="admin">Admin</option>
      </select>
      <input type="checkbox" id="remember">
      <button type="submit" data-testid="login-btn">Sign in</button>
    </form>
    <p id="message" style="display: none">Welcome</p>
  </main>
</body>
</html>
"""


# ---------------------------------------------------------------------------
# pytest フィクスチャ
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """一時ディレクトリを提供する pytest フィクスチャ。"""
    return tmp_path


@pytest.fixture
def login_html() -> str:
    """ログインフォームのサンプル HTML。"""
    return LOGIN_HTML


@pytest.fixture
def login_document() -> Document:
    """ログインフォームの Document。"""
    return Document.from_html(LOGIN_HTML, url="http://localhost:3000/login")


@pytest.fixture
def login_driver(login_document: Document) -> DocumentDriver:
    """ログインフォームを操作する DocumentDriver。"""
    return DocumentDriver(login_document)


@pytest.fixture
def login_steps() -> list[Step]:
    """ログインフォームを操作するステップ列。"""
    return [
        Step(action="fill", selector="#username", value="alice", element_name="usernameInput"),
        Step(action="fill", selector="#password", value="secret", element_name="passwordInput"),
        Step(action="click", selector='[data-testid="login-btn"]', element_name="loginBtnButton"),
    ]


# ---------------------------------------------------------------------------
# Hypothesis ストラテジー
# ---------------------------------------------------------------------------

_TAGS = ("div", "span", "section", "article")


def tag_names() -> st.SearchStrategy[str]:
    """コンテナ要素のタグ名を生成するストラテジー。"""
    return st.sampled_from(_TAGS)


def attribute_values() -> st.SearchStrategy[str]:
    """属性値（英数字・記号・空白を含む）を生成するストラテジー。"""
    return st.text(
        alphabet=st.characters(min_codepoint=0x20, max_codepoint=0x7E),
        min_size=0,
        max_size=40,
    )


@st.composite
def nested_html(draw: st.DrawFn) -> str:
    """任意の深さ・兄弟数を持つ入れ子 HTML を生成するストラテジー。

    最も深い位置に <b class="target"> を 1 つ置く。
    """
    depth = draw(st.integers(min_value=1, max_value=12))
    html = '<b class="target">x</b>'
    for _ in range(depth):
        tag = draw(tag_names())
        before = draw(st.integers(min_value=0, max_value=2))
        after = draw(st.integers(min_value=0, max_value=2))
        html = f"<{tag}>" + f"<{tag}></{tag}>" * before + html + f"<{tag}></{tag}>" * after + f"</{tag}>"
    return f"<html><body>{html}</body></html>"
