"""
Playwright ジェネレータのユニットテスト

テスト対象:
  - PlaywrightPythonGenerator: ページクラス・テスト関数・付属ファイル
  - PlaywrightJavaScriptGenerator / PlaywrightTypeScriptGenerator: ページクラスと test.describe
"""

from __future__ import annotations

import json

import pytest

from pagecraft.codegen.playwright import (
    PlaywrightJavaScriptGenerator,
    PlaywrightPythonGenerator,
    PlaywrightTypeScriptGenerator,
)
from pagecraft.model.schema import PageObject, Project, Step, StepAssertion, TestSpec


def _make_page() -> PageObject:
    page = PageObject(name="LoginPage", url="https://example.com/login")
    page.add_element("usernameInput", "#username", "input")
    page.add_element("loginButton", "#login", "button")
    return page


def _make_login_steps(value: str = "alice") -> list[Step]:
    return [
        Step(action="fill", selector="#username", value=value, page_name="LoginPage", element_name="usernameInput"),
        Step(action="click", selector="#login", page_name="LoginPage", element_name="loginButton"),
    ]


def _make_spec(*, data: list[dict[str, str]] | None = None) -> TestSpec:
    spec = TestSpec(name="LoginTest", page_names=["LoginPage"])
    value = "${user}" if data else "alice"
    spec.add_test_case("valid login", _make_login_steps(value), data=data)
    return spec


# ===========================================================================
# テスト: Python ページオブジェクト
# ===========================================================================

class TestPythonPage:
    """PlaywrightPythonGenerator.render_page のテスト。"""

    def test_auto_methods(self) -> None:
        """要素属性と自動メソッドを持つクラスが生成されること。"""
        code = PlaywrightPythonGenerator().render_page(_make_page())

        assert code.startswith("from playwright.sync_api import Page\n")
        assert "class LoginPage:" in code
        assert '    URL = "https://example.com/login"' in code
        assert '        self.username_input = "#username"' in code
        assert "    def fill_username_input(self, value: str) -> None:\n" \
               "        self.page.fill(self.username_input, value)" in code
        assert "    def click_login_button(self) -> None:\n" \
               "        self.page.click(self.login_button)" in code

    def test_custom_methods(self) -> None:
        """カスタムメソッドが引数付きで生成され、自動メソッドは生成されないこと。"""
        page = _make_page()
        page.add_method(
            "login",
            [
                Step(action="fill", selector="#username", value="${user}"),
                Step(action="click", selector="#login"),
            ],
        )
        code = PlaywrightPythonGenerator().render_page(page)

        assert "    def login(self, user) -> None:" in code
        assert "        self.page.fill(self.username_input, user)" in code
        assert "        self.page.click(self.login_button)" in code
        assert "fill_username_input" not in code

    def test_empty_custom_method(self) -> None:
        """ステップのないカスタムメソッドに pass が出力されること。"""
        page = PageObject(name="HomePage")
        page.add_method("noop", [])
        assert "    def noop(self) -> None:\n        pass" in PlaywrightPythonGenerator().render_page(page)


# ===========================================================================
# テスト: Python テスト
# ===========================================================================

class TestPythonTest:
    """PlaywrightPythonGenerator.render_test のテスト。"""

    def test_uses_page_methods(self) -> None:
        """ページオブジェクトのメソッド呼び出しが生成されること。"""
        code = PlaywrightPythonGenerator().render_test(_make_spec(), {"LoginPage": _make_page()})

        assert "from playwright.sync_api import Page, expect" in code
        assert "from pages.login_page import LoginPage" in code
        assert "def test_valid_login(page: Page) -> None:" in code
        assert "    login_page = LoginPage(page)" in code
        assert '    login_page.fill_username_input("alice")' in code
        assert "    login_page.click_login_button()" in code
        assert "import pytest" not in code

    def test_data_driven(self) -> None:
        """データ行が parametrize として出力され値が data 参照になること。"""
        spec = _make_spec(data=[{"user": "alice"}, {"user": "bob"}])
        code = PlaywrightPythonGenerator().render_test(spec, {"LoginPage": _make_page()})

        assert code.startswith("import pytest\n")
        assert '@pytest.mark.parametrize("data", [{"user": "alice"}, {"user": "bob"}])' in code
        assert "def test_valid_login(page: Page, data: dict) -> None:" in code
        assert '    login_page.fill_username_input(data["user"])' in code

    def test_raw_steps(self) -> None:
        """ページオブジェクトに対応しないステップが直接の操作になること。"""
        spec = TestSpec(name="Smoke")
        spec.add_test_case(
            "ホーム",
            [
                Step(action="navigate", value="https://example.com"),
                Step(action="click", selector='role=link[name="About"]', annotations=["dynamic"]),
                Step(action="select", selector="#country", value="jp"),
                Step(action="assertion", selector="#msg", assertion_type="toHaveText", value="Welcome"),
                Step(action="screenshot", value="home.png"),
            ],
        )
        code = PlaywrightPythonGenerator().render_test(spec, {})

        assert "def test_case_1(page: Page) -> None:" in code
        assert '    page.goto("https://example.com")' in code
        assert "    # dynamic" in code
        assert '    page.click("role=link[name=\\"About\\"]")' in code
        assert '    page.select_option("#country", "jp")' in code
        assert '    expect(page.locator("#msg")).to_have_text("Welcome")' in code
        assert '    page.screenshot(path="home.png")' in code

    def test_step_assertions(self) -> None:
        """ステップに付いたアサーションが expect として出力されること。"""
        spec = TestSpec(name="Smoke")
        spec.add_test_case(
            "c",
            [Step(action="click", selector="#go", assertions=[StepAssertion(type="toBeEnabled")])],
        )
        code = PlaywrightPythonGenerator().render_test(spec, {})
        assert '    page.click("#go")\n    expect(page.locator("#go")).to_be_enabled()' in code

    def test_consecutive_fills_coalesced(self) -> None:
        """同じ要素への連続した fill が最後の値の 1 行になること。"""
        spec = TestSpec(name="Smoke")
        spec.add_test_case(
            "c",
            [
                Step(action="fill", selector="#q", value="a"),
                Step(action="fill", selector="#q", value="ab"),
            ],
        )
        code = PlaywrightPythonGenerator().render_test(spec, {})
        assert code.count("page.fill(") == 1
        assert 'page.fill("#q", "ab")' in code

    def test_duplicate_case_names(self) -> None:
        """snake_case で衝突するテスト関数名に連番が付くこと。"""
        spec = TestSpec(name="Smoke")
        spec.add_test_case("Login", [])
        spec.add_test_case("login", [])
        code = PlaywrightPythonGenerator().render_test(spec, {})
        assert "def test_login(page: Page)" in code
        assert "def test_login_2(page: Page)" in code


# ===========================================================================
# テスト: Python 付属ファイル
# ===========================================================================

class TestPythonSupportFiles:
    """PlaywrightPythonGenerator のパスと付属ファイルのテスト。"""

    def test_paths(self) -> None:
        """ページとテストの出力パスが snake_case になること。"""
        generator = PlaywrightPythonGenerator()
        assert generator.page_path(_make_page()) == "pages/login_page.py"
        assert generator.test_path(_make_spec()) == "tests/test_login_test.py"

    def test_support_files(self) -> None:
        """pytest.ini と requirements.txt が含まれること。"""
        files = PlaywrightPythonGenerator().support_files(Project(name="demo"))
        assert "testpaths = tests" in files["pytest.ini"]
        assert "pytest-playwright" in files["requirements.txt"]
        assert files["run_tests.sh"].startswith("#!/bin/bash")


# ===========================================================================
# テスト: JavaScript / TypeScript
# ===========================================================================

class TestJavaScript:
    """PlaywrightJavaScriptGenerator のテスト。"""

    def test_page(self) -> None:
        """CommonJS のページクラスが生成されること。"""
        code = PlaywrightJavaScriptGenerator().render_page(_make_page())

        assert "class LoginPage {" in code
        assert "    this.usernameInput = '#username';" in code
        assert "  async fillUsernameInput(value) {\n    await this.page.fill(this.usernameInput, value);" in code
        assert "  async clickLoginButton() {" in code
        assert code.rstrip().endswith("module.exports = LoginPage;")

    def test_test(self) -> None:
        """test.describe とページメソッドの呼び出しが生成されること。"""
        code = PlaywrightJavaScriptGenerator().render_test(_make_spec(), {"LoginPage": _make_page()})

        assert "const { test, expect } = require('@playwright/test');" in code
        assert "const LoginPage = require('../pages/LoginPage');" in code
        assert "test.describe('LoginTest', () => {" in code
        assert "  test('valid login', async ({ page }) => {" in code
        assert "    const loginPage = new LoginPage(page);" in code
        assert "    await loginPage.fillUsernameInput('alice');" in code
        assert "    await loginPage.clickLoginButton();" in code

    def test_data_driven(self) -> None:
        """データ行ごとのループと data 参照が生成されること。"""
        spec = _make_spec(data=[{"user": "alice"}])
        code = PlaywrightJavaScriptGenerator().render_test(spec, {"LoginPage": _make_page()})

        assert '  const validLoginData = [{"user": "alice"}];' in code
        assert "  for (const data of validLoginData) {" in code
        assert "      await loginPage.fillUsernameInput(data.user);" in code

    def test_package_json(self) -> None:
        """package.json にプロジェクト名と依存関係が出力されること。"""
        files = PlaywrightJavaScriptGenerator().support_files(
            Project(name="My Demo", language="javascript")
        )
        package = json.loads(files["package.json"])
        assert package["name"] == "my-demo"
        assert "@playwright/test" in package["devDependencies"]
        assert "typescript" not in package["devDependencies"]
        assert "playwright.config.js" in files


class TestTypeScript:
    """PlaywrightTypeScriptGenerator のテスト。"""

    def test_page(self) -> None:
        """型付きのページクラスが生成されること。"""
        code = PlaywrightTypeScriptGenerator().render_page(_make_page())

        assert code.startswith("import { Page } from '@playwright/test';")
        assert "export class LoginPage {" in code
        assert "  readonly usernameInput = '#username';" in code
        assert "  constructor(private page: Page) {}" in code
        assert "  async fillUsernameInput(value: string) {" in code
        assert "module.exports" not in code

    def test_test_imports(self) -> None:
        """ES モジュールの import が生成されること。"""
        code = PlaywrightTypeScriptGenerator().render_test(_make_spec(), {"LoginPage": _make_page()})
        assert "import { test, expect } from '@playwright/test';" in code
        assert "import { LoginPage } from '../pages/LoginPage';" in code

    @pytest.mark.parametrize(
        "generator, page_path, test_path",
        [
            (PlaywrightJavaScriptGenerator(), "pages/LoginPage.js", "tests/LoginTest.spec.js"),
            (PlaywrightTypeScriptGenerator(), "pages/LoginPage.ts", "tests/LoginTest.spec.ts"),
        ],
    )
    def test_paths(self, generator, page_path: str, test_path: str) -> None:
        """拡張子に応じた出力パスになること。"""
        assert generator.page_path(_make_page()) == page_path
        assert generator.test_path(_make_spec()) == test_path

    def test_support_files(self) -> None:
        """TypeScript の設定ファイルと依存関係が出力されること。"""
        files = PlaywrightTypeScriptGenerator().support_files(
            Project(name="demo", language="typescript")
        )
        assert "export default config;" in files["playwright.config.ts"]
        assert "typescript" in json.loads(files["package.json"])["devDependencies"]
