"""
Playwright ジェネレータ — Python / JavaScript / TypeScript

ページオブジェクトとテストスペックを Playwright のソースコードに変換する。
コードは行リストとして組み立て、最後に改行で連結する。

生成物:
  - Python: pytest-playwright（sync API）のページクラスとテスト関数
  - JavaScript / TypeScript: @playwright/test のページクラスと test.describe
"""

from __future__ import annotations

import json
import logging
from typing import Mapping, Optional

from ..engine.naming import to_camel_case, to_pascal_case, to_snake_case
from ..model.schema import Language, PageObject, Project, Step, TestSpec, Tool
from ..recorder.collector import coalesce_fills
from .base import (
    auto_methods,
    escape_single,
    escape_string,
    extract_params,
    find_page_method,
    js_value,
    python_value,
    unique_identifier,
)

logger = logging.getLogger(__name__)

_PY_ASSERTIONS = {
    "toBeVisible": "to_be_visible",
    "toBeEnabled": "to_be_enabled",
    "toHaveText": "to_have_text",
}

_PLAYWRIGHT_CONFIG_JS = """module.exports = {
  testDir: './tests',
  timeout: 30000,
  use: {
    headless: false,
    viewport: { width: 1280, height: 720 },
    screenshot: 'only-on-failure',
  },
};
"""

_PLAYWRIGHT_CONFIG_TS = """import { PlaywrightTestConfig } from '@playwright/test';

const config: PlaywrightTestConfig = {
  testDir: './tests',
  timeout: 30000,
  use: {
    headless: false,
    viewport: { width: 1280, height: 720 },
    screenshot: 'only-on-failure',
  },
};

export default config;
"""

_NODE_RUN_SH = """#!/bin/bash
# Install dependencies
npm install
# Install browsers
npx playwright install
# Run tests
npx playwright test
"""

_NODE_RUN_BAT = """@echo off
REM Install dependencies
call npm install
REM Install browsers
call npx playwright install
REM Run tests
call npx playwright test
"""


def _package_name(project: Project) -> str:
    return "-".join(project.name.lower().split()) or "automation-tests"


# ---------------------------------------------------------------------------
# Python
# ---------------------------------------------------------------------------

class PlaywrightPythonGenerator:
    """Playwright + pytest（sync API）のコードジェネレータ。"""

    tool = Tool.PLAYWRIGHT
    language = Language.PYTHON
    file_extension = ".py"

    # ----- パス -----

    def page_path(self, page: PageObject) -> str:
        return f"pages/{to_snake_case(page.name) or 'page'}.py"

    def test_path(self, test_spec: TestSpec) -> str:
        return f"tests/test_{to_snake_case(test_spec.name) or 'spec'}.py"

    # ----- ページオブジェクト -----

    def render_page(self, page: PageObject) -> str:
        class_name = to_pascal_case(page.name) or "Page"
        lines: list[str] = [
            "from playwright.sync_api import Page",
            "",
            "",
            f"class {class_name}:",
        ]
        if page.url:
            lines.append(f'    URL = "{escape_string(page.url)}"')
            lines.append("")
        lines.append("    def __init__(self, page: Page) -> None:")
        lines.append("        self.page = page")
        for name, element in page.elements.items():
            lines.append(f'        self.{to_snake_case(name)} = "{escape_string(element.selector.value)}"')

        if page.methods:
            for method in page.methods:
                params = extract_params(method.steps)
                signature = ", ".join(["self"] + params)
                lines.append("")
                lines.append(f"    def {to_snake_case(method.name)}({signature}) -> None:")
                body = [
                    line
                    for step in coalesce_fills(method.steps)
                    for line in self._step_lines(step, "self.page", {}, "params", page)
                ]
                lines.extend(f"        {line}" for line in body or ["pass"])
        else:
            for auto in auto_methods(page):
                attr = f"self.{to_snake_case(auto.element)}"
                lines.append("")
                if auto.takes_value:
                    lines.append(f"    def {to_snake_case(auto.name)}(self, value: str) -> None:")
                else:
                    lines.append(f"    def {to_snake_case(auto.name)}(self) -> None:")
                call = {
                    "click": f"self.page.click({attr})",
                    "fill": f"self.page.fill({attr}, value)",
                    "select": f"self.page.select_option({attr}, value)",
                    "check": f"self.page.check({attr})",
                    "uncheck": f"self.page.uncheck({attr})",
                }[auto.operation]
                lines.append(f"        {call}")

        lines.append("")
        return "\n".join(lines)

    # ----- テスト -----

    def render_test(self, test_spec: TestSpec, pages: Mapping[str, PageObject]) -> str:
        has_data = any(tc.data for tc in test_spec.test_cases)
        lines: list[str] = []
        if has_data:
            lines.append("import pytest")
        lines.append("from playwright.sync_api import Page, expect")
        if pages:
            lines.append("")
            for page in pages.values():
                lines.append(
                    f"from pages.{to_snake_case(page.name)} import {to_pascal_case(page.name)}"
                )

        used: set[str] = set()
        for index, test_case in enumerate(test_spec.test_cases, start=1):
            func_name = unique_identifier(
                f"test_{to_snake_case(test_case.name) or f'case_{index}'}", used
            )
            lines.append("")
            lines.append("")
            scope: Optional[str] = None
            if test_case.data:
                scope = "data"
                rows = ", ".join(json.dumps(row, ensure_ascii=False) for row in test_case.data)
                lines.append(f'@pytest.mark.parametrize("data", [{rows}])')
                lines.append(f"def {func_name}(page: Page, data: dict) -> None:")
            else:
                lines.append(f"def {func_name}(page: Page) -> None:")
            lines.append(f'    """{escape_string(test_case.name)}"""')

            for page in pages.values():
                lines.append(f"    {to_snake_case(page.name)} = {to_pascal_case(page.name)}(page)")
            for step in coalesce_fills(test_case.steps):
                lines.extend(f"    {line}" for line in self._step_lines(step, "page", pages, scope))

        lines.append("")
        return "\n".join(lines)

    def _step_lines(
        self,
        step: Step,
        page_ref: str,
        pages: Mapping[str, PageObject],
        scope: Optional[str],
        owner: Optional[PageObject] = None,
    ) -> list[str]:
        lines: list[str] = []
        if step.annotations:
            lines.append(f"# {', '.join(step.annotations)}")

        value = python_value(step.value, scope)
        match = find_page_method(step, pages)
        if match is not None:
            page_var = to_snake_case(match.page_name)
            method = to_snake_case(match.method_name)
            args = value if step.action in ("fill", "select") else ""
            lines.append(f"{page_var}.{method}({args})")
        else:
            target = self._target(step.selector, owner)
            if step.action == "click":
                lines.append(f"{page_ref}.click({target})")
            elif step.action == "fill":
                lines.append(f"{page_ref}.fill({target}, {value})")
            elif step.action == "select":
                lines.append(f"{page_ref}.select_option({target}, {value})")
            elif step.action == "navigate":
                lines.append(f"{page_ref}.goto({python_value(step.value or step.url, scope)})")
            elif step.action == "screenshot":
                lines.append(f'{page_ref}.screenshot(path="{escape_string(step.value or "screenshot.png")}")')
            elif step.action == "assertion":
                lines.append(self._assertion(page_ref, target, step.assertion_type, value))

        if step.selector:
            target = self._target(step.selector, owner)
            for assertion in step.assertions:
                expected = python_value(assertion.expected, scope)
                lines.append(self._assertion(page_ref, target, assertion.type, expected))
        return lines

    @staticmethod
    def _assertion(page_ref: str, target: str, kind: Optional[str], expected: str) -> str:
        method = _PY_ASSERTIONS.get(kind or "toBeVisible", "to_be_visible")
        args = expected if kind == "toHaveText" else ""
        return f"expect({page_ref}.locator({target})).{method}({args})"

    @staticmethod
    def _target(selector: str, owner: Optional[PageObject]) -> str:
        if owner is not None:
            name = owner.find_element_by_selector(selector)
            if name is not None:
                return f"self.{to_snake_case(name)}"
        return f'"{escape_string(selector)}"'

    # ----- 付属ファイル -----

    def support_files(self, project: Project) -> dict[str, str]:
        return {
            "pages/__init__.py": "",
            project.config_file: "[pytest]\ntestpaths = tests\npythonpath = .\naddopts = --browser chromium\n",
            "requirements.txt": "playwright>=1.40\npytest>=7.4\npytest-playwright>=0.4\n",
            "run_tests.sh": "#!/bin/bash\npip install -r requirements.txt\nplaywright install\npytest\n",
            "run_tests.bat": "@echo off\npip install -r requirements.txt\nplaywright install\npytest\n",
        }


# ---------------------------------------------------------------------------
# JavaScript / TypeScript
# ---------------------------------------------------------------------------

class PlaywrightJavaScriptGenerator:
    """@playwright/test（JavaScript）のコードジェネレータ。"""

    tool = Tool.PLAYWRIGHT
    language = Language.JAVASCRIPT
    file_extension = ".js"
    typed = False

    def page_path(self, page: PageObject) -> str:
        return f"pages/{to_pascal_case(page.name) or 'Page'}{self.file_extension}"

    def test_path(self, test_spec: TestSpec) -> str:
        return f"tests/{to_pascal_case(test_spec.name) or 'Spec'}.spec{self.file_extension}"

    # ----- ページオブジェクト -----

    def render_page(self, page: PageObject) -> str:
        class_name = to_pascal_case(page.name) or "Page"
        value_type = ": string" if self.typed else ""
        lines: list[str] = []

        if self.typed:
            lines.append("import { Page } from '@playwright/test';")
            lines.append("")
            lines.append(f"export class {class_name} {{")
            for name, element in page.elements.items():
                lines.append(f"  readonly {to_camel_case(name)} = '{escape_single(element.selector.value)}';")
            lines.append("")
            lines.append("  constructor(private page: Page) {}")
        else:
            lines.append(f"class {class_name} {{")
            lines.append("  constructor(page) {")
            lines.append("    this.page = page;")
            for name, element in page.elements.items():
                lines.append(f"    this.{to_camel_case(name)} = '{escape_single(element.selector.value)}';")
            lines.append("  }")

        if page.methods:
            for method in page.methods:
                params = ", ".join(f"{p}{value_type}" for p in extract_params(method.steps))
                lines.append("")
                lines.append(f"  async {to_camel_case(method.name)}({params}) {{")
                for step in coalesce_fills(method.steps):
                    lines.extend(
                        f"    {line}" for line in self._step_lines(step, "this.page", {}, "params", page)
                    )
                lines.append("  }")
        else:
            for auto in auto_methods(page):
                attr = f"this.{to_camel_case(auto.element)}"
                lines.append("")
                lines.append(f"  async {auto.name}({'value' + value_type if auto.takes_value else ''}) {{")
                call = {
                    "click": f"await this.page.click({attr});",
                    "fill": f"await this.page.fill({attr}, value);",
                    "select": f"await this.page.selectOption({attr}, value);",
                    "check": f"await this.page.check({attr});",
                    "uncheck": f"await this.page.uncheck({attr});",
                }[auto.operation]
                lines.append(f"    {call}")
                lines.append("  }")

        lines.append("}")
        if not self.typed:
            lines.append("")
            lines.append(f"module.exports = {class_name};")
        lines.append("")
        return "\n".join(lines)

    # ----- テスト -----

    def render_test(self, test_spec: TestSpec, pages: Mapping[str, PageObject]) -> str:
        lines: list[str] = []
        if self.typed:
            lines.append("import { test, expect } from '@playwright/test';")
            for page in pages.values():
                class_name = to_pascal_case(page.name)
                lines.append(f"import {{ {class_name} }} from '../pages/{class_name}';")
        else:
            lines.append("const { test, expect } = require('@playwright/test');")
            for page in pages.values():
                class_name = to_pascal_case(page.name)
                lines.append(f"const {class_name} = require('../pages/{class_name}');")
        lines.append("")
        lines.append(f"test.describe('{escape_single(test_spec.name)}', () => {{")

        for index, test_case in enumerate(test_spec.test_cases):
            if index > 0:
                lines.append("")
            name = escape_single(test_case.name)
            if test_case.data:
                data_var = f"{to_camel_case(test_case.name) or 'case'}Data"
                lines.append(f"  const {data_var} = {json.dumps(test_case.data, ensure_ascii=False)};")
                lines.append("")
                lines.append(f"  for (const data of {data_var}) {{")
                lines.append(f"    test('{name} with ' + JSON.stringify(data), async ({{ page }}) => {{")
                indent, scope = "      ", "data"
            else:
                lines.append(f"  test('{name}', async ({{ page }}) => {{")
                indent, scope = "    ", None

            for page in pages.values():
                lines.append(f"{indent}const {to_camel_case(page.name)} = new {to_pascal_case(page.name)}(page);")
            for step in coalesce_fills(test_case.steps):
                lines.extend(f"{indent}{line}" for line in self._step_lines(step, "page", pages, scope))

            if test_case.data:
                lines.append("    });")
                lines.append("  }")
            else:
                lines.append("  });")

        lines.append("});")
        lines.append("")
        return "\n".join(lines)

    def _step_lines(
        self,
        step: Step,
        page_ref: str,
        pages: Mapping[str, PageObject],
        scope: Optional[str],
        owner: Optional[PageObject] = None,
    ) -> list[str]:
        lines: list[str] = []
        if step.annotations:
            lines.append(f"// {', '.join(step.annotations)}")

        value = js_value(step.value, scope)
        match = find_page_method(step, pages)
        if match is not None:
            page_var = to_camel_case(match.page_name)
            args = value if step.action in ("fill", "select") else ""
            lines.append(f"await {page_var}.{to_camel_case(match.method_name)}({args});")
        else:
            target = self._target(step.selector, owner)
            if step.action == "click":
                lines.append(f"await {page_ref}.click({target});")
            elif step.action == "fill":
                lines.append(f"await {page_ref}.fill({target}, {value});")
            elif step.action == "select":
                lines.append(f"await {page_ref}.selectOption({target}, {value});")
            elif step.action == "navigate":
                lines.append(f"await {page_ref}.goto({js_value(step.value or step.url, scope)});")
            elif step.action == "screenshot":
                lines.append(f"await {page_ref}.screenshot({{ path: '{escape_single(step.value or 'screenshot.png')}' }});")
            elif step.action == "assertion":
                lines.append(self._assertion(page_ref, target, step.assertion_type, value))

        if step.selector:
            target = self._target(step.selector, owner)
            for assertion in step.assertions:
                lines.append(
                    self._assertion(page_ref, target, assertion.type, js_value(assertion.expected, scope))
                )
        return lines

    @staticmethod
    def _assertion(page_ref: str, target: str, kind: Optional[str], expected: str) -> str:
        method = kind or "toBeVisible"
        args = expected if method == "toHaveText" else ""
        return f"await expect({page_ref}.locator({target})).{method}({args});"

    @staticmethod
    def _target(selector: str, owner: Optional[PageObject]) -> str:
        if owner is not None:
            name = owner.find_element_by_selector(selector)
            if name is not None:
                return f"this.{to_camel_case(name)}"
        return f"'{escape_single(selector)}'"

    # ----- 付属ファイル -----

    def support_files(self, project: Project) -> dict[str, str]:
        dev_dependencies = {"@playwright/test": "^1.40.0"}
        if self.typed:
            dev_dependencies["typescript"] = "^5.0.0"
        package = {
            "name": _package_name(project),
            "version": project.version,
            "scripts": {"test": "playwright test"},
            "devDependencies": dev_dependencies,
        }
        return {
            project.config_file: _PLAYWRIGHT_CONFIG_TS if self.typed else _PLAYWRIGHT_CONFIG_JS,
            "package.json": json.dumps(package, indent=2) + "\n",
            "run_tests.sh": _NODE_RUN_SH,
            "run_tests.bat": _NODE_RUN_BAT,
        }


class PlaywrightTypeScriptGenerator(PlaywrightJavaScriptGenerator):
    """@playwright/test（TypeScript）のコードジェネレータ。"""

    language = Language.TYPESCRIPT
    file_extension = ".ts"
    typed = True
