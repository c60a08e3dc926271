"""
Selenium ジェネレータ — Python

ページオブジェクトを By ロケータのタプルを持つクラスに、
テストスペックを driver フィクスチャを使う pytest 関数に変換する。

role= / text= 形式のセレクタは XPath に変換する。
"""

from __future__ import annotations

import json
import logging
from typing import Mapping, Optional

from ..engine.naming import to_pascal_case, to_snake_case
from ..model.schema import Language, PageObject, Project, Step, TestSpec, Tool
from ..recorder.collector import coalesce_fills
from .base import (
    auto_methods,
    escape_string,
    extract_params,
    find_page_method,
    python_value,
    selector_to_xpath,
    unique_identifier,
)

logger = logging.getLogger(__name__)

_CONFTEST = '''import pytest
from selenium import webdriver


@pytest.fixture
def driver():
    driver = webdriver.Chrome()
    driver.set_window_size(1280, 720)
    driver.implicitly_wait(10)
    yield driver
    driver.quit()
'''


def locator(selector: str) -> str:
    """セレクタを (By.X, "...") 形式のロケータ式に変換する。"""
    xpath = selector_to_xpath(selector)
    if xpath is not None:
        return f'(By.XPATH, "{escape_string(xpath)}")'
    return f'(By.CSS_SELECTOR, "{escape_string(selector)}")'


class SeleniumPythonGenerator:
    """Selenium + pytest のコードジェネレータ。"""

    tool = Tool.SELENIUM
    language = Language.PYTHON
    file_extension = ".py"

    def page_path(self, page: PageObject) -> str:
        return f"pages/{to_snake_case(page.name) or 'page'}.py"

    def test_path(self, test_spec: TestSpec) -> str:
        return f"tests/test_{to_snake_case(test_spec.name) or 'spec'}.py"

    # ----- ページオブジェクト -----

    def render_page(self, page: PageObject) -> str:
        class_name = to_pascal_case(page.name) or "Page"
        lines: list[str] = [
            "from selenium.webdriver.common.by import By",
            "from selenium.webdriver.support.ui import Select",
            "",
            "",
            f"class {class_name}:",
        ]
        if page.url:
            lines.append(f'    URL = "{escape_string(page.url)}"')
        for name, element in page.elements.items():
            lines.append(f"    {to_snake_case(name).upper()} = {locator(element.selector.value)}")
        if page.url or page.elements:
            lines.append("")
        lines.append("    def __init__(self, driver) -> None:")
        lines.append("        self.driver = driver")

        if page.methods:
            for method in page.methods:
                params = extract_params(method.steps)
                lines.append("")
                lines.append(f"    def {to_snake_case(method.name)}({', '.join(['self'] + params)}) -> None:")
                body = [
                    line
                    for step in coalesce_fills(method.steps)
                    for line in self._step_lines(step, "self.driver", {}, "params", page)
                ]
                lines.extend(f"        {line}" for line in body or ["pass"])
        else:
            for auto in auto_methods(page):
                const = f"self.{to_snake_case(auto.element).upper()}"
                lines.append("")
                if auto.takes_value:
                    lines.append(f"    def {to_snake_case(auto.name)}(self, value: str) -> None:")
                else:
                    lines.append(f"    def {to_snake_case(auto.name)}(self) -> None:")
                find = f"self.driver.find_element(*{const})"
                if auto.operation == "fill":
                    lines.append(f"        element = {find}")
                    lines.append("        element.clear()")
                    lines.append("        element.send_keys(value)")
                elif auto.operation == "select":
                    lines.append(f"        Select({find}).select_by_value(value)")
                elif auto.operation == "check":
                    lines.append(f"        element = {find}")
                    lines.append("        if not element.is_selected():")
                    lines.append("            element.click()")
                elif auto.operation == "uncheck":
                    lines.append(f"        element = {find}")
                    lines.append("        if element.is_selected():")
                    lines.append("            element.click()")
                else:
                    lines.append(f"        {find}.click()")

        lines.append("")
        return "\n".join(lines)

    # ----- テスト -----

    def render_test(self, test_spec: TestSpec, pages: Mapping[str, PageObject]) -> str:
        has_data = any(tc.data for tc in test_spec.test_cases)
        lines: list[str] = []
        if has_data:
            lines.append("import pytest")
        lines.append("from selenium.webdriver.common.by import By")
        lines.append("from selenium.webdriver.support.ui import Select")
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
                lines.append(f"def {func_name}(driver, data: dict) -> None:")
            else:
                lines.append(f"def {func_name}(driver) -> None:")
            lines.append(f'    """{escape_string(test_case.name)}"""')

            for page in pages.values():
                lines.append(f"    {to_snake_case(page.name)} = {to_pascal_case(page.name)}(driver)")
            for step in coalesce_fills(test_case.steps):
                lines.extend(f"    {line}" for line in self._step_lines(step, "driver", pages, scope))

        lines.append("")
        return "\n".join(lines)

    def _step_lines(
        self,
        step: Step,
        driver_ref: str,
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
            args = value if step.action in ("fill", "select") else ""
            lines.append(
                f"{to_snake_case(match.page_name)}.{to_snake_case(match.method_name)}({args})"
            )
        else:
            find = f"{driver_ref}.find_element(*{self._target(step.selector, owner)})"
            if step.action == "click":
                lines.append(f"{find}.click()")
            elif step.action == "fill":
                lines.append(f"{find}.clear()")
                lines.append(f"{find}.send_keys({value})")
            elif step.action == "select":
                lines.append(f"Select({find}).select_by_value({value})")
            elif step.action == "navigate":
                lines.append(f"{driver_ref}.get({python_value(step.value or step.url, scope)})")
            elif step.action == "screenshot":
                lines.append(f'{driver_ref}.save_screenshot("{escape_string(step.value or "screenshot.png")}")')
            elif step.action == "assertion":
                lines.append(self._assertion(find, step.assertion_type, value))

        if step.selector:
            find = f"{driver_ref}.find_element(*{self._target(step.selector, owner)})"
            for assertion in step.assertions:
                lines.append(self._assertion(find, assertion.type, python_value(assertion.expected, scope)))
        return lines

    @staticmethod
    def _assertion(find: str, kind: Optional[str], expected: str) -> str:
        if kind == "toHaveText":
            return f"assert {find}.text.strip() == {expected}"
        if kind == "toBeEnabled":
            return f"assert {find}.is_enabled()"
        return f"assert {find}.is_displayed()"

    @staticmethod
    def _target(selector: str, owner: Optional[PageObject]) -> str:
        if owner is not None:
            name = owner.find_element_by_selector(selector)
            if name is not None:
                return f"self.{to_snake_case(name).upper()}"
        return locator(selector)

    # ----- 付属ファイル -----

    def support_files(self, project: Project) -> dict[str, str]:
        return {
            "pages/__init__.py": "",
            "conftest.py": _CONFTEST,
            project.config_file: "[pytest]\ntestpaths = tests\npythonpath = .\n",
            "requirements.txt": "selenium>=4.15\npytest>=7.4\n",
            "run_tests.sh": "#!/bin/bash\npip install -r requirements.txt\npytest\n",
            "run_tests.bat": "@echo off\npip install -r requirements.txt\npytest\n",
        }
