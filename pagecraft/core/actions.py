"""
ステップアクション — 1 ステップの実行

Replay Engine と Test Runner が共有する、Step をドライバー操作に
変換する処理。セレクタは毎回最新の snapshot() 上で解決する。
"""

from __future__ import annotations

import logging
from typing import Optional

from lxml.html import HtmlElement

from ..dom.document import Document, element_text
from ..errors import ActionExecutionError
from ..model.schema import Step, StepAssertion
from .drivers import ActionDriver
from .resolver import resolve_element

logger = logging.getLogger(__name__)

# 要素を必要とするアクション
ELEMENT_ACTIONS = frozenset({"click", "fill", "select", "assertion"})


def _is_enabled(element: HtmlElement) -> bool:
    return element.get("disabled") is None and element.get("aria-disabled") != "true"


def check_assertion(
    document: Document,
    element: HtmlElement,
    assertion: StepAssertion,
) -> None:
    """要素に対するアサーションを評価する。

    Raises:
        ActionExecutionError: アサーションが成立しない場合
    """
    if assertion.type == "toBeVisible":
        if not document.is_visible(element):
            raise ActionExecutionError("assertion", "Expected element to be visible")
    elif assertion.type == "toBeEnabled":
        if not _is_enabled(element):
            raise ActionExecutionError("assertion", "Expected element to be enabled")
    elif assertion.type == "toHaveText":
        actual = element_text(element)
        expected = assertion.expected or ""
        if actual != expected:
            raise ActionExecutionError(
                "assertion",
                f"Expected text '{expected}' but got '{actual}'",
            )
    else:
        raise ActionExecutionError("assertion", f"Unknown assertion: {assertion.type}")


async def perform_step(
    driver: ActionDriver,
    step: Step,
    highlight_ms: int = 0,
    screenshot_name: Optional[str] = None,
) -> Optional[str]:
    """ステップを 1 つ実行する。

    Args:
        driver: 操作ドライバー
        step: 実行するステップ
        highlight_ms: 操作前のハイライト時間（0 でハイライトしない）
        screenshot_name: screenshot アクションの保存名（未指定時は step.value）

    Returns:
        screenshot アクションで保存したファイルのパス。それ以外は None

    Raises:
        ElementNotFoundError: セレクタに一致する要素がない場合
        ActionExecutionError: 操作・アサーションに失敗した場合
    """
    action = step.action

    if action == "navigate":
        target = step.value or step.url
        if not target:
            raise ActionExecutionError("navigate", "遷移先の URL が指定されていません")
        await driver.navigate(target)
        await _check_attached_assertions(driver, step)
        return None

    if action == "screenshot":
        name = screenshot_name or step.value or f"screenshot_{step.timestamp}"
        return await driver.capture_screenshot(name)

    if action not in ELEMENT_ACTIONS:
        raise ActionExecutionError(action, f"Unknown action: {action}")

    document = await driver.snapshot()
    element = resolve_element(document, step.selector)

    if highlight_ms > 0:
        await driver.highlight(element, highlight_ms)

    if action == "click":
        await driver.click(element)
    elif action == "fill":
        await driver.fill(element, step.value or "")
    elif action == "select":
        await driver.select(element, step.value or "")
    else:
        check_assertion(
            document,
            element,
            StepAssertion(type=step.assertion_type, expected=step.value),
        )

    await _check_attached_assertions(driver, step)
    return None


async def _check_attached_assertions(driver: ActionDriver, step: Step) -> None:
    """操作後のページ状態でステップ付属のアサーションを評価する。"""
    if not step.assertions or not step.selector:
        return
    document = await driver.snapshot()
    element = resolve_element(document, step.selector)
    for assertion in step.assertions:
        check_assertion(document, element, assertion)
        logger.debug("アサーション成功: %s (%s)", assertion.type, step.selector)
