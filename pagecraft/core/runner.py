"""
TestRunner — テストスペック実行エンジン

TestSpec のテストケースを順番に実行し、SuiteResult を生成する。

主な機能:
  - テストケース・ステップの逐次実行（最初の失敗で残りのステップは skipped）
  - ページオブジェクトのメソッド（<action><ElementName>）を優先して実行
  - メソッドがなければドライバーで直接実行（Replay Engine と同じ要素解決）
  - データ駆動テスト: データ行ごとに ${key} を展開して実行
  - cancel() による協調的な停止（残りのテストケースは cancelled）
  - 失敗時のスクリーンショット取得
  - 実行結果を ResultsStore へ保存
"""

from __future__ import annotations

import inspect
import logging
import time
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional

from ..model.schema import Step, TestCase, TestSpec
from .actions import perform_step
from .drivers import ActionDriver
from .results import ExecutionStatus, StepResult, SuiteResult, TestCaseResult
from .variables import VariableExpander

if TYPE_CHECKING:
    from ..storage.results import ResultsStore

logger = logging.getLogger(__name__)

# ページオブジェクトのメソッドで実行するアクション
_METHOD_ACTIONS = ("click", "fill", "select")

# 進捗コールバック: (テストケース名, ステップ結果)
ProgressCallback = Callable[[str, StepResult], None]


def method_name_for(step: Step) -> Optional[str]:
    """ステップに対応するページオブジェクトのメソッド名を返す。

    例: click + loginButton → "clickLoginButton"
    """
    if step.action not in _METHOD_ACTIONS or not step.element_name:
        return None
    name = step.element_name
    return f"{step.action}{name[:1].upper()}{name[1:]}"


def _lookup_method(page_object: Any, name: str) -> Optional[Callable[..., Any]]:
    if isinstance(page_object, Mapping):
        method = page_object.get(name)
    else:
        method = getattr(page_object, name, None)
    return method if callable(method) else None


class TestRunner:
    """テストスペックの実行エンジン。

    使用例::

        runner = TestRunner(driver, results_store)
        suite = await runner.run_suite(test_spec, {"LoginPage": login_page})

    Args:
        driver: 操作ドライバー
        results_store: 結果の保存先（None の場合は保存しない）
        env: ${env.X} の参照先
        on_progress: ステップ完了ごとに呼ばれるコールバック
    """

    __test__ = False

    def __init__(
        self,
        driver: ActionDriver,
        results_store: Optional[ResultsStore] = None,
        env: Optional[Mapping[str, str]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self._driver = driver
        self._results_store = results_store
        self._env = dict(env or {})
        self._on_progress = on_progress
        self._cancelled = False

    def cancel(self) -> None:
        """実行を停止する。次のテストケース／ステップの境界で停止する。"""
        logger.info("テスト実行の停止が要求されました")
        self._cancelled = True

    # -------------------------------------------------------------------
    # スイート実行
    # -------------------------------------------------------------------

    async def run_suite(
        self,
        test_spec: TestSpec,
        page_objects: Optional[Mapping[str, Any]] = None,
    ) -> SuiteResult:
        """テストスペックの全テストケースを実行する。

        Args:
            test_spec: 実行対象のテストスペック
            page_objects: {ページ名: ページオブジェクト}。
                ページオブジェクトは属性または Mapping でメソッドを提供する

        Returns:
            スイート全体の実行結果
        """
        self._cancelled = False
        started_at = datetime.now()
        start = time.perf_counter()
        logger.info("テストスイートを開始します: %s", test_spec.name)

        results: list[TestCaseResult] = []
        for test_case in test_spec.test_cases:
            for name, row in self._expand_rows(test_case):
                if self._cancelled:
                    results.append(self._cancelled_case(name, test_case))
                    continue
                results.append(
                    await self.run_test_case(test_case, page_objects, row=row, name=name)
                )

        suite = SuiteResult.from_cases(
            test_spec.name,
            results,
            duration_ms=(time.perf_counter() - start) * 1000,
            timestamp=started_at,
        )
        logger.info(
            "テストスイートが完了しました: %s (%d/%d passed)",
            test_spec.name, suite.passed, suite.total,
        )

        if self._results_store is not None:
            self._results_store.save(suite)
        return suite

    @staticmethod
    def _expand_rows(test_case: TestCase) -> list[tuple[str, Optional[dict[str, str]]]]:
        if not test_case.data:
            return [(test_case.name, None)]
        return [
            (f"{test_case.name} [{n}]", row)
            for n, row in enumerate(test_case.data, start=1)
        ]

    # -------------------------------------------------------------------
    # テストケース実行
    # -------------------------------------------------------------------

    async def run_test_case(
        self,
        test_case: TestCase,
        page_objects: Optional[Mapping[str, Any]] = None,
        row: Optional[Mapping[str, str]] = None,
        name: Optional[str] = None,
    ) -> TestCaseResult:
        """単一のテストケースを実行する。

        Args:
            test_case: 実行対象のテストケース
            page_objects: {ページ名: ページオブジェクト}
            row: データ駆動の行（${key} の展開に使用）
            name: 結果に記録する名前（未指定時はテストケース名）

        Returns:
            テストケースの実行結果
        """
        result = TestCaseResult(name=name or test_case.name, status=ExecutionStatus.RUNNING)
        expander = VariableExpander(row=row, env=self._env)
        start = time.perf_counter()
        logger.info("テストケースを開始します: %s", result.name)

        for position, step in enumerate(test_case.steps):
            if result.status == ExecutionStatus.FAILED:
                result.steps.append(self._skipped_step(position, step, ExecutionStatus.SKIPPED))
                continue
            if self._cancelled:
                result.status = ExecutionStatus.CANCELLED
                result.steps.append(self._skipped_step(position, step, ExecutionStatus.CANCELLED))
                continue

            step_result = await self._execute_step(position, step, expander, page_objects or {})
            result.steps.append(step_result)
            if self._on_progress is not None:
                self._on_progress(result.name, step_result)

            if step_result.status == ExecutionStatus.FAILED:
                result.status = ExecutionStatus.FAILED
                result.error = step_result.error
                result.screenshot = step_result.screenshot

        if result.status == ExecutionStatus.RUNNING:
            result.status = ExecutionStatus.PASSED
        result.duration_ms = (time.perf_counter() - start) * 1000

        logger.info(
            "テストケースが終了しました: %s → %s (%.0fms)",
            result.name, result.status.value, result.duration_ms,
        )
        return result

    def _cancelled_case(self, name: str, test_case: TestCase) -> TestCaseResult:
        return TestCaseResult(
            name=name,
            status=ExecutionStatus.CANCELLED,
            steps=[
                self._skipped_step(position, step, ExecutionStatus.CANCELLED)
                for position, step in enumerate(test_case.steps)
            ],
        )

    @staticmethod
    def _skipped_step(position: int, step: Step, status: ExecutionStatus) -> StepResult:
        return StepResult(
            index=position + 1,
            action=step.action,
            element=step.element_name or step.selector or None,
            value=step.value,
            status=status,
        )

    # -------------------------------------------------------------------
    # ステップ実行
    # -------------------------------------------------------------------

    async def _execute_step(
        self,
        position: int,
        step: Step,
        expander: VariableExpander,
        page_objects: Mapping[str, Any],
    ) -> StepResult:
        """ステップを実行し、StepResult を返す。例外は失敗として記録する。"""
        start = time.perf_counter()
        step_result = StepResult(
            index=position + 1,
            action=step.action,
            element=step.element_name or step.selector or None,
            value=step.value,
            status=ExecutionStatus.RUNNING,
        )
        logger.debug("ステップ %d: %s %s", step_result.index, step.action, step_result.element)

        try:
            step = expander.expand_step(step)
            step_result.value = step.value
            if not await self._invoke_page_method(step, page_objects):
                await perform_step(self._driver, step)
            step_result.status = ExecutionStatus.PASSED
        except Exception as exc:
            step_result.status = ExecutionStatus.FAILED
            step_result.error = str(exc)
            step_result.screenshot = await self._capture_failure(step_result.index)
            logger.warning("ステップ %d が失敗しました: %s", step_result.index, exc)

        step_result.duration_ms = (time.perf_counter() - start) * 1000
        return step_result

    async def _invoke_page_method(self, step: Step, page_objects: Mapping[str, Any]) -> bool:
        """ページオブジェクトのメソッドがあれば実行する。実行した場合は True。"""
        if not step.page_name:
            return False
        page_object = page_objects.get(step.page_name)
        method_name = method_name_for(step)
        if page_object is None or method_name is None:
            return False
        method = _lookup_method(page_object, method_name)
        if method is None:
            return False

        logger.debug("ページオブジェクトのメソッドを実行します: %s.%s", step.page_name, method_name)
        if step.action in ("fill", "select"):
            outcome = method(step.value)
        else:
            outcome = method()
        if inspect.isawaitable(outcome):
            await outcome
        return True

    async def _capture_failure(self, index: int) -> Optional[str]:
        try:
            return await self._driver.capture_screenshot(f"failure_step_{index}_{int(time.time() * 1000)}")
        except Exception as exc:
            logger.warning("スクリーンショットの取得に失敗しました: %s", exc)
            return None
