"""
実行結果データクラス

Test Runner の実行結果を表現する。結果は名前のみを参照し、
実行中のオブジェクト（Document や要素）は保持しない。

主な機能:
  - ExecutionStatus: 実行状態（running / passed / failed / skipped / cancelled）
  - StepResult / TestCaseResult / SuiteResult: 実行結果
  - to_dict() / from_dict(): 永続化用の辞書変換
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


class ExecutionStatus(str, enum.Enum):
    """ステップ・テストケース・スイートの実行状態。"""

    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


# ---------------------------------------------------------------------------
# ステップ結果
# ---------------------------------------------------------------------------

@dataclass
class StepResult:
    """単一ステップの実行結果。

    Attributes:
        index: ステップの番号（1 始まり）
        action: 操作種別
        element: 要素名（なければセレクタ）
        value: 入力値
        status: 実行状態
        duration_ms: 実行時間（ミリ秒）
        error: エラーメッセージ（失敗時のみ）
        screenshot: 失敗時スクリーンショットのパス
    """

    index: int
    action: str
    element: Optional[str] = None
    value: Optional[str] = None
    status: ExecutionStatus = ExecutionStatus.PASSED
    duration_ms: float = 0.0
    error: Optional[str] = None
    screenshot: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "action": self.action,
            "element": self.element,
            "value": self.value,
            "status": self.status.value,
            "duration_ms": self.duration_ms,
            "error": self.error,
            "screenshot": self.screenshot,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StepResult:
        return cls(
            index=int(data.get("index", 0)),
            action=str(data.get("action", "")),
            element=data.get("element"),
            value=data.get("value"),
            status=ExecutionStatus(data.get("status", ExecutionStatus.PASSED.value)),
            duration_ms=float(data.get("duration_ms", 0.0)),
            error=data.get("error"),
            screenshot=data.get("screenshot"),
        )


# ---------------------------------------------------------------------------
# テストケース結果
# ---------------------------------------------------------------------------

@dataclass
class TestCaseResult:
    """テストケースの実行結果。

    最初に失敗したステップのエラーとスクリーンショットを引き継ぐ。
    """

    __test__ = False

    name: str
    status: ExecutionStatus = ExecutionStatus.PASSED
    duration_ms: float = 0.0
    steps: list[StepResult] = field(default_factory=list)
    error: Optional[str] = None
    screenshot: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "duration_ms": self.duration_ms,
            "steps": [s.to_dict() for s in self.steps],
            "error": self.error,
            "screenshot": self.screenshot,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TestCaseResult:
        return cls(
            name=str(data.get("name", "")),
            status=ExecutionStatus(data.get("status", ExecutionStatus.PASSED.value)),
            duration_ms=float(data.get("duration_ms", 0.0)),
            steps=[StepResult.from_dict(s) for s in data.get("steps") or []],
            error=data.get("error"),
            screenshot=data.get("screenshot"),
        )


# ---------------------------------------------------------------------------
# スイート結果
# ---------------------------------------------------------------------------

@dataclass
class SuiteResult:
    """テストスペック全体の実行結果。

    Attributes:
        suite_name: テストスペック名
        status: 全体結果（1 件でも failed があれば failed）
        total / passed / failed / skipped / cancelled: テストケース件数
        duration_ms: 全体実行時間（ミリ秒）
        timestamp: 実行開始日時
        test_cases: 各テストケースの結果
        id: 結果 ID（履歴からの取得に使用）
    """

    suite_name: str
    status: ExecutionStatus = ExecutionStatus.PASSED
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: int = 0
    duration_ms: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)
    test_cases: list[TestCaseResult] = field(default_factory=list)
    id: str = field(default_factory=lambda: f"run_{uuid.uuid4().hex[:12]}")

    @classmethod
    def from_cases(
        cls,
        suite_name: str,
        test_cases: list[TestCaseResult],
        duration_ms: float = 0.0,
        timestamp: Optional[datetime] = None,
    ) -> SuiteResult:
        """テストケース結果から件数と全体状態を集計して生成する。"""

        def _count(status: ExecutionStatus) -> int:
            return sum(1 for tc in test_cases if tc.status == status)

        failed = _count(ExecutionStatus.FAILED)
        return cls(
            suite_name=suite_name,
            status=ExecutionStatus.FAILED if failed else ExecutionStatus.PASSED,
            total=len(test_cases),
            passed=_count(ExecutionStatus.PASSED),
            failed=failed,
            skipped=_count(ExecutionStatus.SKIPPED),
            cancelled=_count(ExecutionStatus.CANCELLED),
            duration_ms=duration_ms,
            timestamp=timestamp or datetime.now(),
            test_cases=list(test_cases),
        )

    @property
    def was_cancelled(self) -> bool:
        """実行が途中でキャンセルされたか。"""
        return self.cancelled > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "suite_name": self.suite_name,
            "status": self.status.value,
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "duration_ms": self.duration_ms,
            "timestamp": self.timestamp.isoformat(),
            "test_cases": [tc.to_dict() for tc in self.test_cases],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SuiteResult:
        timestamp = data.get("timestamp")
        return cls(
            id=str(data.get("id") or f"run_{uuid.uuid4().hex[:12]}"),
            suite_name=str(data.get("suite_name", "")),
            status=ExecutionStatus(data.get("status", ExecutionStatus.PASSED.value)),
            total=int(data.get("total", 0)),
            passed=int(data.get("passed", 0)),
            failed=int(data.get("failed", 0)),
            skipped=int(data.get("skipped", 0)),
            cancelled=int(data.get("cancelled", 0)),
            duration_ms=float(data.get("duration_ms", 0.0)),
            timestamp=datetime.fromisoformat(timestamp) if timestamp else datetime.now(),
            test_cases=[TestCaseResult.from_dict(tc) for tc in data.get("test_cases") or []],
        )
