# コアモジュール
# 要素解決、ステップ実行、再生、テスト実行、結果、レポートを提供

from .actions import check_assertion, perform_step
from .drivers import ActionDriver, DocumentDriver, PlaywrightDriver
from .replay import ReplayEngine, ReplayStepResult
from .reporting import Reporter
from .resolver import find_element, resolve_element
from .results import ExecutionStatus, StepResult, SuiteResult, TestCaseResult
from .runner import TestRunner, method_name_for
from .variables import VariableExpander, VariableNotFoundError

__all__ = [
    "ActionDriver",
    "DocumentDriver",
    "ExecutionStatus",
    "PlaywrightDriver",
    "ReplayEngine",
    "ReplayStepResult",
    "Reporter",
    "StepResult",
    "SuiteResult",
    "TestCaseResult",
    "TestRunner",
    "VariableExpander",
    "VariableNotFoundError",
    "check_assertion",
    "find_element",
    "method_name_for",
    "perform_step",
    "resolve_element",
]
