"""
記録モジュール

ユーザー操作を Step として記録し、受信側で集約する。

主要エクスポート:
  - StepRecorder: イベント購読と Step の生成・送信
  - RecorderState: レコーダーの状態
  - RecordingTarget: 記録先のページ・テスト名
  - StepCollector: RECORDED_STEP の受信と TestCase 化
  - coalesce_fills: 連続した fill の集約
"""

from .collector import StepCollector, coalesce_fills
from .recorder import OVERLAY_ID, RecorderState, RecordingTarget, StepRecorder

__all__ = [
    "OVERLAY_ID",
    "RecorderState",
    "RecordingTarget",
    "StepCollector",
    "StepRecorder",
    "coalesce_fills",
]
