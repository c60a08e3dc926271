"""
Replay Engine — 記録ステップの再生

記録された Step 列を 1 つずつ順番に再生する。

主な機能:
  - 各ステップの前に REPLAY_PROGRESS(running)、後に success / failed を送信
  - 要素が見つからない・操作に失敗したステップは failed として記録し、次へ進む
  - 成功したステップの後は step_delay 秒待機する
  - cancel() による協調的な停止（ステップの境界で確認）
  - 全ステップ終了後に REPLAY_COMPLETE を送信
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import AsyncIterator, Literal, Optional

from ..messaging import MessageChannel, ReplayComplete, ReplayProgress
from ..model.schema import Step
from .actions import perform_step
from .drivers import ActionDriver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReplayStepResult:
    """再生した 1 ステップの結果。

    Attributes:
        index: ステップのインデックス（0始まり）
        step: 再生したステップ
        status: success / failed
        error: エラーメッセージ（失敗時のみ）
        duration_ms: 実行時間（ミリ秒）
        screenshot: screenshot アクションで保存したファイルのパス
    """

    index: int
    step: Step
    status: Literal["success", "failed"]
    error: Optional[str] = None
    duration_ms: float = 0.0
    screenshot: Optional[str] = None


class ReplayEngine:
    """記録ステップの再生エンジン。

    使用例::

        engine = ReplayEngine(driver, channel, step_delay=0.5)
        async for result in engine.replay(steps):
            print(result.index, result.status)

    Args:
        driver: 操作ドライバー
        channel: 進捗の送信先（None の場合は送信しない）
        step_delay: 成功したステップの後の待機秒数
        highlight_ms: 操作前の要素ハイライト時間（ミリ秒）
    """

    def __init__(
        self,
        driver: ActionDriver,
        channel: Optional[MessageChannel] = None,
        step_delay: float = 1.0,
        highlight_ms: int = 800,
    ) -> None:
        self._driver = driver
        self._channel = channel
        self._step_delay = step_delay
        self._highlight_ms = highlight_ms
        self._cancelled = False
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def cancel(self) -> None:
        """再生を停止する。実行中のステップの完了後に停止する。"""
        if self._running:
            logger.info("再生の停止が要求されました")
        self._cancelled = True

    async def replay(self, steps: list[Step]) -> AsyncIterator[ReplayStepResult]:
        """ステップを順番に再生し、各ステップの結果を返す。"""
        self._cancelled = False
        self._running = True
        failed = 0
        completed = 0
        logger.info("再生を開始します: %d ステップ", len(steps))

        try:
            for index, step in enumerate(steps):
                if self._cancelled:
                    logger.info("再生を停止しました: %d / %d ステップ完了", completed, len(steps))
                    break

                result = await self._replay_step(index, step)
                completed += 1
                if result.status == "failed":
                    failed += 1
                yield result
        finally:
            self._running = False

        if self._highlight_ms > 0:
            await self._clear_highlights()
        self._post(ReplayComplete(total=completed, failed=failed))
        logger.info("再生が完了しました: %d ステップ中 %d 件失敗", completed, failed)

    async def replay_all(self, steps: list[Step]) -> list[ReplayStepResult]:
        """全ステップを再生し、結果のリストを返す。"""
        return [result async for result in self.replay(steps)]

    async def _replay_step(self, index: int, step: Step) -> ReplayStepResult:
        self._post(ReplayProgress(step_index=index, status="running"))
        start = time.perf_counter()

        try:
            screenshot = await perform_step(self._driver, step, self._highlight_ms)
        except Exception as exc:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.warning("ステップ %d (%s) が失敗しました: %s", index, step.action, exc)
            self._post(ReplayProgress(step_index=index, status="failed", error=str(exc)))
            return ReplayStepResult(
                index=index,
                step=step,
                status="failed",
                error=str(exc),
                duration_ms=duration_ms,
            )

        if self._step_delay > 0:
            await asyncio.sleep(self._step_delay)
        duration_ms = (time.perf_counter() - start) * 1000
        self._post(ReplayProgress(step_index=index, status="success"))
        logger.debug("ステップ %d (%s) が成功しました", index, step.action)
        return ReplayStepResult(
            index=index,
            step=step,
            status="success",
            duration_ms=duration_ms,
            screenshot=screenshot,
        )

    async def _clear_highlights(self) -> None:
        try:
            await self._driver.clear_highlights()
        except Exception as exc:
            logger.warning("ハイライトの解除に失敗しました: %s", exc)

    def _post(self, message: ReplayProgress | ReplayComplete) -> None:
        if self._channel is not None:
            self._channel.post(message)
