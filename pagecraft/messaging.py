"""
Messaging — 実行コンテキスト間のメッセージ定義とチャネル

記録・再生・検出の各コンポーネントと、それを制御する側（CLI / Session）の間で
やり取りするメッセージを Pydantic モデルとして定義する。

メッセージ種別:
  DETECT_ELEMENTS, START_RECORDING{pageName, testName, testCaseName}, STOP_RECORDING,
  REPLAY_STEPS{steps}, STOP_REPLAY, CAPTURE_SCREENSHOT, RECORDED_STEP{step},
  REPLAY_PROGRESS{stepIndex, status, error?}, REPLAY_COMPLETE{results}

配信方式:
  - post(): 購読者全員への通知（応答なし）
  - request(): 単一ハンドラへの要求と単一応答
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from typing import Annotated, Any, Awaitable, Callable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .errors import UnhandledMessageError
from .model.schema import Step

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# メッセージモデル
# ---------------------------------------------------------------------------

class _Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """送信用の辞書（camelCase キー）に変換する。"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class DetectElements(_Message):
    type: Literal["DETECT_ELEMENTS"] = "DETECT_ELEMENTS"


class StartRecording(_Message):
    type: Literal["START_RECORDING"] = "START_RECORDING"
    page_name: str = Field(..., alias="pageName")
    test_name: str = Field(..., alias="testName")
    test_case_name: str = Field(..., alias="testCaseName")


class StopRecording(_Message):
    type: Literal["STOP_RECORDING"] = "STOP_RECORDING"


class ReplaySteps(_Message):
    type: Literal["REPLAY_STEPS"] = "REPLAY_STEPS"
    steps: list[Step]


class StopReplay(_Message):
    type: Literal["STOP_REPLAY"] = "STOP_REPLAY"


class CaptureScreenshot(_Message):
    type: Literal["CAPTURE_SCREENSHOT"] = "CAPTURE_SCREENSHOT"
    name: Optional[str] = None


class RecordedStep(_Message):
    type: Literal["RECORDED_STEP"] = "RECORDED_STEP"
    step: Step
    page_name: Optional[str] = Field(default=None, alias="pageName")
    test_name: Optional[str] = Field(default=None, alias="testName")
    test_case_name: Optional[str] = Field(default=None, alias="testCaseName")


class ReplayProgress(_Message):
    type: Literal["REPLAY_PROGRESS"] = "REPLAY_PROGRESS"
    step_index: int = Field(..., alias="stepIndex")
    status: Literal["running", "success", "failed"]
    error: Optional[str] = None


class ReplayComplete(_Message):
    type: Literal["REPLAY_COMPLETE"] = "REPLAY_COMPLETE"
    total: int = 0
    failed: int = 0


Message = Annotated[
    Union[
        DetectElements,
        StartRecording,
        StopRecording,
        ReplaySteps,
        StopReplay,
        CaptureScreenshot,
        RecordedStep,
        ReplayProgress,
        ReplayComplete,
    ],
    Field(discriminator="type"),
]

_MESSAGE_ADAPTER: TypeAdapter[Message] = TypeAdapter(Message)


def parse_message(data: dict[str, Any]) -> Message:
    """受信した辞書をメッセージモデルに変換する。

    Raises:
        pydantic.ValidationError: 未知の type またはフィールド不足の場合
    """
    return _MESSAGE_ADAPTER.validate_python(data)


# ---------------------------------------------------------------------------
# MessageChannel
# ---------------------------------------------------------------------------

Handler = Callable[[Any], Union[Any, Awaitable[Any]]]


class MessageChannel:
    """メッセージの配信チャネル。

    ハンドラは同期関数・コルーチン関数のどちらでもよい。
    post() ではコルーチンの結果を待たずに、実行中のイベントループへタスクとして投入する。

    使用例::

        channel = MessageChannel()
        channel.on("RECORDED_STEP", collector.handle)
        channel.post(RecordedStep(step=step))
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Handler]] = defaultdict(list)
        self._responders: dict[str, Handler] = {}
        self._pending: set[asyncio.Task] = set()

    def on(self, message_type: str, handler: Handler) -> Callable[[], None]:
        """通知の購読者を登録する。

        Returns:
            登録を解除する関数
        """
        self._subscribers[message_type].append(handler)

        def _off() -> None:
            if handler in self._subscribers[message_type]:
                self._subscribers[message_type].remove(handler)

        return _off

    def handle(self, message_type: str, responder: Handler) -> None:
        """要求に応答するハンドラを登録する（種別ごとに 1 つ、後勝ち）。"""
        self._responders[message_type] = responder

    def post(self, message: BaseModel) -> None:
        """全購読者に通知する。購読者の例外はログに記録して継続する。"""
        message_type = getattr(message, "type")
        for handler in list(self._subscribers.get(message_type, [])):
            try:
                result = handler(message)
            except Exception:
                logger.exception("メッセージハンドラでエラーが発生しました: %s", message_type)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(lambda t, mt=message_type: self._finish_task(t, mt))

    async def request(self, message: BaseModel) -> Any:
        """応答ハンドラに要求を送り、応答を返す。

        Raises:
            UnhandledMessageError: 応答ハンドラが登録されていない場合
        """
        message_type = getattr(message, "type")
        responder = self._responders.get(message_type)
        if responder is None:
            raise UnhandledMessageError(message_type)

        result = responder(message)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def drain(self) -> None:
        """post() で投入された未完了のタスクを待つ。"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _finish_task(self, task: asyncio.Task, message_type: str) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("メッセージハンドラでエラーが発生しました: %s", message_type, exc_info=exc)
