"""
ResultsStore — テスト実行結果の履歴

SuiteResult を新しい順に保存し、最大件数を超えた古い結果を破棄する。
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from ..core.results import SuiteResult
from .store import KeyValueStore

logger = logging.getLogger(__name__)

RESULTS_KEY = "test_results"
DEFAULT_MAX_HISTORY = 10


class ResultsStore:
    """テスト実行結果の履歴ストア。

    Args:
        store: 保存先のキーバリューストア
        max_history: 保持する最大件数
    """

    def __init__(self, store: KeyValueStore, max_history: int = DEFAULT_MAX_HISTORY) -> None:
        if max_history < 1:
            raise ValueError(f"max_history は 1 以上である必要があります: {max_history}")
        self._store = store
        self._max_history = max_history

    @property
    def max_history(self) -> int:
        return self._max_history

    def save(self, suite: SuiteResult) -> None:
        """結果を履歴の先頭に追加する。"""
        entries = self._store.get(RESULTS_KEY) or []
        entries.insert(0, suite.to_dict())
        dropped = len(entries) - self._max_history
        if dropped > 0:
            logger.debug("古い実行結果を %d 件破棄します", dropped)
        self._store.set(RESULTS_KEY, entries[: self._max_history])
        logger.info("実行結果を保存しました: %s (%s)", suite.suite_name, suite.id)

    def history(self) -> list[SuiteResult]:
        """新しい順の結果一覧。"""
        return [SuiteResult.from_dict(entry) for entry in self._store.get(RESULTS_KEY) or []]

    def latest(self) -> Optional[SuiteResult]:
        entries = self._store.get(RESULTS_KEY) or []
        return SuiteResult.from_dict(entries[0]) if entries else None

    def get(self, result_id: str) -> Optional[SuiteResult]:
        for entry in self._store.get(RESULTS_KEY) or []:
            if entry.get("id") == result_id:
                return SuiteResult.from_dict(entry)
        return None

    def clear(self) -> None:
        self._store.delete(RESULTS_KEY)
        logger.info("実行結果の履歴を削除しました")

    def export_json(self, result_id: Optional[str] = None) -> str:
        """結果を JSON 文字列として出力する。

        Args:
            result_id: 指定時はその結果のみ、未指定時は履歴全体

        Raises:
            KeyError: 指定 ID の結果が存在しない場合
        """
        if result_id is None:
            payload = self._store.get(RESULTS_KEY) or []
        else:
            suite = self.get(result_id)
            if suite is None:
                raise KeyError(result_id)
            payload = suite.to_dict()
        return json.dumps(payload, ensure_ascii=False, indent=2)
