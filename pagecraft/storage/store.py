"""
キーバリューストア — 永続化の最下層

ProjectManager / ResultsStore が使用するキーバリューストアを提供する。
値は JSON 互換の dict / list / str / 数値 / None に限る。

主な機能:
  - KeyValueStore: ストアの Protocol（get / set / delete / keys）
  - MemoryStore: プロセス内の辞書ストア（テスト・一時利用向け）
  - YamlFileStore: ruamel.yaml による単一 YAML ファイルのストア
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """キーバリューストアの Protocol。"""

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryStore:
    """辞書によるインメモリストア。

    get() はコピーを返すため、呼び出し側の変更はストアに反映されない。
    """

    def __init__(self, initial: Optional[dict[str, Any]] = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


def _to_plain(data: Any) -> Any:
    """ruamel.yaml の CommentedMap/CommentedSeq を通常の dict/list に再帰変換する。"""
    if isinstance(data, dict):
        return {str(key): _to_plain(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_to_plain(item) for item in data]
    return data


class YamlFileStore:
    """単一の YAML ファイルに全キーを保存するストア。

    set() / delete() のたびにファイル全体を書き直す（最後の書き込みが優先）。

    Args:
        path: YAML ファイルのパス。存在しない場合は最初の書き込みで作成する
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._yaml = YAML()
        self._yaml.default_flow_style = False
        self._yaml.allow_unicode = True
        self._data: dict[str, Any] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
        self._flush()

    def delete(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._flush()

    def keys(self) -> list[str]:
        return list(self._data)

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = self._yaml.load(f)
        except YAMLError as e:
            line_info = ""
            if hasattr(e, "problem_mark") and e.problem_mark is not None:
                mark = e.problem_mark
                line_info = f" (行 {mark.line + 1}, 列 {mark.column + 1})"
            raise ValueError(f"ストアファイルの YAML 構文エラー{line_info}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"ストアファイルの形式が不正です（マッピングではありません）: {self._path}")
        logger.debug("ストアを読み込みました: %s (%d キー)", self._path, len(data))
        return _to_plain(data)

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as f:
            self._yaml.dump(self._data, f)
