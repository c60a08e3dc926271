"""
変数展開 — データ駆動テストの ${key} 展開

データ駆動のテストケースでは、行ごとにステップの値の中の変数参照を展開して実行する。

サポートする構文:
  - ${key}     → データ行の値
  - ${env.X}   → 環境変数辞書の値

未定義の変数を参照した場合は VariableNotFoundError を送出する。
"""

from __future__ import annotations

import re
from typing import Mapping, Optional

from ..errors import PagecraftError
from ..model.schema import Step

# ${env.X} または ${key} にマッチする正規表現
_VAR_PATTERN = re.compile(r"\$\{(?:(env)\.)?([a-zA-Z_][a-zA-Z0-9_]*)\}")

# 展開対象のステップフィールド
_EXPANDED_FIELDS = ("selector", "value", "url")


class VariableNotFoundError(PagecraftError):
    """未定義の変数が参照された場合に送出される例外。"""

    def __init__(self, reference: str) -> None:
        self.reference = reference
        super().__init__(f"未定義の変数が参照されました: ${{{reference}}}")


class VariableExpander:
    """テキスト内の変数参照を展開するエンジン。

    Args:
        row: データ行（${key} の参照先）
        env: 環境変数辞書（${env.X} の参照先）
    """

    def __init__(
        self,
        row: Optional[Mapping[str, str]] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._row: dict[str, str] = dict(row or {})
        self._env: dict[str, str] = dict(env or {})

    def expand(self, text: str) -> str:
        """テキスト内の変数参照を展開する。

        Raises:
            VariableNotFoundError: 未定義の変数が参照された場合
        """
        return _VAR_PATTERN.sub(self._replace_match, text)

    def expand_step(self, step: Step) -> Step:
        """selector / value / url を展開した新しい Step を返す。"""
        updates = {}
        for name in _EXPANDED_FIELDS:
            value = getattr(step, name)
            if isinstance(value, str) and "${" in value:
                updates[name] = self.expand(value)
        return step.model_copy(update=updates) if updates else step

    def _replace_match(self, match: re.Match) -> str:
        namespace, key = match.group(1), match.group(2)
        source = self._env if namespace == "env" else self._row
        if key not in source:
            raise VariableNotFoundError(f"{namespace}.{key}" if namespace else key)
        return str(source[key])
