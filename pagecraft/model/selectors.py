"""
セレクタモデル — セレクタ候補とタグ付きセレクタ

要素を特定するためのセレクタ表現を Pydantic v2 モデルで定義する。

主な機能:
  - SelectorKind: セレクタ種別と固定スコア表
  - SelectorCandidate: 種別・値・スコアを持つセレクタ候補
  - CssSelector / RoleSelector / TextSelector: タグ付きセレクタ
  - parse_selector(): 文字列トークン（role=... / text=... / CSS）の解析

文字列トークンの形式:
  - role=<role>[name="<name>"]
  - text="<text>"（旧形式の text=<text> も受け付ける）
  - 上記以外はそのまま CSS セレクタとして扱う
"""

from __future__ import annotations

import enum
import re
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# セレクタ種別とスコア
# ---------------------------------------------------------------------------

class SelectorKind(str, enum.Enum):
    """セレクタ種別。値は保存形式の文字列。"""

    DATA_TESTID = "data-testid"
    ROLE = "role"
    ID = "id"
    NAME = "name"
    TEXT = "text"
    CLASS = "class"
    CSS = "css"
    XPATH = "xpath"


SELECTOR_SCORES: dict[SelectorKind, int] = {
    SelectorKind.DATA_TESTID: 100,
    SelectorKind.ROLE: 80,
    SelectorKind.ID: 60,
    SelectorKind.NAME: 50,
    SelectorKind.TEXT: 40,
    SelectorKind.CLASS: 20,
    SelectorKind.CSS: 10,
    SelectorKind.XPATH: 5,
}


class SelectorCandidate(BaseModel):
    """セレクタ候補。

    score は常に kind の固定スコアと一致する。
    入力で score が指定されていても kind から再計算される。
    """

    model_config = ConfigDict(frozen=True)

    kind: SelectorKind = Field(..., description="セレクタ種別")
    value: str = Field(..., description="セレクタ文字列（CSS またはトークン）")
    score: int = Field(default=0, description="安定性スコア（kind から決定）")
    details: dict[str, Any] = Field(default_factory=dict, description="補足情報")

    @model_validator(mode="before")
    @classmethod
    def _apply_score(cls, data: Any) -> Any:
        """kind に対応する固定スコアを設定する。"""
        if isinstance(data, dict) and "kind" in data:
            data = dict(data)
            data["score"] = SELECTOR_SCORES[SelectorKind(data["kind"])]
        return data

    @classmethod
    def of(cls, kind: SelectorKind, value: str, **details: Any) -> SelectorCandidate:
        """種別と値から候補を生成するショートカット。"""
        return cls(kind=kind, value=value, details=details)

    @property
    def is_legacy(self) -> bool:
        """旧形式の文字列セレクタから変換された候補か。"""
        return bool(self.details.get("legacy"))

    def to_selector(self) -> Selector:
        """タグ付きセレクタに変換する。"""
        return parse_selector(self.value)


def coerce_candidate(value: Any) -> SelectorCandidate:
    """旧形式を含む任意のセレクタ表現を SelectorCandidate に変換する。

    受け付ける形式:
      - SelectorCandidate: そのまま返す
      - 文字列: kind=css の候補（details.legacy=True）
      - {"kind": ..., "value": ...}: そのまま検証
      - {"type": ..., "value": ...}: 旧保存形式。未知の type は css として扱う
      - {"selector": ...}: 旧保存形式。kind=css として扱う

    Args:
        value: セレクタ表現

    Returns:
        変換後の SelectorCandidate

    Raises:
        ValueError: 変換できない形式の場合
    """
    if isinstance(value, SelectorCandidate):
        return value

    if isinstance(value, str):
        return SelectorCandidate.of(SelectorKind.CSS, value, legacy=True)

    if isinstance(value, dict):
        if "kind" in value:
            return SelectorCandidate.model_validate(value)
        raw_value = value.get("value") or value.get("selector")
        if isinstance(raw_value, str) and raw_value:
            try:
                kind = SelectorKind(value.get("type", "css"))
            except ValueError:
                kind = SelectorKind.CSS
            return SelectorCandidate.of(kind, raw_value, legacy=True)

    raise ValueError(f"セレクタに変換できない値です: {value!r}")


# ---------------------------------------------------------------------------
# タグ付きセレクタ
# ---------------------------------------------------------------------------

class CssSelector(BaseModel):
    """CSS セレクタをそのまま使用するセレクタ。"""

    model_config = ConfigDict(frozen=True)

    kind: Literal["css"] = "css"
    css: str = Field(..., description="CSS セレクタ文字列")

    def to_token(self) -> str:
        return self.css


class RoleSelector(BaseModel):
    """ARIA ロールとアクセシブルネームによるセレクタ。"""

    model_config = ConfigDict(frozen=True)

    kind: Literal["role"] = "role"
    role: str = Field(..., description="ARIA ロール名（button, link 等）")
    name: str = Field(..., description="アクセシブルネーム")

    def to_token(self) -> str:
        return f'role={self.role}[name="{_escape_token(self.name)}"]'


class TextSelector(BaseModel):
    """表示テキストの完全一致によるセレクタ。"""

    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str = Field(..., description="トリム済みの表示テキスト")

    def to_token(self) -> str:
        return f'text="{_escape_token(self.text)}"'


Selector = Annotated[
    Union[CssSelector, RoleSelector, TextSelector],
    Field(discriminator="kind"),
]


_ROLE_TOKEN_RE = re.compile(r'^role=([\w-]+)\[name="(.*)"\]$', re.DOTALL)
_QUOTED_TEXT_RE = re.compile(r'^text="(.*)"$', re.DOTALL)


def _escape_token(value: str) -> str:
    """トークン内の引用符をエスケープする。"""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _unescape_token(value: str) -> str:
    """_escape_token の逆変換。"""
    return re.sub(r"\\(.)", r"\1", value, flags=re.DOTALL)


def parse_selector(token: str) -> Union[CssSelector, RoleSelector, TextSelector]:
    """セレクタ文字列をタグ付きセレクタに変換する。

    Args:
        token: role= / text= トークン、または CSS セレクタ

    Returns:
        対応するセレクタモデル
    """
    m = _ROLE_TOKEN_RE.match(token)
    if m:
        return RoleSelector(role=m.group(1), name=_unescape_token(m.group(2)))

    m = _QUOTED_TEXT_RE.match(token)
    if m:
        return TextSelector(text=_unescape_token(m.group(1)))

    if token.startswith("text="):
        return TextSelector(text=token[len("text="):])

    return CssSelector(css=token)
