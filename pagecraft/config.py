"""
アプリケーション設定 — 環境変数・CLI オプションからの設定読み込み

CLI オプション > 環境変数 > デフォルト値 の優先順位で適用される。

環境変数一覧:
  PAGECRAFT_HEADED          : ブラウザ表示モード（true/false, デフォルト: false）
  PAGECRAFT_STORE_PATH      : プロジェクト・結果の保存先 YAML（デフォルト: .pagecraft/store.yaml）
  PAGECRAFT_ARTIFACTS_DIR   : 成果物ディレクトリ（デフォルト: artifacts）
  PAGECRAFT_STEP_DELAY      : 再生時のステップ間待機秒数（デフォルト: 1.0）
  PAGECRAFT_HIGHLIGHT_MS    : 再生時の要素ハイライト時間（デフォルト: 800）
  PAGECRAFT_MAX_HISTORY     : 保持する実行結果の件数（デフォルト: 10）
  PAGECRAFT_VIEWPORT_WIDTH  : ビューポート幅（デフォルト: 1280）
  PAGECRAFT_VIEWPORT_HEIGHT : ビューポート高さ（デフォルト: 720）
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# 環境変数キー定数
# ---------------------------------------------------------------------------

_ENV_HEADED = "PAGECRAFT_HEADED"
_ENV_STORE_PATH = "PAGECRAFT_STORE_PATH"
_ENV_ARTIFACTS_DIR = "PAGECRAFT_ARTIFACTS_DIR"
_ENV_STEP_DELAY = "PAGECRAFT_STEP_DELAY"
_ENV_HIGHLIGHT_MS = "PAGECRAFT_HIGHLIGHT_MS"
_ENV_MAX_HISTORY = "PAGECRAFT_MAX_HISTORY"
_ENV_VIEWPORT_WIDTH = "PAGECRAFT_VIEWPORT_WIDTH"
_ENV_VIEWPORT_HEIGHT = "PAGECRAFT_VIEWPORT_HEIGHT"


# ---------------------------------------------------------------------------
# 設定データクラス
# ---------------------------------------------------------------------------

@dataclass
class AppConfig:
    """pagecraft の実行時設定。

    Attributes:
        headed: ブラウザ表示モード（True=表示, False=ヘッドレス）
        store_path: プロジェクト・実行結果を保存する YAML ファイル
        artifacts_dir: スクリーンショット・レポートの出力先
        step_delay: 再生時のステップ間待機秒数
        highlight_ms: 再生時の要素ハイライト時間（ミリ秒）
        max_history: 保持する実行結果の件数
        viewport_width: ビューポート幅
        viewport_height: ビューポート高さ
    """

    headed: bool = False
    store_path: str = ".pagecraft/store.yaml"
    artifacts_dir: str = "artifacts"
    step_delay: float = 1.0
    highlight_ms: int = 800
    max_history: int = 10
    viewport_width: int = 1280
    viewport_height: int = 720

    @property
    def viewport(self) -> dict[str, int]:
        return {"width": self.viewport_width, "height": self.viewport_height}


# ---------------------------------------------------------------------------
# 環境変数からの読み込み
# ---------------------------------------------------------------------------

def _parse_bool(value: str) -> bool:
    """"true", "1", "yes" → True、それ以外 → False。"""
    return value.lower() in ("true", "1", "yes")


def _parse_number(
    environ: Mapping[str, str],
    key: str,
    convert: Callable[[str], Any],
    minimum: float = 0,
) -> Optional[Any]:
    """数値の環境変数を変換する。不正な値は警告を出して None を返す。"""
    if key not in environ:
        return None
    raw = environ[key]
    try:
        value = convert(raw)
    except ValueError:
        logger.warning("%s の値が不正です: %s", key, raw)
        return None
    if value < minimum:
        logger.warning("%s の値が範囲外です: %s", key, raw)
        return None
    return value


def load_config_from_env(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """環境変数から AppConfig を生成する。

    設定されていない環境変数・不正な値の環境変数はデフォルト値を使用する。

    Args:
        environ: 参照する環境変数（未指定時は os.environ）

    Returns:
        環境変数から読み込んだ設定
    """
    env = os.environ if environ is None else environ
    config = AppConfig()

    if _ENV_HEADED in env:
        config.headed = _parse_bool(env[_ENV_HEADED])

    if _ENV_STORE_PATH in env:
        config.store_path = env[_ENV_STORE_PATH]

    if _ENV_ARTIFACTS_DIR in env:
        config.artifacts_dir = env[_ENV_ARTIFACTS_DIR]

    step_delay = _parse_number(env, _ENV_STEP_DELAY, float)
    if step_delay is not None:
        config.step_delay = step_delay

    highlight_ms = _parse_number(env, _ENV_HIGHLIGHT_MS, int)
    if highlight_ms is not None:
        config.highlight_ms = highlight_ms

    max_history = _parse_number(env, _ENV_MAX_HISTORY, int, minimum=1)
    if max_history is not None:
        config.max_history = max_history

    width = _parse_number(env, _ENV_VIEWPORT_WIDTH, int, minimum=1)
    if width is not None:
        config.viewport_width = width

    height = _parse_number(env, _ENV_VIEWPORT_HEIGHT, int, minimum=1)
    if height is not None:
        config.viewport_height = height

    logger.debug("設定を読み込みました: %s", config)
    return config


def apply_overrides(config: AppConfig, **overrides: Any) -> AppConfig:
    """CLI オプションを AppConfig に適用する。

    値が None のオプションは無視する（環境変数・デフォルト値を維持）。

    Args:
        config: ベースとなる設定（環境変数から読み込み済み）
        **overrides: AppConfig のフィールド名と値

    Returns:
        オプションが適用された設定

    Raises:
        AttributeError: AppConfig にないフィールド名が渡された場合
    """
    for name, value in overrides.items():
        if not hasattr(config, name):
            raise AttributeError(f"不明な設定項目です: {name}")
        if value is not None:
            setattr(config, name, value)
    return config
