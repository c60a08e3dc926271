"""
エラー定義 — pagecraft 全体で使用する例外クラス

主な機能:
  - PagecraftError: 全例外の基底クラス
  - 要素解決・アクション実行・データモデル・コード生成・メッセージングの各例外

いずれの例外もプロセスを停止させるものではない。
Replay / Runner はこれらを捕捉して結果レコードに変換する。
"""

from __future__ import annotations


class PagecraftError(Exception):
    """pagecraft の全例外の基底クラス。"""


# ---------------------------------------------------------------------------
# セレクタ・要素解決
# ---------------------------------------------------------------------------

class InvalidSelectorError(PagecraftError):
    """CSS セレクタの構文が不正な場合に送出される例外。

    SelectorEngine 内部ではユニーク性チェックの失敗として扱い、
    呼び出し元には伝播しない。
    """

    def __init__(self, selector: str, reason: str = "") -> None:
        self.selector = selector
        self.reason = reason
        message = f"不正なセレクタです: {selector}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class ElementNotFoundError(PagecraftError):
    """セレクタに一致する要素が見つからない場合に送出される例外。"""

    def __init__(self, selector: str) -> None:
        self.selector = selector
        super().__init__("Element not found")


class ActionExecutionError(PagecraftError):
    """要素へのアクション実行に失敗した場合に送出される例外。"""

    def __init__(self, action: str, message: str) -> None:
        self.action = action
        super().__init__(message)


# ---------------------------------------------------------------------------
# データモデル・ストア
# ---------------------------------------------------------------------------

class DuplicateTestCaseNameError(PagecraftError):
    """同名のテストケースが既に存在する場合に送出される例外。"""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Test case '{name}' already exists")


class ProjectNotFoundError(PagecraftError):
    """指定 ID のプロジェクトが存在しない場合に送出される例外。"""

    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class PageObjectNotFoundError(PagecraftError):
    """指定名のページオブジェクトが存在しない場合に送出される例外。"""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Page object not found: {name}")


class TestSpecNotFoundError(PagecraftError):
    """指定名のテストスペックが存在しない場合に送出される例外。"""

    __test__ = False

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Test spec not found: {name}")


# ---------------------------------------------------------------------------
# コード生成・メッセージング
# ---------------------------------------------------------------------------

class UnsupportedCombinationError(PagecraftError):
    """(tool, language) の組み合わせに対応するジェネレータがない場合の例外。"""

    def __init__(self, tool: str, language: str) -> None:
        self.tool = tool
        self.language = language
        super().__init__(f"No generator found for {tool} / {language}")


class UnhandledMessageError(PagecraftError):
    """リクエストに応答するハンドラが登録されていない場合の例外。"""

    def __init__(self, message_type: str) -> None:
        self.message_type = message_type
        super().__init__(f"ハンドラが登録されていないメッセージです: {message_type}")


class SessionStateError(PagecraftError):
    """セッションの状態が操作を受け付けない場合の例外。"""

    def __init__(self, state: str, operation: str) -> None:
        self.state = state
        self.operation = operation
        super().__init__(f"セッションが {state} 状態のため {operation} を実行できません")
