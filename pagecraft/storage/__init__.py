# ストレージモジュール
# キーバリューストア、プロジェクト管理、実行結果の履歴を提供

from .projects import MigrationReport, ProjectManager, migrate_project_data
from .results import ResultsStore
from .store import KeyValueStore, MemoryStore, YamlFileStore

__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "MigrationReport",
    "ProjectManager",
    "ResultsStore",
    "YamlFileStore",
    "migrate_project_data",
]
