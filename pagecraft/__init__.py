# pagecraft パッケージ
# ページ要素の検出・操作の記録と再生・テスト実行・テストコード生成

__version__ = "0.1.0"
