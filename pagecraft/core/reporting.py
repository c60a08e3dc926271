"""
Reporter — テスト実行レポートの生成

SuiteResult を受け取り、JSON / HTML / JUnit XML 形式のレポートを生成する。

主な機能:
  - generate_json(): JSON レポート（report.json）の生成
  - generate_html(): Jinja2 テンプレートを使用した HTML レポート（report.html）の生成
  - generate_junit_xml(): JUnit XML レポート（junit.xml）の生成（CI 統合用）
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader

from .results import ExecutionStatus, SuiteResult, TestCaseResult

logger = logging.getLogger(__name__)

# テンプレートディレクトリのパス
_TEMPLATES_DIR = Path(__file__).parent.parent / "templates"


class Reporter:
    """テスト実行レポートの生成クラス。

    SuiteResult を受け取り、JSON / HTML / JUnit XML 形式で
    レポートファイルを出力する。
    """

    # -------------------------------------------------------------------
    # JSON レポート
    # -------------------------------------------------------------------

    def generate_json(self, suite: SuiteResult, output_dir: Path) -> Path:
        """JSON レポートを生成する。

        Args:
            suite: スイート実行結果
            output_dir: 出力先ディレクトリ

        Returns:
            生成された report.json のパス
        """
        output_dir.mkdir(parents=True, exist_ok=True)

        output_path = output_dir / "report.json"
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(self._build_report_dict(suite), f, ensure_ascii=False, indent=2)

        logger.info("JSON レポートを生成しました: %s", output_path)
        return output_path

    # -------------------------------------------------------------------
    # HTML レポート
    # -------------------------------------------------------------------

    def generate_html(self, suite: SuiteResult, output_dir: Path) -> Path:
        """HTML レポートを生成する。

        Jinja2 テンプレート（templates/report.html.j2）を使用して
        スタンドアロン HTML レポートを生成する。

        Args:
            suite: スイート実行結果
            output_dir: 出力先ディレクトリ

        Returns:
            生成された report.html のパス
        """
        output_dir.mkdir(parents=True, exist_ok=True)

        env = Environment(
            loader=FileSystemLoader(str(_TEMPLATES_DIR)),
            autoescape=True,
        )
        template = env.get_template("report.html.j2")
        html_content = template.render(report=self._build_report_dict(suite))

        output_path = output_dir / "report.html"
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(html_content)

        logger.info("HTML レポートを生成しました: %s", output_path)
        return output_path

    # -------------------------------------------------------------------
    # JUnit XML レポート
    # -------------------------------------------------------------------

    def generate_junit_xml(self, suite: SuiteResult, output_dir: Path) -> Path:
        """JUnit XML レポートを生成する。

        テストケース 1 件を testcase 要素 1 つとして出力する。

        Args:
            suite: スイート実行結果
            output_dir: 出力先ディレクトリ

        Returns:
            生成された junit.xml のパス
        """
        output_dir.mkdir(parents=True, exist_ok=True)

        testsuites = ET.Element("testsuites")
        testsuite = ET.SubElement(testsuites, "testsuite")
        testsuite.set("name", suite.suite_name)
        testsuite.set("tests", str(suite.total))
        testsuite.set("failures", str(suite.failed))
        testsuite.set("skipped", str(suite.skipped + suite.cancelled))
        testsuite.set("time", f"{suite.duration_ms / 1000:.3f}")
        testsuite.set("timestamp", suite.timestamp.isoformat(timespec="seconds"))

        for case in suite.test_cases:
            testcase = ET.SubElement(testsuite, "testcase")
            testcase.set("name", case.name)
            testcase.set("classname", suite.suite_name)
            testcase.set("time", f"{case.duration_ms / 1000:.3f}")

            if case.status == ExecutionStatus.FAILED:
                failure = ET.SubElement(testcase, "failure")
                failure.set("message", case.error or "failed")
                failure.text = self._failure_detail(case)
            elif case.status in (ExecutionStatus.SKIPPED, ExecutionStatus.CANCELLED):
                skipped = ET.SubElement(testcase, "skipped")
                skipped.set("message", case.status.value)

        tree = ET.ElementTree(testsuites)
        output_path = output_dir / "junit.xml"
        ET.indent(tree, space="  ")
        tree.write(
            str(output_path),
            encoding="unicode",
            xml_declaration=True,
        )

        logger.info("JUnit XML レポートを生成しました: %s", output_path)
        return output_path

    # -------------------------------------------------------------------
    # 内部ヘルパー
    # -------------------------------------------------------------------

    def _build_report_dict(self, suite: SuiteResult) -> dict[str, Any]:
        report = suite.to_dict()
        report["summary"] = {
            "total": suite.total,
            "passed": suite.passed,
            "failed": suite.failed,
            "skipped": suite.skipped,
            "cancelled": suite.cancelled,
        }
        return report

    @staticmethod
    def _failure_detail(case: TestCaseResult) -> str:
        lines = []
        for step in case.steps:
            if step.status == ExecutionStatus.FAILED:
                lines.append(f"Step {step.index} ({step.action} {step.element or ''}): {step.error}")
        return "\n".join(lines) or (case.error or "")
