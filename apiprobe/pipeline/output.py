"""JSON report writer.

Serializes the run Report into the single document persisted at the end of
a run. A re-run overwrites the previous document in place.
"""

import json
from pathlib import Path
from typing import Any, Dict, List

from apiprobe.models.data_models import ProbeOutcome, Report


class JSONReportFormatter:
    """
    Formats a Report as JSON.

    Example output structure:
    {
        "generated_at": "2024-01-01T12:00:00+00:00",
        "total_count": 4,
        "success_count": 1,
        "no_data_count": 1,
        "failed_count": 2,
        "total_elapsed_ms": 1012,
        "results": [
            {
                "key": "site_a",
                "name": "Site A",
                "api": "https://a.example.com/api.php/provide/vod",
                "status": "success",
                "http_status": 200,
                "elapsed_ms": 132,
                "item_count": 20,
                "has_usable_data": true,
                "error": null
            }
        ]
    }
    """

    def format(self, report: Report) -> Dict[str, Any]:
        """
        Format report as a JSON-serializable dictionary.

        Args:
            report: Completed run report

        Returns:
            Dictionary with summary counts and per-endpoint results
        """
        return {
            "generated_at": report.generated_at,
            "total_count": report.total_count,
            "success_count": report.success_count,
            "no_data_count": report.no_data_count,
            "failed_count": report.failed_count,
            "total_elapsed_ms": report.total_elapsed_ms,
            "results": self._format_results(report.results)
        }

    def _format_results(self, results) -> List[Dict[str, Any]]:
        return [self._format_outcome(outcome) for outcome in results]

    def _format_outcome(self, outcome: ProbeOutcome) -> Dict[str, Any]:
        return {
            "key": outcome.key,
            "name": outcome.name,
            "api": outcome.api,
            "status": outcome.status.value,
            "http_status": outcome.http_status,
            "elapsed_ms": outcome.elapsed_ms,
            "item_count": outcome.item_count,
            "has_usable_data": outcome.has_usable_data,
            "error": outcome.error_message
        }

    def dumps(self, report: Report) -> str:
        return json.dumps(self.format(report), indent=2, ensure_ascii=False)

    def save(self, report: Report, path: str = "api-test-report.json") -> None:
        """
        Save formatted report to a JSON file.

        Creates parent directories if they don't exist.

        Args:
            report: Report to save
            path: Output file path
        """
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(self.dumps(report))
            f.write("\n")
