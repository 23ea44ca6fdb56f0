"""
Tests for dashboard reconciliation and data-quality scoring.
"""

from datetime import datetime, timedelta, timezone

import pytest

from hsse.reconciliation import (
    compute_quality_score,
    find_missing_sections,
    reconcile_dashboard,
)

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def _complete_dashboard(**overrides):
    data = {
        "incidents": [{"id": "i1"}, {"id": "i2"}],
        "actions": [{"id": "a1"}],
        "observations": [{"id": "o1"}],
        "kpi_indicators": {"trir": 1.2, "ltifr": 0.4},
        "last_updated": (NOW - timedelta(hours=1)).isoformat(),
    }
    data.update(overrides)
    return data


class TestMismatchDetection:
    def test_single_mismatch(self):
        report = reconcile_dashboard(
            dashboard_data=_complete_dashboard(kpi_indicators={"trir": 1.5}),
            kpi_values={"trir": 1.2},
            now=NOW,
        )
        mismatches = [i for i in report.issues if i.type == "mismatch"]
        assert len(mismatches) == 1
        issue = mismatches[0]
        assert issue.field == "trir"
        assert issue.source_value == 1.2
        assert issue.target_value == 1.5
        assert issue.severity == "warning"
        assert report.warning_issues == (issue,)

    def test_within_tolerance_is_not_a_mismatch(self):
        report = reconcile_dashboard(
            dashboard_data=_complete_dashboard(kpi_indicators={"trir": 1.205}),
            kpi_values={"trir": 1.2},
            now=NOW,
        )
        assert not report.has_issues

    def test_code_absent_from_dashboard_is_ignored(self):
        report = reconcile_dashboard(
            dashboard_data=_complete_dashboard(),
            kpi_values={"dart_rate": 9.9},
            now=NOW,
        )
        assert not report.has_issues

    def test_camel_case_payload(self):
        report = reconcile_dashboard(
            dashboard_data={
                "incidents": [1],
                "actions": [1],
                "observations": [1],
                "kpiIndicators": {"trir": 3.0},
                "lastUpdated": NOW.isoformat(),
            },
            kpi_values={"trir": 1.0},
            now=NOW,
        )
        assert [i.type for i in report.issues] == ["mismatch"]


class TestStalenessAndMissing:
    def test_stale_snapshot(self):
        report = reconcile_dashboard(
            dashboard_data=_complete_dashboard(last_updated=(NOW - timedelta(hours=25)).isoformat()),
            now=NOW,
        )
        stale = [i for i in report.issues if i.type == "stale"]
        assert len(stale) == 1
        assert stale[0].severity == "info"
        assert report.quality_score.timeliness == 70

    def test_fresh_snapshot_has_full_timeliness(self):
        report = reconcile_dashboard(dashboard_data=_complete_dashboard(), now=NOW)
        assert report.quality_score.timeliness == 100

    def test_missing_and_empty_sections(self):
        issues = find_missing_sections({"incidents": [], "actions": [{"id": "a1"}]})
        assert [i.field for i in issues] == ["incidents", "observations"]
        assert all(i.severity == "info" for i in issues)

    def test_no_dashboard_data_degrades_without_raising(self):
        report = reconcile_dashboard(now=NOW)
        assert [i.field for i in report.issues] == ["incidents", "actions", "observations"]
        assert report.quality_score.completeness == 0
        assert report.quality_score.consistency == 100
        assert report.quality_score.timeliness == 100
        assert report.quality_score.overall == 67
        assert report.has_issues
        assert not report.has_errors


class TestExecutiveCrossCheck:
    def test_incident_total_disagreement_is_error(self):
        report = reconcile_dashboard(
            dashboard_data=_complete_dashboard(),
            executive_data={"totalIncidents": 5},
            now=NOW,
        )
        assert report.has_errors
        (issue,) = report.error_issues
        assert issue.type == "inconsistent"
        assert issue.source_value == 5
        assert issue.target_value == 2
        assert report.quality_score.consistency == 90

    def test_incident_total_agreement(self):
        report = reconcile_dashboard(
            dashboard_data=_complete_dashboard(),
            executive_data={"total_incidents": 2},
            now=NOW,
        )
        assert not report.has_errors


class TestQualityScore:
    def test_complete_and_consistent(self):
        report = reconcile_dashboard(dashboard_data=_complete_dashboard(), now=NOW)
        score = report.quality_score
        assert (score.completeness, score.consistency, score.timeliness, score.overall) == (100, 100, 100, 100)

    def test_consistency_floors_at_zero(self):
        indicators = {f"kpi_{n}": 100.0 for n in range(12)}
        report = reconcile_dashboard(
            dashboard_data=_complete_dashboard(kpi_indicators=indicators),
            kpi_values={code: 0.0 for code in indicators},
            now=NOW,
        )
        assert report.quality_score.consistency == 0

    def test_overall_is_rounded_mean(self):
        # 3 of 5 fields present -> 60, one mismatch -> 90, fresh -> 100
        data = {"incidents": [1], "kpi_indicators": {"trir": 2.0}, "last_updated": NOW.isoformat()}
        score = compute_quality_score(data, reconcile_dashboard(data, {"trir": 1.0}, now=NOW).issues)
        assert score.completeness == 60
        assert score.consistency == 90
        assert score.overall == round((60 + 90 + 100) / 3)

    def test_deterministic(self):
        args = dict(dashboard_data=_complete_dashboard(kpi_indicators={"trir": 9}), kpi_values={"trir": 1}, now=NOW)
        assert reconcile_dashboard(**args) == reconcile_dashboard(**args)


class TestMalformedSnapshots:
    def test_non_mapping_indicators_are_ignored(self):
        report = reconcile_dashboard(
            dashboard_data=_complete_dashboard(kpi_indicators=["trir"]),
            kpi_values={"trir": 1.0},
            now=NOW,
        )
        assert [i for i in report.issues if i.type == "mismatch"] == []

    def test_non_mapping_kpi_values_are_ignored(self):
        report = reconcile_dashboard(dashboard_data=_complete_dashboard(), kpi_values=[1, 2], now=NOW)
        assert not report.has_issues

    @pytest.mark.parametrize("total", ["nan", float("nan"), float("inf"), "1e400", "-inf", True])
    def test_non_finite_executive_total_is_skipped(self, total):
        report = reconcile_dashboard(
            dashboard_data=_complete_dashboard(),
            executive_data={"total_incidents": total},
            now=NOW,
        )
        assert not report.has_errors

    def test_non_finite_kpi_values_are_skipped(self):
        report = reconcile_dashboard(
            dashboard_data=_complete_dashboard(kpi_indicators={"trir": float("inf")}),
            kpi_values={"trir": "nan"},
            now=NOW,
        )
        assert not report.has_issues

    def test_non_mapping_dashboard_degrades(self):
        report = reconcile_dashboard(dashboard_data=["not", "a", "dict"], now=NOW)
        assert report.quality_score.completeness == 0
        assert len(report.info_issues) == 3

    def test_trailing_z_timestamp_detects_staleness(self):
        stale = (NOW - timedelta(hours=30)).strftime("%Y-%m-%dT%H:%M:%SZ")
        report = reconcile_dashboard(dashboard_data=_complete_dashboard(last_updated=stale), now=NOW)
        assert [i.type for i in report.issues] == ["stale"]
