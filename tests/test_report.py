from datetime import datetime

from gce_deploy import models
from gce_deploy.models import Category, ReportBuilder, RemediationOutcome
from gce_deploy.report import recommendations, render_report, report_filename, save_report


def _report(with_fix: bool = False) -> models.VerificationReport:
    builder = ReportBuilder("test-project", "staging")
    builder.add(Category.PREREQUISITES, "gcloud", models.ok("gcloud 설치됨", version="470.0.0"))
    builder.add(
        Category.APIS,
        "compute.googleapis.com",
        models.error("비활성화", hint="`gcloud services enable compute.googleapis.com`"),
    )
    builder.add(
        Category.APIS,
        "sqladmin.googleapis.com",
        models.error("비활성화", hint="`gcloud services enable compute.googleapis.com`"),
    )
    builder.add(Category.CONFIGURATION, "config", models.warning("선택 파일 없음"))
    if with_fix:
        builder.add_remediation(
            RemediationOutcome(Category.APIS, "compute.googleapis.com", "API 활성화", True)
        )
    return builder.build(generated_at=datetime(2026, 3, 4, 5, 6, 7))


def test_render_detailed_lists_all_checks_and_summary() -> None:
    text = render_report(_report(), "detailed")

    assert "## Prerequisites: 1/1 (100.0%)" in text
    assert "## APIs: 0/2 (0.0%)" in text
    assert "## Billing: 0/0 (0.0%)" in text
    assert "[OK] gcloud" in text
    assert "[WARN] config" in text
    assert "Overall: NEEDS ATTENTION - 25.0% (1/4 통과)" in text
    assert "## References" in text


def test_render_basic_hides_passing_checks() -> None:
    text = render_report(_report(), "basic")

    assert "[OK] gcloud" not in text
    assert "[ERROR] compute.googleapis.com" in text


def test_render_full_includes_detail_fields() -> None:
    text = render_report(_report(), "full")

    assert "version: 470.0.0" in text


def test_recommendations_are_deduplicated() -> None:
    recs = recommendations(_report())

    assert len(recs) == 1
    assert recs[0].startswith("[APIs/compute.googleapis.com]")


def test_remediation_outcomes_are_rendered() -> None:
    text = render_report(_report(with_fix=True))

    assert "Auto-fix" in text
    assert "[OK] API 활성화" in text


def test_save_report_uses_timestamped_name(tmp_path) -> None:
    report = _report()
    text = render_report(report)

    path = save_report(report, text, str(tmp_path / "reports"))

    assert report_filename(report) == "verification_report_test-project_20260304_050607.txt"
    assert path.endswith(report_filename(report))
    with open(path, encoding="utf-8") as f:
        assert f.read() == text
