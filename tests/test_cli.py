from datetime import datetime

import pytest
from click.testing import CliRunner

from gce_deploy import cli, models
from gce_deploy.models import Category, ReportBuilder
from gce_deploy.orchestrator import STAGE_ERROR, STAGE_OK, PipelineResult, StageOutcome


def _report(passed: int, failed: int) -> models.VerificationReport:
    builder = ReportBuilder("test-project", "development")
    for i in range(passed):
        builder.add(Category.APIS, f"ok-{i}", models.ok("ok"))
    for i in range(failed):
        builder.add(Category.APIS, f"bad-{i}", models.error("bad"))
    return builder.build(generated_at=datetime(2026, 1, 1, 0, 0, 0))


def test_plan_prints_tfvars(tmp_path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli.main, ["-C", str(tmp_path), "plan", "test-project", "-e", "production"])

    assert result.exit_code == 0, result.output
    assert 'instance_name = "app-production-vm"' in result.output


def test_invalid_project_id_exits_1(tmp_path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli.main, ["-C", str(tmp_path), "plan", "BAD"])

    assert result.exit_code == 1


@pytest.mark.parametrize("passed, failed, exit_code", [(1, 1, 0), (4, 6, 1), (10, 0, 0)])
def test_audit_exit_code_follows_fifty_percent(
    tmp_path, monkeypatch: pytest.MonkeyPatch, passed: int, failed: int, exit_code: int
) -> None:
    monkeypatch.setattr(cli, "run_audit", lambda ctx, fix=False, environment=None: _report(passed, failed))
    runner = CliRunner()

    result = runner.invoke(cli.main, ["-C", str(tmp_path), "audit", "test-project", "--detail-level", "basic"])

    assert result.exit_code == exit_code, result.output
    assert list(tmp_path.glob("verification_report_test-project_*.txt"))


def test_audit_passes_fix_flag(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    def fake_run_audit(ctx, fix=False, environment=None):  # noqa: ANN001
        seen["fix"] = fix
        seen["environment"] = environment
        return _report(1, 0)

    monkeypatch.setattr(cli, "run_audit", fake_run_audit)
    runner = CliRunner()

    result = runner.invoke(
        cli.main,
        ["-C", str(tmp_path), "audit", "test-project", "--fix", "-e", "prod-eu"],
    )

    assert result.exit_code == 0, result.output
    assert seen == {"fix": True, "environment": "prod-eu"}


def test_deploy_failure_exits_1(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run_deploy(cfg, base_dir=".", **kwargs):  # noqa: ANN001, ANN003
        return PipelineResult(
            project_id=cfg.project_id,
            environment=cfg.environment,
            stages=[StageOutcome("dependencies", STAGE_ERROR, "terraform 없음")],
        )

    monkeypatch.setattr(cli, "run_deploy", fake_run_deploy)
    runner = CliRunner()

    result = runner.invoke(cli.main, ["-C", str(tmp_path), "deploy", "test-project"])

    assert result.exit_code == 1
    assert "[ERROR] dependencies" in result.output


def test_destroy_flag_routes_to_destroy(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    def fake_run_destroy(cfg, base_dir=".", *, force=False):  # noqa: ANN001
        seen["force"] = force
        return PipelineResult(
            project_id=cfg.project_id,
            environment=cfg.environment,
            mode="destroy",
            stages=[StageOutcome("destroy", STAGE_OK)],
        )

    monkeypatch.setattr(cli, "run_destroy", fake_run_destroy)
    runner = CliRunner()

    result = runner.invoke(cli.main, ["-C", str(tmp_path), "deploy", "test-project", "--destroy", "--force"])

    assert result.exit_code == 0, result.output
    assert seen == {"force": True}
    assert "Destroy summary" in result.output


def test_audit_keeps_operator_credentials_over_container_env(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    operator_key = tmp_path / "operator-key.json"
    monkeypatch.setenv("GOOGLE_APPLICATION_CREDENTIALS", str(operator_key))
    (tmp_path / ".env").write_text("GOOGLE_APPLICATION_CREDENTIALS=/app/credentials.json\n", encoding="utf-8")
    seen = {}

    def fake_run_audit(ctx, fix=False, environment=None):  # noqa: ANN001
        seen["credentials"] = ctx.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
        return _report(1, 0)

    monkeypatch.setattr(cli, "run_audit", fake_run_audit)
    runner = CliRunner()

    result = runner.invoke(cli.main, ["-C", str(tmp_path), "audit", "test-project"])

    assert result.exit_code == 0, result.output
    assert seen["credentials"] == str(operator_key)
