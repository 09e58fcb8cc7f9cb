from typing import List

import pytest

from gce_deploy import gcp_project
from gce_deploy.config import DeploymentConfig
from gce_deploy.errors import CommandFailedError, ResourceNotFoundError
from gce_deploy.models import CheckStatus
from gce_deploy.subprocess_utils import RunResult


def _cfg() -> DeploymentConfig:
    return DeploymentConfig(project_id="test-project")


def test_enable_api_is_idempotent(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: List[list[str]] = []

    def fake_run(cmd: list[str]) -> RunResult:
        calls.append(cmd)
        # 이미 켜져 있는 API 도 gcloud 는 exit 0 으로 끝난다.
        return RunResult(returncode=0, stdout="", stderr="")

    monkeypatch.setattr(gcp_project, "_run", fake_run)

    first = gcp_project.enable_api(_cfg(), "compute.googleapis.com")
    second = gcp_project.enable_api(_cfg(), "compute.googleapis.com")

    assert first.status is CheckStatus.OK
    assert second == first
    assert len(calls) == 2


def test_enable_apis_stops_on_failure_with_tool_text(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(cmd: list[str]) -> RunResult:
        if cmd[3] == "sqladmin.googleapis.com":
            raise CommandFailedError("failed", returncode=1, stderr="PERMISSION_DENIED: billing required")
        return RunResult(returncode=0, stdout="", stderr="")

    monkeypatch.setattr(gcp_project, "_run", fake_run)

    with pytest.raises(CommandFailedError) as excinfo:
        gcp_project.enable_apis(_cfg())

    assert "sqladmin.googleapis.com" in str(excinfo.value)
    assert "PERMISSION_DENIED" in excinfo.value.stderr


def test_list_enabled_apis_parses_names(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        gcp_project,
        "_run",
        lambda cmd: RunResult(returncode=0, stdout="compute.googleapis.com\n\nsqladmin.googleapis.com\n", stderr=""),
    )

    assert gcp_project.list_enabled_apis(_cfg()) == {"compute.googleapis.com", "sqladmin.googleapis.com"}


def test_describe_project_not_found(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(cmd: list[str]) -> RunResult:
        raise CommandFailedError("x", returncode=1, stderr="ERROR: NOT_FOUND: project")

    monkeypatch.setattr(gcp_project, "_run", fake_run)

    with pytest.raises(ResourceNotFoundError):
        gcp_project.describe_project(_cfg())
