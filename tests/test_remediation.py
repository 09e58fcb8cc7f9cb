from typing import List

import pytest

from gce_deploy import models, remediation
from gce_deploy.audit_checks import (
    CREDENTIALS_ENV_VAR,
    ISSUE_API_DISABLED,
    ISSUE_ENV_VAR_MISSING,
    ISSUE_ROLE_MISSING,
    ISSUE_SERVICE_ACCOUNT_MISSING,
    AuditContext,
)
from gce_deploy.config import DeploymentConfig
from gce_deploy.models import Category


def _ctx(tmp_path, environ=None) -> AuditContext:
    return AuditContext(
        cfg=DeploymentConfig(project_id="test-project"),
        base_dir=str(tmp_path),
        environ=environ if environ is not None else {},
    )


def test_plan_is_pure_and_orders_service_account_first(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    def fail(*args, **kwargs):  # noqa: ANN002, ANN003
        raise AssertionError("planning must not call gcloud")

    monkeypatch.setattr(remediation.gcp_iam, "grant_role", fail)
    monkeypatch.setattr(remediation.gcp_iam, "create_service_account", fail)
    monkeypatch.setattr(remediation.gcp_project, "enable_api", fail)

    results = [
        (Category.SERVICE_ACCOUNT, "roles/cloudsql.client",
         models.error("x", issue=ISSUE_ROLE_MISSING, role="roles/cloudsql.client")),
        (Category.APIS, "compute.googleapis.com",
         models.error("x", issue=ISSUE_API_DISABLED, api="compute.googleapis.com")),
        (Category.SERVICE_ACCOUNT, "exists", models.error("x", issue=ISSUE_SERVICE_ACCOUNT_MISSING)),
        (Category.BILLING, "billing_enabled", models.error("billing off")),
        (Category.APIS, "logging.googleapis.com", models.ok("on")),
    ]

    plans = remediation.plan_remediations(results, _ctx(tmp_path))

    assert [p.issue for p in plans] == [
        ISSUE_SERVICE_ACCOUNT_MISSING,
        ISSUE_API_DISABLED,
        ISSUE_ROLE_MISSING,
    ]


def test_apply_captures_failures(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    granted: List[str] = []

    def grant(cfg: DeploymentConfig, role: str) -> None:  # noqa: ARG001
        if role == "roles/bad":
            raise RuntimeError("PERMISSION_DENIED")
        granted.append(role)

    monkeypatch.setattr(remediation.gcp_iam, "grant_role", grant)
    results = [
        (Category.SERVICE_ACCOUNT, "roles/bad", models.error("x", issue=ISSUE_ROLE_MISSING, role="roles/bad")),
        (Category.SERVICE_ACCOUNT, "roles/good", models.error("x", issue=ISSUE_ROLE_MISSING, role="roles/good")),
    ]

    outcomes = remediation.apply_remediations(remediation.plan_remediations(results, _ctx(tmp_path)))

    assert [o.succeeded for o in outcomes] == [False, True]
    assert "PERMISSION_DENIED" in outcomes[0].message
    assert granted == ["roles/good"]


def test_env_var_fix_sets_process_env_and_persists(tmp_path) -> None:
    environ: dict = {}
    key_path = str(tmp_path / "credentials.json")
    results = [
        (Category.CREDENTIALS, "env_var",
         models.warning("x", issue=ISSUE_ENV_VAR_MISSING, path=key_path)),
    ]

    outcomes = remediation.apply_remediations(remediation.plan_remediations(results, _ctx(tmp_path, environ)))

    assert outcomes[0].succeeded
    assert environ[CREDENTIALS_ENV_VAR] == key_path
    persisted = (tmp_path / ".env.deploy").read_text(encoding="utf-8")
    assert CREDENTIALS_ENV_VAR in persisted
    assert key_path in persisted
