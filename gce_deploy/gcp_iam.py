"""
gcp_iam
-------

애플리케이션 VM 이 사용하는 서비스 계정과 IAM 역할을 조회/부여한다.
"""

from __future__ import annotations

from typing import List, Set

from .config import DeploymentConfig
from .errors import CommandFailedError
from .logging_utils import get_logger
from .subprocess_utils import RunResult, run_command


logger = get_logger(__name__)


REQUIRED_ROLES: List[str] = [
    "roles/compute.instanceAdmin.v1",
    "roles/cloudsql.client",
    "roles/storage.objectAdmin",
    "roles/secretmanager.secretAccessor",
    "roles/logging.logWriter",
    "roles/monitoring.metricWriter",
]


def _run(cmd: list[str]) -> RunResult:
    return run_command(cmd)


def service_account_exists(cfg: DeploymentConfig) -> bool:
    try:
        _run([
            "gcloud",
            "iam",
            "service-accounts",
            "describe",
            cfg.service_account_email,
            f"--project={cfg.project_id}",
            "--quiet",
        ])
    except CommandFailedError as e:
        stderr = e.stderr or ""
        if "NOT_FOUND" in stderr or "not found" in stderr.lower() or "does not exist" in stderr:
            return False
        raise
    return True


def get_service_account_roles(cfg: DeploymentConfig) -> Set[str]:
    """
    프로젝트 IAM 정책에서 서비스 계정에 바인딩된 역할 목록.
    """
    result = _run([
        "gcloud",
        "projects",
        "get-iam-policy",
        cfg.project_id,
        "--flatten=bindings[].members",
        f"--filter=bindings.members:serviceAccount:{cfg.service_account_email}",
        "--format=value(bindings.role)",
    ])
    return {line.strip() for line in result.stdout.splitlines() if line.strip()}


def create_service_account(cfg: DeploymentConfig) -> None:
    logger.info("서비스 계정 생성: %s", cfg.service_account_email)
    _run([
        "gcloud",
        "iam",
        "service-accounts",
        "create",
        cfg.service_account_name,
        f"--display-name={cfg.app_name} {cfg.environment} service account",
        f"--project={cfg.project_id}",
        "--quiet",
    ])


def grant_role(cfg: DeploymentConfig, role: str) -> None:
    logger.info("IAM 역할 부여: %s -> %s", role, cfg.service_account_email)
    _run([
        "gcloud",
        "projects",
        "add-iam-policy-binding",
        cfg.project_id,
        f"--member=serviceAccount:{cfg.service_account_email}",
        f"--role={role}",
        "--condition=None",
        "--quiet",
    ])
