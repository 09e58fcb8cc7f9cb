"""
gcp_project
-----------

GCP 프로젝트 상태 조회와 필수 API enable 을 담당하는 모듈.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Set

from . import models
from .config import DeploymentConfig
from .errors import CommandFailedError, ResourceNotFoundError
from .logging_utils import get_logger
from .models import CheckResult
from .subprocess_utils import RunResult, run_command


logger = get_logger(__name__)


REQUIRED_APIS: List[str] = [
    "compute.googleapis.com",
    "sqladmin.googleapis.com",
    "storage.googleapis.com",
    "iam.googleapis.com",
    "cloudresourcemanager.googleapis.com",
    "secretmanager.googleapis.com",
    "artifactregistry.googleapis.com",
    "logging.googleapis.com",
    "monitoring.googleapis.com",
]


def _run(cmd: list[str]) -> RunResult:
    return run_command(cmd)


def enable_api(cfg: DeploymentConfig, api: str) -> CheckResult:
    """
    API 하나를 enable 한다. 이미 켜져 있어도 gcloud 는 성공으로 끝나므로 그대로 OK.
    실패하면 CommandFailedError 가 그대로 올라간다.
    """
    _run([
        "gcloud",
        "services",
        "enable",
        api,
        f"--project={cfg.project_id}",
        "--quiet",
    ])
    logger.info("API 활성화 확인: %s", api)
    return models.ok(f"API 활성화됨 ({api})", api=api)


def enable_apis(cfg: DeploymentConfig, apis: Optional[List[str]] = None) -> Dict[str, CheckResult]:
    targets = apis if apis is not None else REQUIRED_APIS
    logger.info("다음 API 들이 활성화되어 있어야 합니다: %s", targets)
    results: Dict[str, CheckResult] = {}
    for api in targets:
        try:
            results[api] = enable_api(cfg, api)
        except CommandFailedError as e:
            raise CommandFailedError(
                f"필수 API 활성화에 실패했습니다: {api}\n{e}",
                returncode=e.returncode,
                stdout=e.stdout,
                stderr=e.stderr,
            ) from e
    return results


def list_enabled_apis(cfg: DeploymentConfig) -> Set[str]:
    """
    프로젝트에서 활성화된 API 이름 집합. 감사 한 번에 한 번만 조회한다.
    """
    result = _run([
        "gcloud",
        "services",
        "list",
        "--enabled",
        f"--project={cfg.project_id}",
        "--format=value(config.name)",
        "--quiet",
    ])
    return {line.strip() for line in result.stdout.splitlines() if line.strip()}


def describe_project(cfg: DeploymentConfig) -> Dict[str, Any]:
    """
    `gcloud projects describe` 결과(JSON)를 반환한다. 없으면 ResourceNotFoundError.
    """
    try:
        result = _run(["gcloud", "projects", "describe", cfg.project_id, "--format=json", "--quiet"])
    except CommandFailedError as e:
        stderr = e.stderr or ""
        if "NOT_FOUND" in stderr or "not found" in stderr.lower() or "does not have permission" in stderr:
            raise ResourceNotFoundError(
                f"프로젝트를 찾을 수 없거나 접근 권한이 없습니다: {cfg.project_id}"
            ) from e
        raise
    return json.loads(result.stdout or "{}")


def describe_billing(cfg: DeploymentConfig) -> Dict[str, Any]:
    result = _run(["gcloud", "billing", "projects", "describe", cfg.project_id, "--format=json", "--quiet"])
    return json.loads(result.stdout or "{}")
