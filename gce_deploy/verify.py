"""
verify
------

배포 후 상태 확인. 모든 결과는 OK 또는 WARNING 이며,
여기서의 실패가 배포 파이프라인을 실패로 만들지는 않는다.
"""

from __future__ import annotations

from typing import Callable, Dict

from google.api_core.exceptions import Forbidden
from google.cloud import storage

from . import models
from .gce_instance import quote_remote_path
from .config import DeploymentConfig
from .logging_utils import get_logger
from .models import CheckResult
from .subprocess_utils import RunResult, run_command


logger = get_logger(__name__)


EXPECTED_INSTANCE_STATUS = "RUNNING"
EXPECTED_DATABASE_STATE = "RUNNABLE"


def _run(cmd: list[str]) -> RunResult:
    return run_command(cmd)


def instance_status(cfg: DeploymentConfig) -> CheckResult:
    result = _run([
        "gcloud",
        "compute",
        "instances",
        "describe",
        cfg.instance_name,
        f"--zone={cfg.zone}",
        f"--project={cfg.project_id}",
        "--format=value(status)",
    ])
    status = result.stdout.strip()
    if status == EXPECTED_INSTANCE_STATUS:
        return models.ok(f"VM 실행 중 ({cfg.instance_name})", status=status)
    return models.warning(
        f"VM 상태가 {EXPECTED_INSTANCE_STATUS} 가 아닙니다: {status or '(알 수 없음)'}",
        status=status,
    )


def database_status(cfg: DeploymentConfig) -> CheckResult:
    result = _run([
        "gcloud",
        "sql",
        "instances",
        "describe",
        cfg.database_instance_name,
        f"--project={cfg.project_id}",
        "--format=value(state)",
    ])
    state = result.stdout.strip()
    if state == EXPECTED_DATABASE_STATE:
        return models.ok(f"Cloud SQL 실행 중 ({cfg.database_instance_name})", state=state)
    return models.warning(
        f"Cloud SQL 상태가 {EXPECTED_DATABASE_STATE} 가 아닙니다: {state or '(알 수 없음)'}",
        state=state,
    )


def bucket_status(cfg: DeploymentConfig) -> CheckResult:
    client = storage.Client(project=cfg.project_id)
    bucket = client.bucket(cfg.bucket_name)
    try:
        exists = bucket.exists()
    except Forbidden:
        return models.warning(f"GCS 버킷 조회 권한이 없습니다 ({cfg.bucket_name})")
    if exists:
        return models.ok(f"GCS 버킷 존재함 ({cfg.bucket_name})")
    return models.warning(f"GCS 버킷 없음 ({cfg.bucket_name})")


def container_status(cfg: DeploymentConfig) -> CheckResult:
    result = _run([
        "gcloud",
        "compute",
        "ssh",
        cfg.instance_name,
        f"--zone={cfg.zone}",
        f"--project={cfg.project_id}",
        f"--command=cd {quote_remote_path(cfg.remote_dir)} && docker compose ps --services --filter status=running",
    ])
    services = [line.strip() for line in result.stdout.splitlines() if line.strip()]
    if services:
        return models.ok(f"실행 중인 서비스: {', '.join(services)}", services=services)
    return models.warning("실행 중인 컨테이너 서비스가 없습니다.", services=services)


POST_DEPLOY_CHECKS: Dict[str, Callable[[DeploymentConfig], CheckResult]] = {
    "instance": instance_status,
    "database": database_status,
    "bucket": bucket_status,
    "containers": container_status,
}


def _advisory(name: str, fn: Callable[[DeploymentConfig], CheckResult], cfg: DeploymentConfig) -> CheckResult:
    try:
        result = fn(cfg)
    except Exception as e:  # noqa: BLE001
        logger.warning("배포 후 확인 실패: %s (%s)", name, e)
        return models.warning(f"{name} 상태를 확인하지 못했습니다: {e}")
    if result.status is models.CheckStatus.ERROR:
        return models.warning(result.message, **dict(result.detail))
    return result


def post_deploy_checks(cfg: DeploymentConfig) -> Dict[str, CheckResult]:
    results: Dict[str, CheckResult] = {}
    for name, fn in POST_DEPLOY_CHECKS.items():
        results[name] = _advisory(name, fn, cfg)
    return results
