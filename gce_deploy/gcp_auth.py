"""
gcp_auth
--------

gcloud 의 활성 프로젝트/리전/존을 맞추고,
인증된 계정이 없으면 대화형 로그인을 띄우는 유틸.
"""

from __future__ import annotations

from typing import Optional

from .config import DeploymentConfig
from .errors import AuthRequiredError
from .logging_utils import get_logger
from .subprocess_utils import RunResult, run_command


logger = get_logger(__name__)


def _run(cmd: list[str], *, interactive: bool = False) -> RunResult:
    return run_command(cmd, interactive=interactive)


def configure_project(cfg: DeploymentConfig) -> None:
    """
    gcloud 기본 설정을 대상 프로젝트/리전/존으로 바꾼다.
    """
    logger.info("gcloud 설정: project=%s region=%s zone=%s", cfg.project_id, cfg.region, cfg.zone)
    _run(["gcloud", "config", "set", "project", cfg.project_id, "--quiet"])
    _run(["gcloud", "config", "set", "compute/region", cfg.region, "--quiet"])
    _run(["gcloud", "config", "set", "compute/zone", cfg.zone, "--quiet"])


def get_active_account() -> Optional[str]:
    result = _run(["gcloud", "auth", "list", "--filter=status:ACTIVE", "--format=value(account)"])
    lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
    return lines[0] if lines else None


def get_configured_project() -> Optional[str]:
    result = _run(["gcloud", "config", "get-value", "project"])
    value = result.stdout.strip()
    if not value or value == "(unset)":
        return None
    return value


def ensure_authenticated(cfg: DeploymentConfig, *, interactive: bool = True) -> str:
    """
    활성 계정을 반환한다. 없으면 `gcloud auth login` 을 띄우고 다시 확인한다.
    """
    account = get_active_account()
    if account:
        logger.info("활성 gcloud 계정: %s", account)
        return account

    if not interactive:
        raise AuthRequiredError("활성화된 gcloud 계정이 없습니다. `gcloud auth login` 을 먼저 실행하세요.")

    logger.warning("활성화된 gcloud 계정이 없어 로그인을 시작합니다. (project=%s)", cfg.project_id)
    _run(["gcloud", "auth", "login"], interactive=True)

    account = get_active_account()
    if not account:
        raise AuthRequiredError("gcloud 로그인 후에도 활성 계정을 찾을 수 없습니다.")
    logger.info("로그인 완료: %s", account)
    return account
