"""
remediation
-----------

`audit --fix` 의 자동 수정 단계.

plan_remediations() 는 체크 결과만 보고 무엇을 고칠지 정하는 순수 함수이고,
apply_remediations() 가 실제로 gcloud 호출/파일 쓰기를 수행한다.
수정 결과는 다음 감사 실행에 반영되며, 이번 리포트의 상태는 바꾸지 않는다.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import partial
from typing import Callable, Iterable, List, MutableMapping, Optional, Tuple

from dotenv import set_key

from . import gcp_iam, gcp_project
from .audit_checks import (
    CREDENTIALS_ENV_VAR,
    ISSUE_API_DISABLED,
    ISSUE_ENV_VAR_MISSING,
    ISSUE_ROLE_MISSING,
    ISSUE_SERVICE_ACCOUNT_MISSING,
    AuditContext,
)
from .config import PERSISTED_ENV_FILE
from .logging_utils import get_logger
from .models import Category, CheckResult, RemediationOutcome


logger = get_logger(__name__)


# 서비스 계정이 먼저 있어야 역할을 붙일 수 있다.
ISSUE_ORDER = [
    ISSUE_SERVICE_ACCOUNT_MISSING,
    ISSUE_API_DISABLED,
    ISSUE_ROLE_MISSING,
    ISSUE_ENV_VAR_MISSING,
]


@dataclass(frozen=True)
class Remediation:
    category: Category
    check: str
    issue: str
    description: str
    action: Callable[[], None]


def persist_env_var(
    base_dir: str,
    key: str,
    value: str,
    environ: Optional[MutableMapping[str, str]] = None,
) -> str:
    """
    현재 프로세스 환경에 설정하고, 다음 실행을 위해 .env.deploy 에도 기록한다.
    """
    target = os.environ if environ is None else environ
    target[key] = value

    path = os.path.join(base_dir, PERSISTED_ENV_FILE)
    if not os.path.exists(path):
        with open(path, "a", encoding="utf-8"):
            pass
    set_key(path, key, value)
    logger.info("환경변수 저장: %s -> %s", key, path)
    return path


def _plan_one(ctx: AuditContext, category: Category, name: str, result: CheckResult) -> Optional[Remediation]:
    cfg = ctx.cfg
    issue = result.issue

    if issue == ISSUE_API_DISABLED:
        api = result.detail["api"]
        return Remediation(
            category, name, issue,
            f"API 활성화: {api}",
            partial(gcp_project.enable_api, cfg, api),
        )
    if issue == ISSUE_ROLE_MISSING:
        role = result.detail["role"]
        return Remediation(
            category, name, issue,
            f"역할 부여: {role} -> {cfg.service_account_email}",
            partial(gcp_iam.grant_role, cfg, role),
        )
    if issue == ISSUE_SERVICE_ACCOUNT_MISSING:
        return Remediation(
            category, name, issue,
            f"서비스 계정 생성: {cfg.service_account_email}",
            partial(gcp_iam.create_service_account, cfg),
        )
    if issue == ISSUE_ENV_VAR_MISSING:
        path = result.detail["path"]
        environ = ctx.environ if isinstance(ctx.environ, MutableMapping) else None
        return Remediation(
            category, name, issue,
            f"{CREDENTIALS_ENV_VAR}={path} 설정",
            partial(persist_env_var, ctx.base_dir, CREDENTIALS_ENV_VAR, path, environ),
        )
    return None


def plan_remediations(
    results: Iterable[Tuple[Category, str, CheckResult]],
    ctx: AuditContext,
) -> List[Remediation]:
    plans: List[Remediation] = []
    for category, name, result in results:
        if result.passed or not result.issue:
            continue
        plan = _plan_one(ctx, category, name, result)
        if plan is not None:
            plans.append(plan)
    plans.sort(key=lambda p: ISSUE_ORDER.index(p.issue))
    return plans


def apply_remediations(plans: Iterable[Remediation]) -> List[RemediationOutcome]:
    outcomes: List[RemediationOutcome] = []
    for plan in plans:
        logger.info("자동 수정 시도: %s", plan.description)
        try:
            plan.action()
        except Exception as e:  # noqa: BLE001
            logger.warning("자동 수정 실패: %s (%s)", plan.description, e)
            outcomes.append(RemediationOutcome(plan.category, plan.check, plan.description, False, str(e)))
            continue
        outcomes.append(RemediationOutcome(plan.category, plan.check, plan.description, True))
    return outcomes
