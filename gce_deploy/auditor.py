"""
auditor
-------

체크 목록을 정해진 순서대로 실행하고 VerificationReport 를 만든다.
체크 하나가 예외를 던져도 나머지 체크는 계속 실행된다.
"""

from __future__ import annotations

from typing import List, Optional

from . import models, remediation
from .audit_checks import AuditContext, CheckSpec, build_check_plan
from .logging_utils import get_logger
from .models import CheckResult, ReportBuilder, VerificationReport


logger = get_logger(__name__)


def run_check(ctx: AuditContext, check: CheckSpec) -> CheckResult:
    try:
        result = check.fn(ctx)
    except Exception as e:  # noqa: BLE001
        logger.warning("체크 중 예외 발생: %s/%s (%s)", check.category.value, check.name, e)
        return models.error(str(e) or e.__class__.__name__, exception=e.__class__.__name__)
    logger.debug("체크 완료: %s/%s -> %s", check.category.value, check.name, result.status.value)
    return result


def run_audit(
    ctx: AuditContext,
    *,
    fix: bool = False,
    environment: Optional[str] = None,
    plan: Optional[List[CheckSpec]] = None,
) -> VerificationReport:
    """
    1) 모든 체크 실행 (읽기 전용)
    2) fix=True 이면 실패한 체크에 대해 자동 수정 시도 (체크는 다시 돌리지 않는다)
    3) 불변 리포트 생성
    """
    builder = ReportBuilder(ctx.cfg.project_id, environment or ctx.cfg.environment)
    checks = plan if plan is not None else build_check_plan(ctx)

    logger.info("감사 시작: project=%s checks=%d", ctx.cfg.project_id, len(checks))
    for check in checks:
        builder.add(check.category, check.name, run_check(ctx, check))

    if fix:
        plans = remediation.plan_remediations(builder.results(), ctx)
        logger.info("자동 수정 대상: %d 건", len(plans))
        for outcome in remediation.apply_remediations(plans):
            builder.add_remediation(outcome)

    report = builder.build()
    logger.info(
        "감사 완료: score=%.1f (%d/%d) %s",
        report.overall.score,
        report.overall.passed,
        report.overall.total,
        report.overall.label,
    )
    return report
