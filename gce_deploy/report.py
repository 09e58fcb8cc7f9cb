"""
report
------

VerificationReport 를 사람이 읽는 텍스트로 만들고, 타임스탬프가 붙은 파일로 저장한다.

detail_level:
- basic    : 통과하지 못한 체크만 출력
- detailed : 모든 체크 출력
- full     : 모든 체크 + 각 체크의 상세 필드
"""

from __future__ import annotations

import os
from typing import List

from .logging_utils import get_logger, status_prefix
from .models import VerificationReport


logger = get_logger(__name__)


DETAIL_LEVELS = ["basic", "detailed", "full"]

REFERENCE_LINKS = [
    ("GCP Console", "https://console.cloud.google.com/"),
    ("IAM 역할 문서", "https://cloud.google.com/iam/docs/understanding-roles"),
    ("서비스 계정 키 관리", "https://cloud.google.com/iam/docs/keys-create-delete"),
    ("Terraform Google Provider", "https://registry.terraform.io/providers/hashicorp/google/latest/docs"),
    ("Compute Engine 문서", "https://cloud.google.com/compute/docs"),
]

_RULE = "=" * 60


def recommendations(report: VerificationReport) -> List[str]:
    """
    실패/경고 체크에 달린 hint 를 순서대로, 중복 없이 모은다.
    """
    seen = set()
    items: List[str] = []
    for category, name, result in report.failing():
        if not result.hint or result.hint in seen:
            continue
        seen.add(result.hint)
        items.append(f"[{category.value}/{name}] {result.hint}")
    return items


def render_report(report: VerificationReport, detail_level: str = "detailed") -> str:
    if detail_level not in DETAIL_LEVELS:
        raise ValueError(f"알 수 없는 detail level: {detail_level!r} (허용: {', '.join(DETAIL_LEVELS)})")

    lines: List[str] = []
    lines.append(_RULE)
    lines.append("GCP 프로젝트 설정 검증 리포트")
    lines.append(_RULE)
    lines.append(f"- project: {report.project_id}")
    lines.append(f"- environment: {report.environment}")
    lines.append(f"- generated_at: {report.generated_at.strftime('%Y-%m-%d %H:%M:%S')}")
    lines.append("")

    for category in report.categories:
        lines.append(
            f"## {category.name}: {category.passed}/{category.total} ({category.score:.1f}%)"
        )
        for name, result in category.results.items():
            if detail_level == "basic" and result.passed:
                continue
            lines.append(f"  {status_prefix(result.status.value)} {name}: {result.message}")
            if detail_level == "full":
                for key, value in result.detail.items():
                    lines.append(f"      {key}: {value}")
        lines.append("")

    overall = report.overall
    lines.append(_RULE)
    lines.append(f"Overall: {overall.label} - {overall.score:.1f}% ({overall.passed}/{overall.total} 통과)")
    if report.ready_to_deploy:
        lines.append("배포 준비가 완료된 것으로 보입니다.")
    elif report.passed:
        lines.append("배포는 가능하지만 아래 권장 조치를 먼저 확인하세요.")
    else:
        lines.append("배포 전에 아래 문제를 반드시 해결해야 합니다.")
    lines.append(_RULE)

    recs = recommendations(report)
    if recs:
        lines.append("")
        lines.append("## Recommendations")
        for rec in recs:
            lines.append(f"- {rec}")

    if report.remediations:
        lines.append("")
        lines.append("## Auto-fix (다음 실행부터 반영)")
        for outcome in report.remediations:
            status = "OK" if outcome.succeeded else "ERROR"
            suffix = f" - {outcome.message}" if outcome.message else ""
            lines.append(f"- {status_prefix(status)} {outcome.description}{suffix}")

    lines.append("")
    lines.append("## References")
    for title, url in REFERENCE_LINKS:
        lines.append(f"- {title}: {url}")

    return "\n".join(lines) + "\n"


def report_filename(report: VerificationReport) -> str:
    stamp = report.generated_at.strftime("%Y%m%d_%H%M%S")
    return f"verification_report_{report.project_id}_{stamp}.txt"


def save_report(report: VerificationReport, text: str, output_dir: str = ".") -> str:
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, report_filename(report))
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
    logger.info("검증 리포트 저장: %s", path)
    return path
