"""
models
------

체크 결과, 카테고리, 최종 검증 리포트와 점수 계산 규칙.

점수는 OK 인 체크만 통과로 센다. WARNING/ERROR 는 모두 미통과다.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple


PASS_THRESHOLD = 50.0
READY_THRESHOLD = 75.0

# (하한, 라벨) - 위에서부터 처음 만족하는 라벨을 쓴다.
SCORE_LABELS: List[Tuple[float, str]] = [
    (90.0, "EXCELLENT"),
    (75.0, "GOOD"),
    (50.0, "ACCEPTABLE"),
]
LOWEST_LABEL = "NEEDS ATTENTION"


class CheckStatus(str, Enum):
    OK = "OK"
    WARNING = "WARNING"
    ERROR = "ERROR"


class Category(str, Enum):
    PREREQUISITES = "Prerequisites"
    PROJECT = "Project"
    APIS = "APIs"
    BILLING = "Billing"
    SERVICE_ACCOUNT = "ServiceAccount"
    CREDENTIALS = "Credentials"
    CONFIGURATION = "Configuration"


CATEGORY_ORDER: List[Category] = list(Category)


@dataclass(frozen=True)
class CheckResult:
    status: CheckStatus
    message: str
    detail: Mapping[str, Any] = field(default_factory=dict)
    # 사람이 읽는 권장 조치 (리포트 Recommendations 섹션)
    hint: Optional[str] = None
    # 자동 수정 대상 식별용 코드 (remediation.plan_remediations 참고)
    issue: Optional[str] = None

    def __post_init__(self) -> None:
        # detail 은 읽기 전용 복사본으로 보관한다.
        object.__setattr__(self, "detail", MappingProxyType(dict(self.detail)))

    @property
    def passed(self) -> bool:
        return self.status is CheckStatus.OK


def ok(message: str, **detail: Any) -> CheckResult:
    return CheckResult(CheckStatus.OK, message, detail=detail)


def warning(message: str, *, hint: Optional[str] = None, issue: Optional[str] = None, **detail: Any) -> CheckResult:
    return CheckResult(CheckStatus.WARNING, message, detail=detail, hint=hint, issue=issue)


def error(message: str, *, hint: Optional[str] = None, issue: Optional[str] = None, **detail: Any) -> CheckResult:
    return CheckResult(CheckStatus.ERROR, message, detail=detail, hint=hint, issue=issue)


def compute_score(passed: int, total: int) -> float:
    """
    100 * passed / total 을 소수 첫째 자리에서 반올림(half-up)한다.
    total 이 0 이면 0.0.
    """
    if total <= 0:
        return 0.0
    raw = Decimal(100) * Decimal(passed) / Decimal(total)
    return float(raw.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def status_label(score: float) -> str:
    for threshold, label in SCORE_LABELS:
        if score >= threshold:
            return label
    return LOWEST_LABEL


@dataclass(frozen=True)
class CheckCategory:
    category: Category
    results: Mapping[str, CheckResult]

    @property
    def name(self) -> str:
        return self.category.value

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results.values() if r.passed)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def score(self) -> float:
        return compute_score(self.passed, self.total)

    def failing(self) -> List[Tuple[str, CheckResult]]:
        return [(name, r) for name, r in self.results.items() if not r.passed]


@dataclass(frozen=True)
class OverallSummary:
    label: str
    score: float
    passed: int
    total: int


@dataclass(frozen=True)
class RemediationOutcome:
    category: Category
    check: str
    description: str
    succeeded: bool
    message: str = ""


@dataclass(frozen=True)
class VerificationReport:
    project_id: str
    environment: str
    generated_at: datetime
    categories: Tuple[CheckCategory, ...]
    overall: OverallSummary
    remediations: Tuple[RemediationOutcome, ...] = ()

    @property
    def passed(self) -> bool:
        """프로세스 종료 코드 기준 (score >= 50)."""
        return self.overall.score >= PASS_THRESHOLD

    @property
    def ready_to_deploy(self) -> bool:
        """안내 문구용 기준 (score >= 75)."""
        return self.overall.score >= READY_THRESHOLD

    def category(self, category: Category) -> CheckCategory:
        for c in self.categories:
            if c.category is category:
                return c
        raise KeyError(category)

    def result(self, category: Category, name: str) -> CheckResult:
        return self.category(category).results[name]

    def failing(self) -> List[Tuple[Category, str, CheckResult]]:
        items: List[Tuple[Category, str, CheckResult]] = []
        for c in self.categories:
            for name, r in c.failing():
                items.append((c.category, name, r))
        return items


class ReportBuilder:
    """
    감사 실행 동안 결과를 모으는 append-only 누산기.
    build() 이후에는 불변 VerificationReport 만 남는다.
    """

    def __init__(self, project_id: str, environment: str) -> None:
        self.project_id = project_id
        self.environment = environment
        self._results: Dict[Category, Dict[str, CheckResult]] = {c: {} for c in CATEGORY_ORDER}
        self._remediations: List[RemediationOutcome] = []

    def add(self, category: Category, name: str, result: CheckResult) -> None:
        bucket = self._results[category]
        if name in bucket:
            raise ValueError(f"이미 등록된 체크입니다: {category.value}/{name}")
        bucket[name] = result

    def add_remediation(self, outcome: RemediationOutcome) -> None:
        self._remediations.append(outcome)

    def results(self) -> List[Tuple[Category, str, CheckResult]]:
        return [(c, name, r) for c in CATEGORY_ORDER for name, r in self._results[c].items()]

    def build(self, generated_at: Optional[datetime] = None) -> VerificationReport:
        categories = tuple(
            CheckCategory(category=c, results=MappingProxyType(dict(self._results[c])))
            for c in CATEGORY_ORDER
        )
        passed = sum(c.passed for c in categories)
        total = sum(c.total for c in categories)
        score = compute_score(passed, total)
        overall = OverallSummary(label=status_label(score), score=score, passed=passed, total=total)
        return VerificationReport(
            project_id=self.project_id,
            environment=self.environment,
            generated_at=generated_at or datetime.now(),
            categories=categories,
            overall=overall,
            remediations=tuple(self._remediations),
        )
