from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .config import DeploymentConfig
from .errors import UserAbortedError
from .logging_utils import get_logger
from .models import CheckResult
from . import (
    tools,
    gcp_auth,
    gcp_project,
    terraform,
    gce_instance,
    verify,
)


logger = get_logger(__name__)

STAGE_OK = "OK"
STAGE_ERROR = "ERROR"
STAGE_SKIPPED = "SKIPPED"
STAGE_CANCELLED = "CANCELLED"

# CLI 등에서 사용할 수 있도록 단계 이름을 상수로 노출
DEPLOY_STAGES: List[str] = [
    "dependencies",
    "auth",
    "infrastructure",
    "application",
    "verification",
]

DESTROY_STAGES: List[str] = [
    "dependencies",
    "auth",
    "destroy",
    "cleanup",
]


@dataclass(frozen=True)
class StageOutcome:
    name: str
    status: str
    message: str = ""


@dataclass
class PipelineResult:
    project_id: str
    environment: str
    mode: str = "deploy"
    stages: List[StageOutcome] = field(default_factory=list)
    checks: Dict[str, CheckResult] = field(default_factory=dict)
    urls: Dict[str, str] = field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return any(s.status == STAGE_ERROR for s in self.stages)

    @property
    def cancelled(self) -> bool:
        return any(s.status == STAGE_CANCELLED for s in self.stages)

    def stage(self, name: str) -> Optional[StageOutcome]:
        for s in self.stages:
            if s.name == name:
                return s
        return None

    def render_summary(self) -> str:
        lines: List[str] = []
        title = "Destroy summary" if self.mode == "destroy" else "Deploy summary"
        lines.append(f"# {title}")
        lines.append(f"- project: {self.project_id}")
        lines.append(f"- environment: {self.environment}")
        lines.append("")

        lines.append("## Stages")
        for s in self.stages:
            suffix = f" - {s.message}" if s.message else ""
            lines.append(f"- {s.name}: {s.status}{suffix}")

        if self.checks:
            lines.append("")
            lines.append("## Checks")
            for name, r in self.checks.items():
                lines.append(f"- {name}: {r.status.value} - {r.message}")

        if self.urls:
            lines.append("")
            lines.append("## Access URLs")
            for label, url in self.urls.items():
                lines.append(f"- {label}: {url}")

        lines.append("")
        if self.failed:
            lines.append("결과: 실패")
        elif self.cancelled:
            lines.append("결과: 사용자가 취소함")
        else:
            lines.append("결과: 성공")
        return "\n".join(lines)


def _run_stage(result: PipelineResult, name: str, fn: Callable[[], Optional[str]]) -> bool:
    """
    단계 하나를 실행하고 결과를 기록한다. 계속 진행해도 되면 True.
    """
    logger.info("단계 실행: %s", name)
    try:
        message = fn() or ""
    except UserAbortedError as e:
        logger.warning("단계 취소: %s (%s)", name, e)
        result.stages.append(StageOutcome(name, STAGE_CANCELLED, str(e)))
        return False
    except Exception as e:  # noqa: BLE001
        logger.exception("단계 실행 실패: %s", name)
        result.stages.append(StageOutcome(name, STAGE_ERROR, str(e)))
        return False

    result.stages.append(StageOutcome(name, STAGE_OK, message))
    return True


def _skip_rest(result: PipelineResult, stages: List[str]) -> None:
    done = {s.name for s in result.stages}
    for name in stages:
        if name not in done:
            result.stages.append(StageOutcome(name, STAGE_SKIPPED, "이전 단계에서 중단됨"))


def _dependencies_stage() -> str:
    found = tools.ensure_tools()
    return ", ".join(f"{name} {r.detail.get('version', '')}".strip() for name, r in found.items())


def _auth_stage(cfg: DeploymentConfig, *, enable_apis: bool = True) -> str:
    gcp_auth.configure_project(cfg)
    account = gcp_auth.ensure_authenticated(cfg)
    if enable_apis:
        gcp_project.enable_apis(cfg)
    return f"account={account}"


def run_deploy(
    cfg: DeploymentConfig,
    base_dir: str = ".",
    *,
    skip_infra: bool = False,
    skip_deploy: bool = False,
    force: bool = False,
) -> PipelineResult:
    """
    dependencies -> auth -> infrastructure -> application -> verification.

    앞 단계가 실패하거나 취소되면 바로 멈춘다. verification 은 참고용이라 실패로 치지 않는다.
    """
    result = PipelineResult(project_id=cfg.project_id, environment=cfg.environment)

    if not _run_stage(result, "dependencies", _dependencies_stage):
        _skip_rest(result, DEPLOY_STAGES)
        return result

    if not _run_stage(result, "auth", lambda: _auth_stage(cfg)):
        _skip_rest(result, DEPLOY_STAGES)
        return result

    if skip_infra:
        result.stages.append(StageOutcome("infrastructure", STAGE_SKIPPED, "--skip-infra"))
    elif not _run_stage(
        result,
        "infrastructure",
        lambda: terraform.provision(cfg, base_dir, force=force),
    ):
        _skip_rest(result, DEPLOY_STAGES)
        return result

    if skip_deploy:
        result.stages.append(StageOutcome("application", STAGE_SKIPPED, "--skip-deploy"))
    else:
        def _deploy() -> str:
            deployed = gce_instance.deploy_application(cfg, base_dir)
            result.urls.update(deployed.urls)
            message = f"ip={deployed.external_ip}, uploaded={len(deployed.uploaded)}"
            if deployed.skipped:
                message += f", skipped={','.join(deployed.skipped)}"
            return message

        if not _run_stage(result, "application", _deploy):
            _skip_rest(result, DEPLOY_STAGES)
            return result

    checks = verify.post_deploy_checks(cfg)
    result.checks.update(checks)
    warnings = [name for name, r in checks.items() if not r.passed]
    result.stages.append(
        StageOutcome(
            "verification",
            STAGE_OK,
            f"경고: {', '.join(warnings)}" if warnings else "",
        )
    )
    return result


def run_destroy(cfg: DeploymentConfig, base_dir: str = ".", *, force: bool = False) -> PipelineResult:
    """
    terraform destroy 후 컨테이너 이미지를 best-effort 로 정리한다.
    """
    result = PipelineResult(project_id=cfg.project_id, environment=cfg.environment, mode="destroy")

    if not _run_stage(result, "dependencies", _dependencies_stage):
        _skip_rest(result, DESTROY_STAGES)
        return result

    if not _run_stage(result, "auth", lambda: _auth_stage(cfg, enable_apis=False)):
        _skip_rest(result, DESTROY_STAGES)
        return result

    if not _run_stage(result, "destroy", lambda: terraform.destroy(cfg, base_dir, force=force)):
        _skip_rest(result, DESTROY_STAGES)
        return result

    cleanup = terraform.cleanup_container_images(cfg)
    result.checks.update(cleanup)
    warnings = [name for name, r in cleanup.items() if not r.passed]
    result.stages.append(
        StageOutcome(
            "cleanup",
            STAGE_OK,
            f"정리 실패(무시됨): {', '.join(warnings)}" if warnings else "",
        )
    )
    return result
