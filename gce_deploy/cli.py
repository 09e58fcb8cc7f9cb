import sys

import click

from .audit_checks import AuditContext
from .auditor import run_audit
from .config import ENVIRONMENTS, DeploymentConfig, load_env_files
from .logging_utils import echo_status, get_logger, setup_logging
from .models import CheckStatus
from .orchestrator import STAGE_CANCELLED, STAGE_ERROR, STAGE_OK, run_deploy, run_destroy
from .report import DETAIL_LEVELS, render_report, save_report
from .terraform import render_tfvars


logger = get_logger(__name__)


_STAGE_ECHO = {
    STAGE_OK: "OK",
    STAGE_ERROR: "ERROR",
    STAGE_CANCELLED: "CANCELLED",
}


@click.group()
@click.option(
    "-C",
    "--chdir",
    "chdir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=".",
    help="작업 디렉토리 (docker-compose.yml, .env, terraform/ 위치. 기본: 현재 디렉토리)",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="로그 레벨을 DEBUG로 올립니다.",
)
@click.pass_context
def main(ctx: click.Context, chdir: str, verbose: int) -> None:
    """GCE VM 배포 및 GCP 프로젝트 설정 감사 CLI"""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["chdir"] = chdir
    ctx.obj["verbose"] = verbose


def _load_config_from_ctx(ctx: click.Context, project_id: str, environment: str) -> DeploymentConfig:
    base_dir: str = ctx.obj["chdir"]
    load_env_files(base_dir)
    cfg = DeploymentConfig.from_cli(project_id, environment)
    logger.debug("Config loaded: %s", cfg)
    return cfg


def _load_or_exit(ctx: click.Context, project_id: str, environment: str) -> DeploymentConfig:
    try:
        return _load_config_from_ctx(ctx, project_id, environment)
    except Exception as e:  # noqa: BLE001
        click.echo(f"[ERROR] 설정 로드 실패: {e}", err=True)
        sys.exit(1)


environment_option = click.option(
    "-e",
    "--environment",
    type=click.Choice(ENVIRONMENTS),
    default="development",
    show_default=True,
    help="배포 환경",
)


@main.command()
@click.argument("project_id")
@environment_option
@click.pass_context
def plan(ctx: click.Context, project_id: str, environment: str) -> None:
    """설정 요약과 생성될 terraform.tfvars 내용을 출력 (외부 명령은 실행하지 않음)"""
    cfg = _load_or_exit(ctx, project_id, environment)

    lines = [
        "# Deploy plan",
        f"- project: {cfg.project_id}",
        f"- environment: {cfg.environment}",
        f"- region: {cfg.region}",
        f"- zone: {cfg.zone}",
        f"- instance: {cfg.instance_name}",
        f"- database: {cfg.database_instance_name}",
        f"- bucket: {cfg.bucket_name}",
        f"- service_account: {cfg.service_account_email}",
        f"- remote_dir: {cfg.remote_dir}",
        "",
        f"## {cfg.terraform_dir}/terraform.tfvars",
        render_tfvars(cfg.tfvars()).rstrip(),
    ]
    click.echo("\n".join(lines))


@main.command(name="deploy")
@click.argument("project_id")
@environment_option
@click.option("--skip-infra", is_flag=True, help="Terraform 프로비저닝 단계를 건너뜁니다.")
@click.option("--skip-deploy", is_flag=True, help="컨테이너 업로드/재시작 단계를 건너뜁니다.")
@click.option("--force", is_flag=True, help="apply/destroy 확인 프롬프트를 생략합니다.")
@click.option("--destroy", "destroy_mode", is_flag=True, help="인프라를 삭제합니다. (DESTROY 입력 필요)")
@click.pass_context
def deploy(
    ctx: click.Context,
    project_id: str,
    environment: str,
    skip_infra: bool,
    skip_deploy: bool,
    force: bool,
    destroy_mode: bool,
) -> None:
    """인프라 프로비저닝 -> 애플리케이션 배포 -> 배포 후 확인 (또는 --destroy)"""
    cfg = _load_or_exit(ctx, project_id, environment)
    base_dir: str = ctx.obj["chdir"]

    if destroy_mode:
        result = run_destroy(cfg, base_dir, force=force)
    else:
        result = run_deploy(
            cfg,
            base_dir,
            skip_infra=skip_infra,
            skip_deploy=skip_deploy,
            force=force,
        )

    for stage in result.stages:
        suffix = f" - {stage.message}" if stage.message else ""
        echo_status(_STAGE_ECHO.get(stage.status, "SKIP"), f"{stage.name}{suffix}")
    for name, check in result.checks.items():
        echo_status(check.status.value, f"{name}: {check.message}")

    click.echo("")
    click.echo(result.render_summary())

    # 단계 실패가 있으면 exit 1. 사용자 취소는 실패로 보지 않는다.
    if result.failed:
        sys.exit(1)


@main.command()
@click.argument("project_id")
@click.option(
    "--detail-level",
    type=click.Choice(DETAIL_LEVELS),
    default="detailed",
    show_default=True,
    help="리포트 상세 수준 (실행되는 체크는 동일)",
)
@click.option("--fix", is_flag=True, help="실패한 체크 일부를 자동 수정합니다. (다음 실행부터 반영)")
@click.option(
    "-e",
    "--environment",
    type=str,
    default="development",
    show_default=True,
    help="리포트에 표시할 환경 이름",
)
@click.option(
    "-o",
    "--output-dir",
    type=click.Path(file_okay=False, dir_okay=True),
    default=None,
    help="리포트 저장 디렉토리 (기본: 작업 디렉토리)",
)
@click.pass_context
def audit(
    ctx: click.Context,
    project_id: str,
    detail_level: str,
    fix: bool,
    environment: str,
    output_dir: str,
) -> None:
    """
    GCP 프로젝트 설정(API, 결제, 서비스 계정, 키 파일, 로컬 파일)을 점검하고 점수를 매긴다.
    점수가 50% 미만이면 exit 1.
    """
    # environment 는 표시용이라 DeploymentConfig 검증에는 허용 값으로 맞춘다.
    cfg_env = environment if environment in ENVIRONMENTS else "development"
    cfg = _load_or_exit(ctx, project_id, cfg_env)
    base_dir: str = ctx.obj["chdir"]

    try:
        report = run_audit(AuditContext(cfg=cfg, base_dir=base_dir), fix=fix, environment=environment)
    except Exception as e:  # noqa: BLE001
        logger.exception("감사 중 오류 발생")
        click.echo(f"[ERROR] 감사 실패: {e}", err=True)
        sys.exit(1)

    text = render_report(report, detail_level)
    click.echo(text)

    path = save_report(report, text, output_dir or base_dir)
    echo_status("INFO", f"리포트 저장: {path}")

    if report.overall.score >= 90:
        echo_status(CheckStatus.OK.value, f"{report.overall.label} ({report.overall.score:.1f}%)")
    elif report.passed:
        echo_status(CheckStatus.WARNING.value, f"{report.overall.label} ({report.overall.score:.1f}%)")
    else:
        echo_status(CheckStatus.ERROR.value, f"{report.overall.label} ({report.overall.score:.1f}%)")
        sys.exit(1)
