"""
terraform
---------

DeploymentConfig 로부터 terraform.tfvars 를 만들고
init -> plan -> apply (또는 destroy) 를 실행하는 모듈.

terraform 명령은 항상 pushd() 안에서 실행하므로,
어떤 경로로 빠져나가든 작업 디렉토리는 원래대로 돌아온다.
"""

from __future__ import annotations

import os
import re
from typing import Any, Callable, Dict, List, Mapping, Optional

import click

from . import models
from .config import DeploymentConfig
from .errors import CommandFailedError, ResourceNotFoundError, ToolMissingError, UserAbortedError
from .logging_utils import get_logger
from .models import CheckResult
from .subprocess_utils import RunResult, pushd, run_command


logger = get_logger(__name__)


TFVARS_FILENAME = "terraform.tfvars"
PLAN_FILENAME = "tfplan"
DESTROY_CONFIRMATION = "DESTROY"

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")


def _run(cmd: list[str], *, stream_output: bool = True) -> RunResult:
    return run_command(cmd, stream_output=stream_output)


def escape_hcl_string(value: str) -> str:
    """
    HCL 큰따옴표 문자열 안에 넣을 수 있도록 이스케이프한다.
    `${` / `%{` 는 템플릿 보간으로 해석되지 않도록 `$${` / `%%{` 로 바꾼다.
    """
    out = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return out.replace("${", "$${").replace("%{", "%%{")


def render_tfvars(values: Mapping[str, Any]) -> str:
    """
    `key = "value"` 한 줄씩, mapping 순서 그대로 직렬화한다.
    """
    lines: List[str] = []
    for key, value in values.items():
        if not _IDENTIFIER_RE.match(key):
            raise ValueError(f"Terraform 변수 이름으로 쓸 수 없습니다: {key!r}")
        if value is None:
            raise ValueError(f"Terraform 변수 값이 비어 있습니다: {key}")
        lines.append(f'{key} = "{escape_hcl_string(str(value))}"')
    return "\n".join(lines) + "\n"


def terraform_dir(cfg: DeploymentConfig, base_dir: str = ".") -> str:
    return os.path.abspath(os.path.join(base_dir, cfg.terraform_dir))


def _require_terraform_dir(cfg: DeploymentConfig, base_dir: str) -> str:
    tf_dir = terraform_dir(cfg, base_dir)
    if not os.path.isdir(tf_dir):
        raise ResourceNotFoundError(f"Terraform 디렉토리를 찾을 수 없습니다: {tf_dir}")
    return tf_dir


def write_tfvars(cfg: DeploymentConfig, tf_dir: str) -> str:
    path = os.path.join(tf_dir, TFVARS_FILENAME)
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_tfvars(cfg.tfvars()))
    logger.info("Terraform 변수 파일 생성: %s", path)
    return path


def _confirm_apply(cfg: DeploymentConfig) -> bool:
    return click.confirm(
        f"{cfg.project_id} ({cfg.environment}) 에 Terraform 변경 사항을 적용할까요?",
        default=False,
    )


def _prompt_destroy(cfg: DeploymentConfig) -> str:
    return click.prompt(
        f"{cfg.project_id} ({cfg.environment}) 의 모든 인프라가 삭제됩니다. "
        f"계속하려면 {DESTROY_CONFIRMATION} 를 입력하세요",
        default="",
        show_default=False,
    )


def provision(
    cfg: DeploymentConfig,
    base_dir: str = ".",
    *,
    force: bool = False,
    confirm: Optional[Callable[[DeploymentConfig], bool]] = None,
) -> None:
    """
    terraform init -> plan -> (확인) -> apply.

    force=False 이면 apply 직전에 확인을 받고, 거절하면 UserAbortedError.
    """
    tf_dir = _require_terraform_dir(cfg, base_dir)
    write_tfvars(cfg, tf_dir)

    with pushd(tf_dir):
        _run(["terraform", "init", "-input=false"])
        _run([
            "terraform",
            "plan",
            "-input=false",
            f"-var-file={TFVARS_FILENAME}",
            f"-out={PLAN_FILENAME}",
        ])

        if not force:
            ask = confirm or _confirm_apply
            if not ask(cfg):
                raise UserAbortedError("사용자가 Terraform apply 를 취소했습니다.")

        _run(["terraform", "apply", "-input=false", PLAN_FILENAME])

    logger.info("인프라 프로비저닝 완료: %s", cfg.project_id)


def destroy(
    cfg: DeploymentConfig,
    base_dir: str = ".",
    *,
    force: bool = False,
    prompt: Optional[Callable[[DeploymentConfig], str]] = None,
) -> None:
    """
    DESTROY 를 정확히 입력해야(또는 force) terraform destroy 를 실행한다.
    이미지 정리는 cleanup_container_images() 로 따로 수행한다.
    """
    if not force:
        ask = prompt or _prompt_destroy
        answer = (ask(cfg) or "").strip()
        if answer != DESTROY_CONFIRMATION:
            raise UserAbortedError("삭제 확인 문구가 일치하지 않아 destroy 를 취소했습니다.")

    tf_dir = _require_terraform_dir(cfg, base_dir)
    write_tfvars(cfg, tf_dir)

    with pushd(tf_dir):
        _run(["terraform", "init", "-input=false"])
        _run([
            "terraform",
            "destroy",
            "-auto-approve",
            "-input=false",
            f"-var-file={TFVARS_FILENAME}",
        ])

    logger.info("인프라 삭제 완료: %s", cfg.project_id)


def cleanup_container_images(cfg: DeploymentConfig) -> Dict[str, CheckResult]:
    """
    gcr.io/<project> 아래 앱 이미지들을 지운다. best-effort 이며 실패는 WARNING 으로만 남긴다.
    """
    repository = f"gcr.io/{cfg.project_id}"
    results: Dict[str, CheckResult] = {}

    try:
        listing = _run(
            ["gcloud", "container", "images", "list", f"--repository={repository}", "--format=value(name)"],
            stream_output=False,
        )
    except (CommandFailedError, ToolMissingError) as e:
        logger.warning("컨테이너 이미지 목록 조회 실패: %s", e)
        results[repository] = models.warning(f"이미지 목록을 조회하지 못했습니다: {e}")
        return results

    images = [
        line.strip()
        for line in listing.stdout.splitlines()
        if line.strip() and f"/{cfg.app_name}" in line
    ]
    if not images:
        results[repository] = models.ok("정리할 컨테이너 이미지가 없습니다.")
        return results

    for image in images:
        try:
            _run(
                ["gcloud", "container", "images", "delete", image, "--force-delete-tags", "--quiet"],
                stream_output=False,
            )
            results[image] = models.ok(f"이미지 삭제됨 ({image})")
        except (CommandFailedError, ToolMissingError) as e:
            logger.warning("이미지 삭제 실패: %s (%s)", image, e)
            results[image] = models.warning(f"이미지 삭제 실패 ({image}): {e}")

    return results


def terraform_output(cfg: DeploymentConfig, name: str, base_dir: str = ".") -> Optional[str]:
    """
    `terraform output -raw <name>` 값. terraform 상태가 없거나 출력이 없으면 None.
    """
    tf_dir = terraform_dir(cfg, base_dir)
    if not os.path.isdir(tf_dir):
        return None
    with pushd(tf_dir):
        try:
            result = _run(["terraform", "output", "-raw", name], stream_output=False)
        except (CommandFailedError, ToolMissingError) as e:
            logger.debug("terraform output 조회 실패: %s (%s)", name, e)
            return None
    value = result.stdout.strip()
    return value or None
