"""
gce_instance
------------

프로비저닝된 VM 에 compose 스택을 올리고 재시작하는 모듈.

- 외부 IP 조회 (없으면 배포 중단)
- 로컬 파일/디렉토리 업로드 (없는 경로는 건너뜀)
- 원격 명령 묶음 실행 (하나라도 실패하면 단계 전체 실패)
"""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from . import terraform
from .config import DeploymentConfig
from .errors import ResourceNotFoundError
from .logging_utils import get_logger
from .subprocess_utils import RunResult, run_command


logger = get_logger(__name__)


DEPLOY_PATHS: List[str] = [
    "docker-compose.yml",
    ".env",
    "app",
    "config",
]

REMOTE_COMMANDS: List[str] = [
    "docker compose down",
    "docker compose pull",
    "docker compose up -d",
    "docker compose ps",
]

ACCESS_PORTS: Dict[str, int] = {
    "API": 8000,
    "Dashboard": 3000,
    "Monitoring": 9090,
}

TF_OUTPUT_EXTERNAL_IP = "instance_external_ip"


@dataclass(frozen=True)
class DeploymentResult:
    external_ip: str
    uploaded: Tuple[str, ...] = ()
    skipped: Tuple[str, ...] = ()
    urls: Dict[str, str] = field(default_factory=dict)


def _run(cmd: list[str], *, stream_output: bool = False) -> RunResult:
    return run_command(cmd, stream_output=stream_output)


def resolve_external_ip(cfg: DeploymentConfig, base_dir: str = ".") -> str:
    """
    Terraform output 이 있으면 그 값을, 없으면 gcloud 로 VM 의 NAT IP 를 조회한다.
    """
    ip = terraform.terraform_output(cfg, TF_OUTPUT_EXTERNAL_IP, base_dir=base_dir)
    if ip:
        logger.info("Terraform output 에서 외부 IP 확인: %s", ip)
        return ip

    result = _run([
        "gcloud",
        "compute",
        "instances",
        "describe",
        cfg.instance_name,
        f"--zone={cfg.zone}",
        f"--project={cfg.project_id}",
        "--format=get(networkInterfaces[0].accessConfigs[0].natIP)",
    ])
    ip = result.stdout.strip()
    if not ip:
        raise ResourceNotFoundError(f"VM 외부 IP 를 확인할 수 없습니다: {cfg.instance_name} ({cfg.zone})")
    logger.info("VM 외부 IP: %s", ip)
    return ip


def collect_upload_paths(base_dir: str = ".") -> Tuple[List[str], List[str]]:
    """
    (업로드할 경로, 로컬에 없어 건너뛸 경로) 를 돌려준다.
    """
    present: List[str] = []
    missing: List[str] = []
    for rel in DEPLOY_PATHS:
        path = os.path.join(base_dir, rel)
        if os.path.exists(path):
            present.append(path)
        else:
            logger.info("로컬에 없어 업로드를 건너뜁니다: %s", rel)
            missing.append(rel)
    return present, missing


def quote_remote_path(remote_dir: str) -> str:
    # `~` 는 원격 쉘에서 확장되어야 하므로 그대로 두고 나머지만 quote 한다.
    if remote_dir == "~":
        return remote_dir
    if remote_dir.startswith("~/"):
        return "~/" + shlex.quote(remote_dir[2:])
    return shlex.quote(remote_dir)


def _ssh_cmd(cfg: DeploymentConfig, command: str) -> list[str]:
    return [
        "gcloud",
        "compute",
        "ssh",
        cfg.instance_name,
        f"--zone={cfg.zone}",
        f"--project={cfg.project_id}",
        f"--command={command}",
    ]


def upload_paths(cfg: DeploymentConfig, paths: List[str]) -> None:
    _run(_ssh_cmd(cfg, f"mkdir -p {quote_remote_path(cfg.remote_dir)}"))
    for path in paths:
        _run([
            "gcloud",
            "compute",
            "scp",
            "--recurse",
            path,
            f"{cfg.instance_name}:{cfg.remote_dir}/",
            f"--zone={cfg.zone}",
            f"--project={cfg.project_id}",
        ])
        logger.info("업로드 완료: %s", path)


def build_remote_script(cfg: DeploymentConfig) -> str:
    return " && ".join([f"cd {quote_remote_path(cfg.remote_dir)}", *REMOTE_COMMANDS])


def restart_services(cfg: DeploymentConfig) -> RunResult:
    """
    down -> pull -> up -d -> ps 를 한 번의 ssh 호출로 실행한다.
    부분 성공은 구분하지 않는다.
    """
    return _run(_ssh_cmd(cfg, build_remote_script(cfg)), stream_output=True)


def access_urls(external_ip: str) -> Dict[str, str]:
    return {label: f"http://{external_ip}:{port}" for label, port in ACCESS_PORTS.items()}


def deploy_application(cfg: DeploymentConfig, base_dir: str = ".") -> DeploymentResult:
    ip = resolve_external_ip(cfg, base_dir=base_dir)
    present, missing = collect_upload_paths(base_dir)
    upload_paths(cfg, present)
    restart_services(cfg)
    urls = access_urls(ip)
    for label, url in urls.items():
        logger.info("%s: %s", label, url)
    return DeploymentResult(
        external_ip=ip,
        uploaded=tuple(present),
        skipped=tuple(missing),
        urls=urls,
    )
