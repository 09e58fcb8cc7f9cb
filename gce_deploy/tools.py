"""
tools
-----

배포에 필요한 외부 CLI(gcloud, terraform, docker) 설치 여부를 확인한다.
읽기 전용 probe 이며 클라우드 상태는 건드리지 않는다.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from . import models
from .errors import ToolMissingError
from .logging_utils import get_logger
from .models import CheckResult
from .subprocess_utils import try_command


logger = get_logger(__name__)


@dataclass(frozen=True)
class RequiredTool:
    name: str
    version_cmd: List[str]
    install_hint: str


REQUIRED_TOOLS: List[RequiredTool] = [
    RequiredTool(
        name="gcloud",
        version_cmd=["gcloud", "--version"],
        install_hint="https://cloud.google.com/sdk/docs/install 참고 (예: brew install --cask google-cloud-sdk)",
    ),
    RequiredTool(
        name="terraform",
        version_cmd=["terraform", "version"],
        install_hint="https://developer.hashicorp.com/terraform/install 참고 (예: brew install terraform)",
    ),
    RequiredTool(
        name="docker",
        version_cmd=["docker", "--version"],
        install_hint="https://docs.docker.com/get-docker/ 참고 (예: brew install --cask docker)",
    ),
]


def check_tool(tool: RequiredTool) -> CheckResult:
    result = try_command(tool.version_cmd)
    output = (result.stdout or result.stderr).strip() if result is not None else ""
    if not output:
        return models.error(
            f"{tool.name} 를 찾을 수 없습니다.",
            hint=f"{tool.name} 설치: {tool.install_hint}",
            install=tool.install_hint,
        )

    version = output.splitlines()[0].strip()
    return models.ok(f"{tool.name} 설치됨 ({version})", version=version)


def check_tools() -> Dict[str, CheckResult]:
    results: Dict[str, CheckResult] = {}
    for tool in REQUIRED_TOOLS:
        results[tool.name] = check_tool(tool)
        logger.debug("도구 확인: %s -> %s", tool.name, results[tool.name].status.value)
    return results


def ensure_tools() -> Dict[str, CheckResult]:
    """
    필수 도구가 하나라도 없으면 ToolMissingError 로 파이프라인을 중단시킨다.
    """
    results = check_tools()
    missing = [name for name, r in results.items() if not r.passed]
    if missing:
        hints = "\n".join(f"- {results[name].hint}" for name in missing)
        raise ToolMissingError(f"필수 도구가 설치되어 있지 않습니다: {', '.join(missing)}\n{hints}")
    return results
