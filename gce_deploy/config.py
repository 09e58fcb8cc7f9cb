from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from dotenv import load_dotenv

from .errors import ValidationMismatchError


# .env 는 컨테이너용 파일(VM 으로 업로드됨)이라 CLI 프로세스 환경에는 읽지 않는다.
ENV_FILES_DEFAULT_ORDER = [".env.deploy"]

# 감사(audit) --fix 가 환경변수를 영구 저장하는 파일. 다음 실행 시 load_env_files 로 읽힌다.
PERSISTED_ENV_FILE = ".env.deploy"

ENVIRONMENTS = ["development", "staging", "production"]

DEFAULT_REGION = "us-central1"
DEFAULT_APP_NAME = "app"

_PROJECT_ID_RE = re.compile(r"^[a-z][a-z0-9-]{4,28}[a-z0-9]$")


def load_env_files(base_dir: str = ".",
                   files: Optional[List[str]] = None) -> None:
    """
    주어진 디렉토리에서 .env 계열 파일을 순서대로 로드한다.
    후순위 파일이 같은 키를 덮어쓴다.
    """
    order = files or ENV_FILES_DEFAULT_ORDER
    for name in order:
        path = os.path.join(base_dir, name)
        if os.path.exists(path):
            load_dotenv(path, override=True)


def validate_project_id(project_id: str) -> bool:
    return bool(_PROJECT_ID_RE.match(project_id or ""))


@dataclass(frozen=True)
class DeploymentConfig:
    project_id: str
    environment: str = "development"
    region: str = DEFAULT_REGION
    zone: str = f"{DEFAULT_REGION}-a"
    app_name: str = DEFAULT_APP_NAME

    # 로컬 경로 (작업 디렉토리 기준 상대 경로)
    terraform_dir: str = "terraform"
    credentials_file: str = "credentials.json"

    # VM 안에서 compose 스택이 놓이는 디렉토리
    remote_app_dir: Optional[str] = None

    @classmethod
    def from_cli(cls, project_id: str, environment: str = "development") -> "DeploymentConfig":
        """
        CLI 인자(project id, environment)와 환경변수 오버라이드로 설정을 만든다.
        잘못된 값은 한 번에 모아서 ValidationMismatchError(ValueError) 로 알린다.
        """
        problems: List[str] = []

        if not validate_project_id(project_id):
            problems.append(
                f"잘못된 프로젝트 ID 입니다: {project_id!r} "
                "(소문자/숫자/하이픈 6~30자, 문자로 시작, 하이픈으로 끝나면 안 됨)"
            )
        if environment not in ENVIRONMENTS:
            problems.append(
                f"알 수 없는 environment 입니다: {environment!r} (허용: {', '.join(ENVIRONMENTS)})"
            )

        region = os.getenv("GCP_REGION") or DEFAULT_REGION
        zone = os.getenv("GCP_ZONE") or f"{region}-a"
        if not zone.startswith(region):
            problems.append(f"GCP_ZONE({zone}) 이 GCP_REGION({region}) 에 속하지 않습니다.")

        if problems:
            raise ValidationMismatchError("설정 오류:\n- " + "\n- ".join(problems))

        return cls(
            project_id=project_id,
            environment=environment,
            region=region,
            zone=zone,
            app_name=os.getenv("APP_NAME") or DEFAULT_APP_NAME,
            terraform_dir=os.getenv("TERRAFORM_DIR") or "terraform",
            credentials_file=os.getenv("CREDENTIALS_FILE") or "credentials.json",
            remote_app_dir=os.getenv("REMOTE_APP_DIR") or None,
        )

    # ---- 파생 리소스 이름 ----

    @property
    def resource_prefix(self) -> str:
        return f"{self.app_name}-{self.environment}"

    @property
    def instance_name(self) -> str:
        return f"{self.resource_prefix}-vm"

    @property
    def database_instance_name(self) -> str:
        return f"{self.resource_prefix}-db"

    @property
    def bucket_name(self) -> str:
        return f"{self.project_id}-{self.resource_prefix}-data"

    @property
    def service_account_name(self) -> str:
        return f"{self.resource_prefix}-sa"

    @property
    def service_account_email(self) -> str:
        return f"{self.service_account_name}@{self.project_id}.iam.gserviceaccount.com"

    @property
    def remote_dir(self) -> str:
        return self.remote_app_dir or f"~/{self.app_name}"

    def tfvars(self) -> Dict[str, str]:
        """
        Terraform 변수 파일에 들어갈 값. 순서가 곧 파일 내 순서다.
        """
        return {
            "project_id": self.project_id,
            "environment": self.environment,
            "region": self.region,
            "zone": self.zone,
            "app_name": self.app_name,
            "instance_name": self.instance_name,
            "database_instance_name": self.database_instance_name,
            "bucket_name": self.bucket_name,
            "service_account_email": self.service_account_email,
        }
