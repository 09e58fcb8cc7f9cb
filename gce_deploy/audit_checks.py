"""
audit_checks
------------

GCP 프로젝트 설정 감사용 체크 함수 모음.

모든 체크는 읽기 전용이다. 상태를 바꾸는 자동 수정은 remediation 모듈이 따로 담당한다.
체크 함수는 AuditContext 하나를 받아 CheckResult 하나를 돌려주며,
예외는 auditor.run_check 가 ERROR 결과로 바꿔준다.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, List, Mapping, Optional, Set

from . import gcp_auth, gcp_iam, gcp_project, models, tools
from .config import DeploymentConfig
from .errors import ResourceNotFoundError
from .models import Category, CheckResult


CREDENTIALS_ENV_VAR = "GOOGLE_APPLICATION_CREDENTIALS"

ISSUE_API_DISABLED = "api_disabled"
ISSUE_ROLE_MISSING = "role_missing"
ISSUE_SERVICE_ACCOUNT_MISSING = "service_account_missing"
ISSUE_ENV_VAR_MISSING = "env_var_missing"

SERVICE_ACCOUNT_KEY_FIELDS = ["type", "project_id", "private_key", "client_email"]


@dataclass(frozen=True)
class LocalFile:
    path: str
    required: bool
    description: str


@dataclass
class AuditContext:
    cfg: DeploymentConfig
    base_dir: str = "."
    environ: Mapping[str, str] = field(default_factory=lambda: os.environ)
    _enabled_apis: Optional[Set[str]] = field(default=None, init=False, repr=False)

    def path(self, rel: str) -> str:
        return os.path.join(self.base_dir, rel)

    def enabled_apis(self) -> Set[str]:
        if self._enabled_apis is None:
            self._enabled_apis = gcp_project.list_enabled_apis(self.cfg)
        return self._enabled_apis

    def credentials_path(self) -> str:
        return self.environ.get(CREDENTIALS_ENV_VAR) or self.path(self.cfg.credentials_file)

    def local_files(self) -> List[LocalFile]:
        return [
            LocalFile("docker-compose.yml", True, "docker compose 정의"),
            LocalFile(".env", True, "컨테이너 환경변수 파일"),
            LocalFile(os.path.join(self.cfg.terraform_dir, "main.tf"), False, "Terraform 정의"),
            LocalFile("config", False, "애플리케이션 설정 디렉토리"),
        ]


@dataclass(frozen=True)
class CheckSpec:
    category: Category
    name: str
    fn: Callable[[AuditContext], CheckResult]


# ---- Prerequisites ----

def check_tool(tool: tools.RequiredTool, ctx: AuditContext) -> CheckResult:  # noqa: ARG001
    return tools.check_tool(tool)


# ---- Project ----

def check_project_exists(ctx: AuditContext) -> CheckResult:
    try:
        info = gcp_project.describe_project(ctx.cfg)
    except ResourceNotFoundError as e:
        return models.error(
            str(e),
            hint=f"프로젝트 ID 를 확인하거나 `gcloud projects create {ctx.cfg.project_id}` 로 생성하세요.",
        )

    state = info.get("lifecycleState", "")
    name = info.get("name", "")
    if state == "ACTIVE":
        return models.ok(
            f"프로젝트 활성 상태 ({name or ctx.cfg.project_id})",
            name=name,
            number=info.get("projectNumber", ""),
        )
    return models.warning(
        f"프로젝트 상태가 ACTIVE 가 아닙니다: {state or '(알 수 없음)'}",
        hint="GCP 콘솔에서 프로젝트 상태(삭제 예정 등)를 확인하세요.",
        state=state,
    )


def check_active_account(ctx: AuditContext) -> CheckResult:  # noqa: ARG001
    account = gcp_auth.get_active_account()
    if account:
        return models.ok(f"활성 계정: {account}", account=account)
    return models.error("활성화된 gcloud 계정이 없습니다.", hint="`gcloud auth login` 으로 로그인하세요.")


def check_configured_project(ctx: AuditContext) -> CheckResult:
    current = gcp_auth.get_configured_project()
    if current == ctx.cfg.project_id:
        return models.ok(f"gcloud 기본 프로젝트 일치 ({current})")
    return models.warning(
        f"gcloud 기본 프로젝트가 다릅니다: {current or '(unset)'}",
        hint=f"`gcloud config set project {ctx.cfg.project_id}` 를 실행하세요.",
        current=current or "",
    )


# ---- APIs ----

def check_api(api: str, ctx: AuditContext) -> CheckResult:
    if api in ctx.enabled_apis():
        return models.ok(f"활성화됨 ({api})")
    return models.error(
        f"비활성화 ({api})",
        hint=f"`gcloud services enable {api} --project={ctx.cfg.project_id}`",
        issue=ISSUE_API_DISABLED,
        api=api,
    )


# ---- Billing ----

def check_billing(ctx: AuditContext) -> CheckResult:
    info = gcp_project.describe_billing(ctx.cfg)
    if info.get("billingEnabled"):
        return models.ok(
            f"결제 계정 연결됨 ({info.get('billingAccountName', '')})",
            account=info.get("billingAccountName", ""),
        )
    return models.error(
        "결제(billing)가 활성화되어 있지 않습니다.",
        hint=f"`gcloud billing projects link {ctx.cfg.project_id} --billing-account=<ACCOUNT_ID>`",
    )


# ---- ServiceAccount ----

def check_service_account(ctx: AuditContext) -> CheckResult:
    email = ctx.cfg.service_account_email
    if gcp_iam.service_account_exists(ctx.cfg):
        return models.ok(f"서비스 계정 존재함 ({email})", email=email)
    return models.error(
        f"서비스 계정 없음 ({email})",
        hint="Terraform apply 로 생성하거나 `audit --fix` 로 생성하세요.",
        issue=ISSUE_SERVICE_ACCOUNT_MISSING,
        email=email,
    )


def check_role(role: str, ctx: AuditContext) -> CheckResult:
    roles = gcp_iam.get_service_account_roles(ctx.cfg)
    if role in roles:
        return models.ok(f"역할 부여됨 ({role})", role=role)
    return models.error(
        f"역할 없음 ({role})",
        hint=(
            f"`gcloud projects add-iam-policy-binding {ctx.cfg.project_id} "
            f"--member=serviceAccount:{ctx.cfg.service_account_email} --role={role}`"
        ),
        issue=ISSUE_ROLE_MISSING,
        role=role,
    )


# ---- Credentials ----

def check_credentials_env(ctx: AuditContext) -> CheckResult:
    value = ctx.environ.get(CREDENTIALS_ENV_VAR)
    if value:
        if os.path.isfile(value):
            return models.ok(f"{CREDENTIALS_ENV_VAR} 설정됨 ({value})", path=value)
        return models.error(
            f"{CREDENTIALS_ENV_VAR} 가 존재하지 않는 파일을 가리킵니다: {value}",
            hint=f"{CREDENTIALS_ENV_VAR} 경로를 올바른 서비스 계정 키 파일로 바꾸세요.",
            path=value,
        )

    local = os.path.abspath(ctx.path(ctx.cfg.credentials_file))
    if os.path.isfile(local):
        return models.warning(
            f"{CREDENTIALS_ENV_VAR} 가 설정되지 않았습니다. (로컬 키 파일 있음: {local})",
            hint=f"{CREDENTIALS_ENV_VAR}={local} 로 설정하세요. (`audit --fix` 로 자동 설정 가능)",
            issue=ISSUE_ENV_VAR_MISSING,
            path=local,
        )
    return models.warning(
        f"{CREDENTIALS_ENV_VAR} 가 설정되지 않았습니다.",
        hint="서비스 계정 키를 발급받아 경로를 환경변수로 지정하세요.",
    )


def check_credentials_file(ctx: AuditContext) -> CheckResult:
    path = ctx.credentials_path()
    if os.path.isfile(path):
        return models.ok(f"키 파일 존재함 ({path})", path=path)
    return models.error(
        f"키 파일 없음 ({path})",
        hint=(
            f"`gcloud iam service-accounts keys create {ctx.cfg.credentials_file} "
            f"--iam-account={ctx.cfg.service_account_email}`"
        ),
        path=path,
    )


def _load_credentials(ctx: AuditContext) -> dict:
    path = ctx.credentials_path()
    if not os.path.isfile(path):
        raise ResourceNotFoundError(f"키 파일 없음 ({path})")
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def check_credentials_valid(ctx: AuditContext) -> CheckResult:
    try:
        data = _load_credentials(ctx)
    except json.JSONDecodeError as e:
        return models.error(f"키 파일이 올바른 JSON 이 아닙니다: {e}", hint="키 파일을 다시 발급받으세요.")

    missing = [k for k in SERVICE_ACCOUNT_KEY_FIELDS if not data.get(k)]
    if missing:
        return models.error(
            f"키 파일에 필드가 없습니다: {', '.join(missing)}",
            hint="서비스 계정 JSON 키 파일인지 확인하세요.",
            missing=missing,
        )
    if data.get("type") != "service_account":
        return models.error(
            f"서비스 계정 키가 아닙니다 (type={data.get('type')})",
            hint="서비스 계정 JSON 키 파일인지 확인하세요.",
        )
    return models.ok(f"서비스 계정 키 ({data.get('client_email')})", client_email=data.get("client_email"))


def check_credentials_project(ctx: AuditContext) -> CheckResult:
    data = _load_credentials(ctx)
    key_project = data.get("project_id")
    if not key_project:
        return models.error("키 파일에 project_id 가 없습니다.", hint="키 파일을 다시 발급받으세요.")
    if key_project == ctx.cfg.project_id:
        return models.ok(f"키 파일 프로젝트 일치 ({key_project})", project_id=key_project)
    return models.warning(
        f"키 파일 프로젝트가 다릅니다: {key_project} != {ctx.cfg.project_id}",
        hint=f"{ctx.cfg.project_id} 프로젝트의 서비스 계정 키를 사용하세요.",
        project_id=key_project,
    )


# ---- Configuration ----

def check_local_file(item: LocalFile, ctx: AuditContext) -> CheckResult:
    path = ctx.path(item.path)
    if os.path.exists(path):
        return models.ok(f"{item.description} 있음 ({item.path})", path=item.path)
    if item.required:
        return models.error(
            f"필수 파일 없음: {item.path}",
            hint=f"{item.path} ({item.description}) 를 작업 디렉토리에 준비하세요.",
            path=item.path,
        )
    return models.warning(f"선택 파일 없음: {item.path}", path=item.path)


def build_check_plan(ctx: AuditContext) -> List[CheckSpec]:
    """
    실행 순서대로 정렬된 체크 목록.
    """
    plan: List[CheckSpec] = []

    for tool in tools.REQUIRED_TOOLS:
        plan.append(CheckSpec(Category.PREREQUISITES, tool.name, partial(check_tool, tool)))

    plan.append(CheckSpec(Category.PROJECT, "project_exists", check_project_exists))
    plan.append(CheckSpec(Category.PROJECT, "active_account", check_active_account))
    plan.append(CheckSpec(Category.PROJECT, "configured_project", check_configured_project))

    for api in gcp_project.REQUIRED_APIS:
        plan.append(CheckSpec(Category.APIS, api, partial(check_api, api)))

    plan.append(CheckSpec(Category.BILLING, "billing_enabled", check_billing))

    plan.append(CheckSpec(Category.SERVICE_ACCOUNT, "exists", check_service_account))
    for role in gcp_iam.REQUIRED_ROLES:
        plan.append(CheckSpec(Category.SERVICE_ACCOUNT, role, partial(check_role, role)))

    plan.append(CheckSpec(Category.CREDENTIALS, "env_var", check_credentials_env))
    plan.append(CheckSpec(Category.CREDENTIALS, "key_file", check_credentials_file))
    plan.append(CheckSpec(Category.CREDENTIALS, "key_valid", check_credentials_valid))
    plan.append(CheckSpec(Category.CREDENTIALS, "project_match", check_credentials_project))

    for item in ctx.local_files():
        plan.append(CheckSpec(Category.CONFIGURATION, item.path, partial(check_local_file, item)))

    return plan
