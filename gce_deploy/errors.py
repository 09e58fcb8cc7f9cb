"""
errors
------

배포/감사 도중 발생하는 오류 분류.
모두 RuntimeError 계열이므로 기존처럼 `except RuntimeError` 로도 잡힌다.
"""

from __future__ import annotations


class DeployError(RuntimeError):
    """gce_deploy 에서 발생시키는 모든 예외의 기반 클래스."""


class ToolMissingError(DeployError):
    """gcloud/terraform/docker 등 외부 CLI 를 찾을 수 없음."""


class AuthRequiredError(DeployError):
    """활성화된 gcloud 계정이 없음."""


class ResourceNotFoundError(DeployError):
    """필요한 클라우드/로컬 리소스가 존재하지 않음."""


class CommandFailedError(DeployError):
    """
    외부 명령이 0 이 아닌 종료 코드로 끝남.

    권한 부족(PERMISSION_DENIED) 역시 별도 타입 없이 stderr 텍스트로 여기에 담긴다.
    """

    def __init__(self, message: str, *, returncode: int = 1, stdout: str = "", stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class ValidationMismatchError(DeployError, ValueError):
    """설정 값이 허용 범위를 벗어나거나 서로 맞지 않음 (예: GCP_ZONE 이 GCP_REGION 에 속하지 않음)."""


class UserAbortedError(DeployError):
    """사용자가 확인 프롬프트에서 작업을 취소함."""
