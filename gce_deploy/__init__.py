"""
gce_deploy
----------

GCE(Compute Engine) VM 위에 컨테이너 애플리케이션을 배포하는 CLI 패키지.
Terraform 으로 인프라를 만들고, docker compose 스택을 VM 에 올린 뒤,
별도의 감사(audit) 명령으로 GCP 프로젝트 설정 상태를 점수화한 리포트를 만든다.
"""

__all__ = [
    "config",
    "orchestrator",
    "auditor",
]
