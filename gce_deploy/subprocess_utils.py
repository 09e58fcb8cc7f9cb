from __future__ import annotations

import os
import subprocess
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from textwrap import shorten
from typing import Iterator, Mapping, Optional, Sequence

from .errors import CommandFailedError, ToolMissingError
from .logging_utils import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: str
    stderr: str


def _format_cmd(cmd: Sequence[str]) -> str:
    return " ".join(cmd)


def _missing_tool(cmd: Sequence[str]) -> ToolMissingError:
    return ToolMissingError(
        f"필요한 명령을 찾을 수 없습니다: {cmd[0]} (gcloud/terraform/docker 가 설치되어 있는지 확인하세요)"
    )


def _failure(cmd: Sequence[str], returncode: int, stdout: str, stderr: str) -> CommandFailedError:
    stdout = (stdout or "").strip()
    stderr = (stderr or "").strip()
    detail = ""
    if stderr:
        detail = "\nstderr:\n" + shorten(stderr, width=2000)
    elif stdout:
        detail = "\nstdout:\n" + shorten(stdout, width=2000)
    return CommandFailedError(
        f"명령 실행 실패: {_format_cmd(cmd)} (exit={returncode}){detail}",
        returncode=returncode,
        stdout=stdout,
        stderr=stderr,
    )


def run_command(
    cmd: Sequence[str],
    *,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
    stream_output: bool = False,
    interactive: bool = False,
) -> RunResult:
    """
    subprocess 실행 공통 유틸.

    - 기본(capture): stdout/stderr 캡처, 실패 시 요약을 CommandFailedError 에 담는다
    - stream_output=True : 출력을 실시간으로 터미널에 흘리면서 동시에 모은다 (terraform 등)
    - interactive=True   : 표준 입출력을 그대로 넘긴다 (gcloud auth login 등)

    timeout 은 기본적으로 걸지 않는다. 외부 도구가 멈추면 실행 전체가 멈춘다.
    """
    logger.info("명령 실행: %s", _format_cmd(cmd))
    run_env = dict(env) if env is not None else None

    if interactive:
        try:
            proc = subprocess.run(list(cmd), cwd=cwd, env=run_env, timeout=timeout)  # noqa: S603
        except FileNotFoundError as e:
            raise _missing_tool(cmd) from e
        if proc.returncode != 0:
            raise _failure(cmd, proc.returncode, "", "")
        return RunResult(returncode=proc.returncode, stdout="", stderr="")

    if stream_output:
        # terraform/gcloud 는 stderr 로도 진행 로그를 내보내므로 STDOUT 으로 합친다.
        try:
            proc = subprocess.Popen(  # noqa: S603
                list(cmd),
                cwd=cwd,
                env=run_env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
            )
        except FileNotFoundError as e:
            raise _missing_tool(cmd) from e

        out_lines: list[str] = []
        try:
            assert proc.stdout is not None
            for line in proc.stdout:
                out_lines.append(line)
                sys.stdout.write(line)
                sys.stdout.flush()
            returncode = proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired as e:
            proc.kill()
            raise CommandFailedError(
                f"명령 실행이 {timeout}초 안에 끝나지 않았습니다: {_format_cmd(cmd)}"
            ) from e
        finally:
            if proc.stdout is not None:
                proc.stdout.close()

        combined = "".join(out_lines)
        if returncode != 0:
            raise _failure(cmd, returncode, combined, "")
        return RunResult(returncode=returncode, stdout=combined, stderr="")

    try:
        result = subprocess.run(  # noqa: S603
            list(cmd),
            check=True,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd,
            env=run_env,
        )
    except FileNotFoundError as e:
        raise _missing_tool(cmd) from e
    except subprocess.TimeoutExpired as e:
        raise CommandFailedError(
            f"명령 실행이 {timeout}초 안에 끝나지 않았습니다: {_format_cmd(cmd)}"
        ) from e
    except subprocess.CalledProcessError as e:
        raise _failure(cmd, e.returncode, e.stdout or "", e.stderr or "") from e

    if result.stdout:
        logger.debug("명령 stdout: %s", shorten(result.stdout.strip(), width=2000))
    if result.stderr:
        logger.debug("명령 stderr: %s", shorten(result.stderr.strip(), width=2000))
    return RunResult(returncode=result.returncode, stdout=result.stdout or "", stderr=result.stderr or "")


def try_command(cmd: Sequence[str], **kwargs) -> Optional[RunResult]:  # noqa: ANN003
    """
    실패해도 예외를 던지지 않는 probe 용 실행. 실패(미설치 포함)면 None.
    """
    try:
        return run_command(cmd, **kwargs)
    except (ToolMissingError, CommandFailedError) as e:
        logger.debug("probe 실패: %s (%s)", _format_cmd(cmd), e)
        return None


@contextmanager
def pushd(path: str) -> Iterator[str]:
    """
    작업 디렉토리를 잠시 바꾼다. 예외로 빠져나가도 원래 디렉토리로 되돌린다.
    """
    previous = os.getcwd()
    os.chdir(path)
    logger.debug("작업 디렉토리 변경: %s -> %s", previous, path)
    try:
        yield os.getcwd()
    finally:
        os.chdir(previous)
        logger.debug("작업 디렉토리 복원: %s", previous)
