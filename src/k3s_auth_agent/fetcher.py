"""
원격 kubeconfig 수집 모듈
SSH로 마스터 노드의 k3s.yaml을 읽어 임시 파일에 저장
"""

import os
import shlex
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List

from .errors import TransportError
from .logger import get_logger

DEFAULT_REMOTE_PATH = "/etc/rancher/k3s/k3s.yaml"


class KubeconfigFetcher:
    """SSH 기반 kubeconfig 수집 클래스"""

    def __init__(self, host: str, user: str, port: int = 22,
                 remote_path: str = DEFAULT_REMOTE_PATH, connect_timeout: int = 10):
        self.host = host
        self.user = user
        self.port = port
        self.remote_path = remote_path
        self.connect_timeout = connect_timeout
        self.logger = get_logger()

    @property
    def target(self) -> str:
        return f"{self.user}@{self.host}"

    def build_command(self) -> List[str]:
        """ssh 명령어 구성"""
        return [
            "ssh",
            "-p", str(self.port),
            "-o", f"ConnectTimeout={self.connect_timeout}",
            self.target,
            f"sudo cat {shlex.quote(self.remote_path)}",
        ]

    @contextmanager
    def fetch(self) -> Iterator[Path]:
        """kubeconfig를 비공개 임시 파일로 가져온다

        블록을 벗어나면 성공/실패와 관계없이 임시 파일은 삭제된다.
        """
        fd, tmp_path = tempfile.mkstemp(prefix="k3s-kubeconfig-", suffix=".yaml")
        try:
            cmd = self.build_command()
            self.logger.info(f"Fetching {self.remote_path} from {self.target} (port {self.port})")
            self.logger.debug(f"Executing: {' '.join(cmd)}")

            with os.fdopen(fd, "w", encoding="utf-8") as out:
                try:
                    result = subprocess.run(cmd, stdout=out, stderr=subprocess.PIPE, text=True)
                except FileNotFoundError as e:
                    raise TransportError("ssh client is not installed", cause=e)
                except OSError as e:
                    raise TransportError(f"could not run ssh against {self.target}", cause=e)

            if result.returncode != 0:
                stderr = (result.stderr or "").strip()
                raise TransportError(
                    f"reading {self.remote_path} on {self.target} failed "
                    f"(exit {result.returncode}){': ' + stderr if stderr else ''}"
                )

            self.logger.debug(f"Fetched kubeconfig into {tmp_path}")
            yield Path(tmp_path)
        finally:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
                self.logger.debug(f"Removed temporary file {tmp_path}")

    def read(self) -> bytes:
        """kubeconfig 원본 바이트 반환"""
        with self.fetch() as path:
            return path.read_bytes()
