"""
에러 정의 모듈
파이프라인 단계별 예외 계층
"""

from typing import Optional

STAGE_FETCHING = "fetching"
STAGE_REWRITING = "rewriting"
STAGE_MERGING = "merging"
STAGE_ACTIVATING = "activating"


class AgentError(Exception):
    """모든 에이전트 오류의 기본 클래스"""

    stage = "unknown"

    def __init__(self, message: str, cause: Optional[BaseException] = None, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        if stage:
            self.stage = stage

    def __str__(self) -> str:
        if self.cause is not None:
            return f"[{self.stage}] {self.message}: {self.cause}"
        return f"[{self.stage}] {self.message}"


class TransportError(AgentError):
    """원격 kubeconfig 수집 실패 (SSH 연결/권한)"""

    stage = STAGE_FETCHING


class ParseError(AgentError):
    """kubeconfig 문서 형식 오류"""

    stage = STAGE_REWRITING


class MergeError(AgentError):
    """병합 입력 구조 오류"""

    stage = STAGE_MERGING


class NameConflict(AgentError):
    """컨텍스트 이름이 다른 클러스터/사용자와 충돌"""

    stage = STAGE_ACTIVATING

    def __init__(self, name: str, existing: tuple, requested: tuple):
        super().__init__(
            f"context '{name}' already exists for cluster/user {existing[0]}/{existing[1]}, "
            f"refusing to point it at {requested[0]}/{requested[1]}"
        )
        self.name = name
        self.existing = existing
        self.requested = requested


class ConnectivityError(AgentError):
    """연결 확인 실패 (kubeconfig는 이미 저장된 상태)"""

    stage = STAGE_ACTIVATING


class StoreError(AgentError):
    """로컬 kubeconfig 읽기/쓰기 실패"""

    stage = STAGE_ACTIVATING
