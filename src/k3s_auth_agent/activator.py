"""
컨텍스트 활성화 모듈
컨텍스트 이름 지정, current-context 설정, 저장 및 연결 확인
"""

import copy
import json
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import ConnectivityError, NameConflict
from .kubeconfig import CredentialDocument, CredentialStore
from .logger import get_logger
from .merger import source_context

ROLE_LABEL_PREFIX = "node-role.kubernetes.io/"


class ContextAction(Enum):
    """컨텍스트 이름 지정 결정"""
    RENAME_DEFAULT = "rename_default"
    CONFLICT = "conflict"
    NO_OP_ALREADY_NAMED = "no_op_already_named"


@dataclass
class ContextDecision:
    action: ContextAction
    source: str
    target: str
    pair: Tuple[Optional[str], Optional[str]]
    existing_pair: Optional[Tuple[Optional[str], Optional[str]]] = None


@dataclass
class ActivationResult:
    document: CredentialDocument
    decision: ContextDecision
    backup: Optional[Path] = None


@dataclass
class NodeInfo:
    name: str
    status: str
    roles: List[str] = field(default_factory=list)
    version: str = ""

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "NodeInfo":
        metadata = item.get("metadata") or {}
        status = item.get("status") or {}
        labels = metadata.get("labels") or {}

        roles = sorted(
            key[len(ROLE_LABEL_PREFIX):]
            for key in labels
            if key.startswith(ROLE_LABEL_PREFIX)
        )

        ready = "NotReady"
        for condition in status.get("conditions") or []:
            if condition.get("type") == "Ready" and condition.get("status") == "True":
                ready = "Ready"

        return cls(
            name=metadata.get("name", "<unknown>"),
            status=ready,
            roles=roles,
            version=(status.get("nodeInfo") or {}).get("kubeletVersion", ""),
        )


def decide_context(merged: CredentialDocument, fetched: CredentialDocument, name: str) -> ContextDecision:
    """원하는 컨텍스트 이름에 대한 처리 방식 결정"""
    source = source_context(fetched)
    pair = fetched.context_pair(source)
    existing = merged.context_pair(name)

    if existing is None:
        return ContextDecision(ContextAction.RENAME_DEFAULT, source, name, pair)
    if existing == pair:
        return ContextDecision(ContextAction.NO_OP_ALREADY_NAMED, source, name, pair, existing)
    return ContextDecision(ContextAction.CONFLICT, source, name, pair, existing)


def select_context(merged: CredentialDocument, fetched: CredentialDocument,
                   name: str) -> Tuple[CredentialDocument, ContextDecision]:
    """컨텍스트 이름 변경 후 current-context로 지정 (디스크 I/O 없음)

    병합 결과의 source 컨텍스트는 가져온 클러스터/사용자를 가리킬 때만 제거한다.
    """
    logger = get_logger()
    decision = decide_context(merged, fetched, name)

    if decision.action is ContextAction.CONFLICT:
        logger.error(
            f"Context '{name}' already points at {decision.existing_pair}, "
            f"not {decision.pair}; leaving it untouched"
        )
        raise NameConflict(name, decision.existing_pair, decision.pair)

    doc = merged.copy()
    fetched_alias = decision.source != name and doc.context_pair(decision.source) == decision.pair
    if fetched_alias:
        doc.contexts.pop(decision.source)

    if decision.action is ContextAction.RENAME_DEFAULT:
        doc.contexts[name] = copy.deepcopy(fetched.contexts[decision.source])
        logger.info(f"Renamed context '{decision.source}' to '{name}'")
    else:
        logger.info(f"Context '{name}' already points at {decision.pair}, nothing to rename")

    doc.current_context = name
    return doc, decision


class ClusterProber:
    """kubectl get nodes 기반 연결 확인"""

    def __init__(self, kubeconfig_path: str, timeout: int = 15, kubectl: str = "kubectl"):
        self.kubeconfig_path = str(kubeconfig_path)
        self.timeout = timeout
        self.kubectl = kubectl
        self.logger = get_logger()

    def build_command(self, context: str) -> List[str]:
        return [
            self.kubectl,
            "--kubeconfig", self.kubeconfig_path,
            "--context", context,
            f"--request-timeout={self.timeout}s",
            "get", "nodes",
            "-o", "json",
        ]

    def probe(self, context: str) -> List[NodeInfo]:
        """노드 목록 조회, 실패 시 ConnectivityError"""
        cmd = self.build_command(context)
        self.logger.info(f"Probing context '{context}'")
        self.logger.debug(f"Executing: {' '.join(cmd)}")

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout + 5)
        except FileNotFoundError as e:
            raise ConnectivityError("kubectl is not installed", cause=e)
        except subprocess.TimeoutExpired as e:
            raise ConnectivityError(f"listing nodes timed out after {self.timeout}s", cause=e)

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise ConnectivityError(
                f"listing nodes failed (exit {result.returncode}){': ' + stderr if stderr else ''}"
            )

        try:
            data = json.loads(result.stdout or "{}")
        except ValueError as e:
            raise ConnectivityError("kubectl returned unreadable output", cause=e)

        if not isinstance(data, dict):
            raise ConnectivityError(f"kubectl returned unexpected JSON ({type(data).__name__})")

        items = data.get("items") or []
        if not items:
            raise ConnectivityError("cluster returned an empty node list")

        nodes = [NodeInfo.from_item(item) for item in items]
        self.logger.info(f"Cluster reachable, {len(nodes)} node(s)")
        return nodes


class Activator:
    """컨텍스트 선택, 저장, 연결 확인"""

    def __init__(self, store: CredentialStore, prober: Optional[ClusterProber] = None):
        self.store = store
        self.prober = prober or ClusterProber(str(store.path))
        self.logger = get_logger()

    def activate(self, merged: CredentialDocument, fetched: CredentialDocument, name: str) -> ActivationResult:
        """이름 지정 후 저장 (충돌 시 디스크는 변경되지 않음)"""
        document, decision = select_context(merged, fetched, name)
        backup = self.store.save(document)
        return ActivationResult(document=document, decision=decision, backup=backup)

    def probe(self, name: str) -> List[NodeInfo]:
        return self.prober.probe(name)
