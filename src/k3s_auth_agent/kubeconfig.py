"""
kubeconfig 데이터 모델
CredentialDocument(파싱된 kubeconfig)와 CredentialStore(디스크상의 kubeconfig) 관리
"""

import copy
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .errors import ParseError, StoreError, STAGE_MERGING
from .logger import get_logger

DEFAULT_KUBECONFIG_PATH = "~/.kube/config"
BACKUP_MARKER = ".backup."
BACKUP_TIME_FORMAT = "%Y%m%d-%H%M%S"

# (최상위 키, 항목 본문 키)
SECTIONS = (
    ("clusters", "cluster"),
    ("users", "user"),
    ("contexts", "context"),
)


def decode_document(data: bytes, source: str = "kubeconfig") -> str:
    """UTF-8 디코딩, 실패 시 ParseError"""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"{source} is not valid UTF-8", cause=e)


@dataclass
class CredentialDocument:
    """파싱된 kubeconfig 문서

    clusters/users/contexts는 이름 -> 본문 매핑으로 보관하고,
    apiVersion, kind, preferences 등 나머지 최상위 키는 extras에 그대로 둔다.
    """
    clusters: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    users: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    contexts: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    current_context: Optional[str] = None
    extras: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any, source: str = "kubeconfig") -> "CredentialDocument":
        """딕셔너리에서 문서 생성"""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ParseError(f"{source} is not a mapping (got {type(data).__name__})")

        doc = cls()
        for section, body_key in SECTIONS:
            entries = data.get(section)
            if entries is None:
                continue
            if not isinstance(entries, list):
                raise ParseError(f"{source}: '{section}' must be a list")

            target = getattr(doc, section)
            for index, entry in enumerate(entries):
                if not isinstance(entry, dict):
                    raise ParseError(f"{source}: {section}[{index}] is not a mapping")
                name = entry.get("name")
                if not isinstance(name, str) or not name:
                    raise ParseError(f"{source}: {section}[{index}] has no name")
                body = entry.get(body_key) or {}
                if not isinstance(body, dict):
                    raise ParseError(f"{source}: {section}[{index}].{body_key} is not a mapping")
                target[name] = body

        current = data.get("current-context")
        if current is not None and not isinstance(current, str):
            raise ParseError(f"{source}: current-context must be a string")
        doc.current_context = current or None

        known = {section for section, _ in SECTIONS} | {"current-context"}
        doc.extras = {k: v for k, v in data.items() if k not in known}
        return doc

    @classmethod
    def from_yaml(cls, text: str, source: str = "kubeconfig") -> "CredentialDocument":
        """YAML 문자열 파싱"""
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ParseError(f"{source} is not valid YAML", cause=e)
        return cls.from_dict(data, source)

    def to_dict(self) -> Dict[str, Any]:
        """kubectl과 같은 키 순서의 딕셔너리로 변환"""
        data: Dict[str, Any] = {
            "apiVersion": self.extras.get("apiVersion", "v1"),
            "kind": self.extras.get("kind", "Config"),
        }
        data["clusters"] = [{"name": n, "cluster": b} for n, b in self.clusters.items()]
        data["contexts"] = [{"name": n, "context": b} for n, b in self.contexts.items()]
        data["current-context"] = self.current_context or ""
        data["preferences"] = self.extras.get("preferences", {})
        data["users"] = [{"name": n, "user": b} for n, b in self.users.items()]

        for key, value in self.extras.items():
            if key not in data:
                data[key] = value
        return data

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def copy(self) -> "CredentialDocument":
        return copy.deepcopy(self)

    def context_pair(self, name: str) -> Optional[Tuple[Optional[str], Optional[str]]]:
        """컨텍스트가 가리키는 (cluster, user) 쌍"""
        body = self.contexts.get(name)
        if body is None:
            return None
        return body.get("cluster"), body.get("user")

    def validate(self) -> List[str]:
        """참조 무결성 검사, 문제 목록 반환"""
        problems = []
        for name, body in self.contexts.items():
            cluster, user = body.get("cluster"), body.get("user")
            if cluster not in self.clusters:
                problems.append(f"context '{name}' references unknown cluster '{cluster}'")
            if user not in self.users:
                problems.append(f"context '{name}' references unknown user '{user}'")
        if self.current_context and self.current_context not in self.contexts:
            problems.append(f"current-context '{self.current_context}' does not exist")
        return problems


class CredentialStore:
    """로컬 kubeconfig 파일

    다른 도구(kubectl, argocd)도 같은 파일을 쓰므로 매번 전체를 읽고,
    덮어쓰기 직전에 백업을 만든 뒤 임시 파일 + rename으로 교체한다.
    동시 실행에 대한 잠금은 하지 않는다.
    """

    def __init__(self, path: str = DEFAULT_KUBECONFIG_PATH):
        self.path = Path(os.path.expanduser(path))
        self.logger = get_logger()

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> Optional[CredentialDocument]:
        """kubeconfig 로드 (없으면 None)"""
        if not self.exists():
            self.logger.debug(f"No kubeconfig at {self.path}")
            return None

        try:
            data = self.path.read_bytes()
        except OSError as e:
            raise StoreError(f"cannot read {self.path}", cause=e, stage=STAGE_MERGING)

        try:
            doc = CredentialDocument.from_yaml(decode_document(data, str(self.path)), source=str(self.path))
        except ParseError as e:
            e.stage = STAGE_MERGING
            raise
        self.logger.debug(
            f"Loaded {self.path}: {len(doc.clusters)} clusters, "
            f"{len(doc.users)} users, {len(doc.contexts)} contexts"
        )
        return doc

    def backup_path_for(self, timestamp: datetime) -> Path:
        base = f"{self.path.name}{BACKUP_MARKER}{timestamp.strftime(BACKUP_TIME_FORMAT)}"
        candidate = self.path.with_name(base)
        counter = 1
        while candidate.exists():
            candidate = self.path.with_name(f"{base}.{counter}")
            counter += 1
        return candidate

    def backup(self, timestamp: Optional[datetime] = None) -> Optional[Path]:
        """현재 파일의 바이트 단위 복사본 생성"""
        if not self.exists():
            return None
        target = self.backup_path_for(timestamp or datetime.now())
        shutil.copy2(self.path, target)
        self.logger.info(f"Backed up {self.path} to {target}")
        return target

    def save(self, document: CredentialDocument, timestamp: Optional[datetime] = None) -> Optional[Path]:
        """백업 후 원자적으로 교체, 백업 경로 반환"""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            backup = self.backup(timestamp)
            self._replace(document.to_yaml())
        except OSError as e:
            raise StoreError(f"cannot write {self.path}", cause=e)

        self.logger.info(f"Wrote {self.path}")
        return backup

    def _replace(self, text: str):
        fd, tmp_path = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def list_backups(self) -> List[Path]:
        """백업 파일 목록 (오래된 순)"""
        pattern = f"{self.path.name}{BACKUP_MARKER}*"
        return sorted(self.path.parent.glob(pattern))
