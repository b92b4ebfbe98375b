"""
설정 관리 모듈
YAML/JSON 기반 설정 파일 관리 및 기본값 제공
"""

import getpass
import os
import yaml
import json
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, asdict

from .kubeconfig import DEFAULT_KUBECONFIG_PATH
from .logger import DEFAULT_LOG_DIR


@dataclass
class MasterConfig:
    """K3s 마스터 노드 설정"""
    ip: str = ""
    ssh_user: str = field(default_factory=getpass.getuser)
    ssh_port: int = 22
    ssh_timeout: int = 10
    api_port: int = 6443
    remote_path: str = "/etc/rancher/k3s/k3s.yaml"


@dataclass
class ContextConfig:
    """컨텍스트 설정"""
    name: str = "homelab-k3s"


@dataclass
class KubeconfigConfig:
    """로컬 kubeconfig 설정"""
    path: str = DEFAULT_KUBECONFIG_PATH


@dataclass
class ArgoCDConfig:
    """ArgoCD CLI 설정"""
    enabled: bool = True
    namespace: str = "argocd"
    server: str = ""
    username: str = "admin"
    insecure: bool = True
    grpc_web: bool = True


@dataclass
class AgentConfig:
    """에이전트 설정"""
    log_dir: str = DEFAULT_LOG_DIR
    log_level: str = "INFO"
    probe_timeout: int = 15
    diagnose_on_failure: bool = True


class Config:
    """전체 설정 관리 클래스"""

    DEFAULT_CONFIG_PATHS = [
        "/etc/k3s-auth-agent/config.yaml",
        "~/.k3s-auth-agent/config.yaml",
        "./config/config.yaml",
        "./config.yaml",
    ]

    SECTIONS = ("master", "context", "kubeconfig", "argocd", "agent")

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path
        self.master = MasterConfig()
        self.context = ContextConfig()
        self.kubeconfig = KubeconfigConfig()
        self.argocd = ArgoCDConfig()
        self.agent = AgentConfig()

        if config_path:
            self.load(config_path)
        else:
            self._load_from_default_paths()

    def _load_from_default_paths(self):
        """기본 경로에서 설정 파일 로드"""
        for path in self.DEFAULT_CONFIG_PATHS:
            expanded_path = os.path.expanduser(path)
            if os.path.exists(expanded_path):
                self.load(expanded_path)
                return

    def load(self, path: str):
        """설정 파일 로드"""
        path = os.path.expanduser(path)
        if not os.path.exists(path):
            return

        with open(path, 'r', encoding='utf-8') as f:
            if path.endswith('.json'):
                data = json.load(f)
            else:
                data = yaml.safe_load(f) or {}

        self._update_from_dict(data)
        self.config_path = path

    def _update_from_dict(self, data: Dict[str, Any]):
        """딕셔너리에서 설정 업데이트"""
        for section in self.SECTIONS:
            values = data.get(section)
            if not isinstance(values, dict):
                continue
            target = getattr(self, section)
            for key, value in values.items():
                if hasattr(target, key):
                    setattr(target, key, value)

    def save(self, path: Optional[str] = None):
        """설정 파일 저장"""
        save_path = path or self.config_path or self.DEFAULT_CONFIG_PATHS[1]
        save_path = os.path.expanduser(save_path)

        directory = os.path.dirname(save_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        data = self.to_dict()

        with open(save_path, 'w', encoding='utf-8') as f:
            if save_path.endswith('.json'):
                json.dump(data, f, indent=2)
            else:
                yaml.dump(data, f, default_flow_style=False, allow_unicode=True)

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리로 변환"""
        return {section: asdict(getattr(self, section)) for section in self.SECTIONS}

    def create_sample(self, output_path: str):
        """샘플 설정 파일 생성"""
        template = """# K3s Auth Agent Configuration File
# 이 파일을 복사하여 config.yaml로 사용하세요

# K3s 마스터 노드 설정
master:
  ip: "192.168.1.100"  # 마스터 노드 IP
  ssh_user: ""  # 비워두면 현재 사용자
  ssh_port: 22
  ssh_timeout: 10
  api_port: 6443
  remote_path: "/etc/rancher/k3s/k3s.yaml"

# 컨텍스트 설정
context:
  name: "homelab-k3s"

# 로컬 kubeconfig
kubeconfig:
  path: "~/.kube/config"

# ArgoCD CLI 설정
argocd:
  enabled: true  # 클러스터에 argocd 네임스페이스가 있으면 로그인 여부를 묻습니다
  namespace: "argocd"
  server: ""  # 예: argocd.example.com 또는 localhost:8080
  username: "admin"
  insecure: true
  grpc_web: true

# 에이전트 설정
agent:
  log_dir: "~/.k3s-auth-agent/logs"
  log_level: "INFO"  # DEBUG, INFO, WARNING, ERROR
  probe_timeout: 15  # kubectl get nodes 타임아웃 (초)
  diagnose_on_failure: true
"""

        directory = os.path.dirname(output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(template)
