"""
공용 테스트 픽스처
"""

import pytest

from k3s_auth_agent.logger import init_logger

K3S_YAML = """apiVersion: v1
clusters:
- cluster:
    certificate-authority-data: LS0tLS1CRUdJTiBDRVJUSUZJQ0FURS0tLS0t
    server: https://127.0.0.1:6443
  name: default
contexts:
- context:
    cluster: default
    user: default
  name: default
current-context: default
kind: Config
preferences: {}
users:
- name: default
  user:
    client-certificate-data: Y2xpZW50LWNlcnQ=
    client-key-data: Y2xpZW50LWtleQ==
"""

EXISTING_YAML = """apiVersion: v1
kind: Config
clusters:
- cluster:
    server: https://work.example.com:6443
  name: work
contexts:
- context:
    cluster: work
    user: work-admin
    namespace: team-a
  name: work
current-context: work
preferences: {}
users:
- name: work-admin
  user:
    token: abc123
"""


@pytest.fixture(autouse=True)
def agent_logger(tmp_path_factory):
    """테스트마다 임시 디렉토리에 로그 기록"""
    return init_logger(str(tmp_path_factory.mktemp("logs")), "DEBUG", False)


@pytest.fixture
def k3s_yaml():
    return K3S_YAML


@pytest.fixture
def existing_yaml():
    return EXISTING_YAML
