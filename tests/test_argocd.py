"""
ArgoCD CLI 인증 모듈 테스트
"""

import subprocess

import pytest

from k3s_auth_agent import argocd as argocd_module
from k3s_auth_agent.argocd import ArgoCDManager


@pytest.fixture
def manager():
    return ArgoCDManager({"namespace": "argocd"}, "/home/pi/.kube/config", "homelab-k3s")


def test_build_login_command(manager):
    assert manager.build_login_command("argocd.lan", "admin", "s3cret") == [
        "argocd", "login", "argocd.lan", "--username", "admin", "--password", "s3cret",
        "--insecure", "--grpc-web",
    ]


def test_build_login_command_secure():
    manager = ArgoCDManager({"insecure": False, "grpc_web": False}, "/tmp/config", "lab")
    assert "--insecure" not in manager.build_login_command("argocd.lan", "admin", "pw")
    assert "--grpc-web" not in manager.build_login_command("argocd.lan", "admin", "pw")


def test_namespace_exists_uses_context(monkeypatch, manager):
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout="argocd   Active", stderr="")

    monkeypatch.setattr(argocd_module.subprocess, "run", fake_run)

    assert manager.namespace_exists() == True
    assert calls[0] == [
        "kubectl", "--kubeconfig", "/home/pi/.kube/config", "--context", "homelab-k3s",
        "get", "namespace", "argocd",
    ]


def test_namespace_missing(monkeypatch, manager):
    monkeypatch.setattr(
        argocd_module.subprocess, "run",
        lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 1, stdout="", stderr="NotFound"),
    )
    assert manager.namespace_exists() == False


def test_login_success(monkeypatch, manager):
    def fake_run(cmd, **kwargs):
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    monkeypatch.setattr(argocd_module.subprocess, "run", fake_run)

    success, msg = manager.login("argocd.lan", "admin", "s3cret")
    assert success == True


def test_login_failure(monkeypatch, manager):
    def fake_run(cmd, **kwargs):
        if cmd[0] == "which":
            return subprocess.CompletedProcess(cmd, 0, stdout="/usr/local/bin/argocd", stderr="")
        return subprocess.CompletedProcess(cmd, 20, stdout="", stderr="Invalid username or password")

    monkeypatch.setattr(argocd_module.subprocess, "run", fake_run)

    success, msg = manager.login("argocd.lan", "admin", "wrong")
    assert success == False
    assert "Invalid" in msg


def test_login_without_cli(monkeypatch, manager):
    monkeypatch.setattr(
        argocd_module.subprocess, "run",
        lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 1, stdout="", stderr=""),
    )

    success, msg = manager.login("argocd.lan", "admin", "pw")
    assert success == False
    assert "argocd CLI" in msg
