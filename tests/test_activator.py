"""
컨텍스트 활성화 모듈 테스트
"""

import json
import subprocess

import pytest

from k3s_auth_agent import activator as activator_module
from k3s_auth_agent.activator import (
    Activator,
    ClusterProber,
    ContextAction,
    NodeInfo,
    decide_context,
    select_context,
)
from k3s_auth_agent.errors import ConnectivityError, NameConflict
from k3s_auth_agent.kubeconfig import CredentialDocument, CredentialStore
from k3s_auth_agent.merger import merge
from k3s_auth_agent.rewriter import rewrite_server

NODE_LIST = {
    "items": [
        {
            "metadata": {
                "name": "k3s-master",
                "labels": {
                    "node-role.kubernetes.io/control-plane": "true",
                    "node-role.kubernetes.io/master": "true",
                },
            },
            "status": {
                "conditions": [{"type": "Ready", "status": "True"}],
                "nodeInfo": {"kubeletVersion": "v1.30.4+k3s1"},
            },
        },
        {
            "metadata": {"name": "k3s-worker-1", "labels": {}},
            "status": {"conditions": [{"type": "Ready", "status": "False"}]},
        },
    ]
}


class FakeProber:
    def __init__(self, nodes=None, error=None):
        self.nodes = nodes or [NodeInfo("k3s-master", "Ready")]
        self.error = error
        self.calls = []

    def probe(self, context):
        self.calls.append(context)
        if self.error:
            raise self.error
        return self.nodes


@pytest.fixture
def fetched(k3s_yaml):
    return rewrite_server(k3s_yaml, "10.0.0.5", 6443)


@pytest.fixture
def existing(existing_yaml):
    return CredentialDocument.from_yaml(existing_yaml)


def test_decide_rename_default(fetched):
    decision = decide_context(merge(None, fetched), fetched, "homelab-k3s")

    assert decision.action is ContextAction.RENAME_DEFAULT
    assert decision.source == "default"
    assert decision.pair == ("default", "default")


def test_decide_noop_when_same_pair_already_named(fetched):
    merged = merge(None, fetched)
    merged.contexts["homelab-k3s"] = {"cluster": "default", "user": "default"}

    decision = decide_context(merged, fetched, "homelab-k3s")

    assert decision.action is ContextAction.NO_OP_ALREADY_NAMED


def test_decide_noop_when_name_is_default(fetched):
    decision = decide_context(merge(None, fetched), fetched, "default")
    assert decision.action is ContextAction.NO_OP_ALREADY_NAMED


def test_decide_conflict(existing, fetched):
    existing.contexts["homelab-k3s"] = {"cluster": "work", "user": "work-admin"}

    decision = decide_context(merge(existing, fetched), fetched, "homelab-k3s")

    assert decision.action is ContextAction.CONFLICT
    assert decision.existing_pair == ("work", "work-admin")


def test_decide_conflict_when_default_points_elsewhere(existing, fetched):
    existing.contexts["default"] = {"cluster": "work", "user": "work-admin"}

    decision = decide_context(merge(existing, fetched), fetched, "default")

    assert decision.action is ContextAction.CONFLICT
    assert decision.existing_pair == ("work", "work-admin")

def test_select_on_empty_store(fetched):
    doc, decision = select_context(merge(None, fetched), fetched, "homelab-k3s")

    assert doc.current_context == "homelab-k3s"
    assert "default" not in doc.contexts
    assert doc.context_pair("homelab-k3s") == ("default", "default")
    assert doc.validate() == []


def test_select_keeps_unrelated_contexts(existing, fetched):
    doc, _ = select_context(merge(existing, fetched), fetched, "homelab-k3s")

    assert set(doc.contexts) == {"work", "homelab-k3s"}
    assert doc.contexts["work"]["namespace"] == "team-a"


def test_select_keeps_unrelated_default_context(existing, fetched):
    existing.contexts["default"] = {"cluster": "work", "user": "work-admin"}

    doc, decision = select_context(merge(existing, fetched), fetched, "homelab-k3s")

    assert decision.action is ContextAction.RENAME_DEFAULT
    assert doc.contexts["default"] == {"cluster": "work", "user": "work-admin"}
    assert doc.context_pair("homelab-k3s") == ("default", "default")
    assert doc.validate() == []

def test_rerun_collapses_duplicate_alias(fetched):
    first, _ = select_context(merge(None, fetched), fetched, "homelab-k3s")

    second, decision = select_context(merge(first, fetched), fetched, "homelab-k3s")

    assert decision.action is ContextAction.NO_OP_ALREADY_NAMED
    assert second == first


def test_select_conflict_raises(existing, fetched):
    existing.contexts["homelab-k3s"] = {"cluster": "work", "user": "work-admin"}
    merged = merge(existing, fetched)

    with pytest.raises(NameConflict) as excinfo:
        select_context(merged, fetched, "homelab-k3s")

    assert excinfo.value.stage == "activating"
    assert merged.current_context == "work"
    assert merged.contexts["homelab-k3s"] == {"cluster": "work", "user": "work-admin"}


def test_activate_persists_document(tmp_path, fetched):
    store = CredentialStore(str(tmp_path / "config"))
    activator = Activator(store, FakeProber())

    result = activator.activate(merge(None, fetched), fetched, "homelab-k3s")

    assert result.backup is None
    assert store.load() == result.document
    assert store.load().current_context == "homelab-k3s"


def test_activate_conflict_leaves_disk_untouched(tmp_path, existing_yaml, fetched):
    path = tmp_path / "config"
    path.write_text(existing_yaml)
    store = CredentialStore(str(path))
    current = store.load()
    current.contexts["homelab-k3s"] = {"cluster": "work", "user": "work-admin"}
    store.save(current)
    before = path.read_bytes()
    backups_before = store.list_backups()

    with pytest.raises(NameConflict):
        Activator(store, FakeProber()).activate(merge(store.load(), fetched), fetched, "homelab-k3s")

    assert path.read_bytes() == before
    assert store.list_backups() == backups_before
    assert store.load().current_context == "work"


def test_node_info_from_item():
    master = NodeInfo.from_item(NODE_LIST["items"][0])
    worker = NodeInfo.from_item(NODE_LIST["items"][1])

    assert master == NodeInfo("k3s-master", "Ready", ["control-plane", "master"], "v1.30.4+k3s1")
    assert worker.status == "NotReady"
    assert worker.roles == []


def test_prober_command():
    prober = ClusterProber("/home/pi/.kube/config", timeout=9)

    assert prober.build_command("homelab-k3s") == [
        "kubectl", "--kubeconfig", "/home/pi/.kube/config", "--context", "homelab-k3s",
        "--request-timeout=9s", "get", "nodes", "-o", "json",
    ]


def test_probe_success(monkeypatch):
    def fake_run(cmd, capture_output=None, text=None, timeout=None):
        assert timeout == 20
        return subprocess.CompletedProcess(cmd, 0, stdout=json.dumps(NODE_LIST), stderr="")

    monkeypatch.setattr(activator_module.subprocess, "run", fake_run)

    nodes = ClusterProber("/tmp/config", timeout=15).probe("homelab-k3s")

    assert [n.name for n in nodes] == ["k3s-master", "k3s-worker-1"]


@pytest.mark.parametrize("outcome", [
    subprocess.TimeoutExpired(cmd="kubectl", timeout=20),
    FileNotFoundError("kubectl"),
    subprocess.CompletedProcess("kubectl", 1, stdout="", stderr="Unable to connect to the server"),
    subprocess.CompletedProcess("kubectl", 0, stdout=json.dumps({"items": []}), stderr=""),
    subprocess.CompletedProcess("kubectl", 0, stdout="not json", stderr=""),
    subprocess.CompletedProcess("kubectl", 0, stdout="null", stderr=""),
    subprocess.CompletedProcess("kubectl", 0, stdout="[]", stderr=""),
])
def test_probe_failures(monkeypatch, outcome):
    def fake_run(cmd, **kwargs):
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    monkeypatch.setattr(activator_module.subprocess, "run", fake_run)

    with pytest.raises(ConnectivityError):
        ClusterProber("/tmp/config").probe("homelab-k3s")
