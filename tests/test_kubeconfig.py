"""
kubeconfig 데이터 모델 테스트
"""

import os
import stat
from datetime import datetime

import pytest
import yaml

from k3s_auth_agent.errors import ParseError, StoreError
from k3s_auth_agent.kubeconfig import CredentialDocument, CredentialStore


def test_parse_k3s_document(k3s_yaml):
    doc = CredentialDocument.from_yaml(k3s_yaml)

    assert list(doc.clusters) == ["default"]
    assert doc.clusters["default"]["server"] == "https://127.0.0.1:6443"
    assert doc.context_pair("default") == ("default", "default")
    assert doc.current_context == "default"
    assert doc.extras["kind"] == "Config"
    assert doc.validate() == []


def test_to_dict_uses_kubectl_layout(k3s_yaml):
    data = CredentialDocument.from_yaml(k3s_yaml).to_dict()

    assert list(data) == ["apiVersion", "kind", "clusters", "contexts",
                          "current-context", "preferences", "users"]
    assert data["clusters"][0]["name"] == "default"
    assert data["users"][0]["user"]["client-key-data"] == "Y2xpZW50LWtleQ=="


def test_yaml_output_reparses_to_same_document(existing_yaml):
    doc = CredentialDocument.from_yaml(existing_yaml)
    assert CredentialDocument.from_yaml(doc.to_yaml()) == doc


def test_empty_document_is_empty():
    doc = CredentialDocument.from_yaml("")
    assert doc.clusters == {}
    assert doc.current_context is None


@pytest.mark.parametrize("text", [
    "just a string",
    "clusters: {default: {}}",
    "clusters:\n- cluster: {server: x}\n",
    "contexts:\n- name: a\n  context: [1, 2]\n",
    "key: [unclosed",
])
def test_malformed_documents_raise_parse_error(text):
    with pytest.raises(ParseError):
        CredentialDocument.from_yaml(text)


def test_validate_reports_dangling_references():
    doc = CredentialDocument(
        clusters={"a": {"server": "https://a:6443"}},
        users={},
        contexts={"ctx": {"cluster": "a", "user": "ghost"}},
        current_context="missing",
    )

    problems = doc.validate()
    assert any("ghost" in p for p in problems)
    assert any("missing" in p for p in problems)


def test_store_load_missing_returns_none(tmp_path):
    store = CredentialStore(str(tmp_path / "config"))
    assert store.load() is None


def test_store_load_malformed_is_merge_stage(tmp_path):
    path = tmp_path / "config"
    path.write_text("clusters: 7\n")

    with pytest.raises(ParseError) as excinfo:
        CredentialStore(str(path)).load()
    assert excinfo.value.stage == "merging"


def test_save_creates_file_with_private_permissions(tmp_path, k3s_yaml):
    path = tmp_path / ".kube" / "config"
    store = CredentialStore(str(path))

    backup = store.save(CredentialDocument.from_yaml(k3s_yaml))

    assert backup is None
    assert path.is_file()
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
    assert yaml.safe_load(path.read_text())["current-context"] == "default"
    assert [p.name for p in path.parent.iterdir()] == ["config"]


def test_save_backs_up_previous_bytes(tmp_path, existing_yaml, k3s_yaml):
    path = tmp_path / "config"
    path.write_text(existing_yaml)
    store = CredentialStore(str(path))

    backup = store.save(CredentialDocument.from_yaml(k3s_yaml), timestamp=datetime(2026, 10, 19, 9, 30, 0))

    assert backup.name == "config.backup.20261019-093000"
    assert backup.read_text() == existing_yaml
    assert store.list_backups() == [backup]


def test_backup_name_collision_gets_counter(tmp_path, existing_yaml):
    path = tmp_path / "config"
    path.write_text(existing_yaml)
    store = CredentialStore(str(path))
    when = datetime(2026, 10, 19, 9, 30, 0)

    first = store.backup(when)
    second = store.backup(when)

    assert first.name == "config.backup.20261019-093000"
    assert second.name == "config.backup.20261019-093000.1"
    assert store.list_backups() == [first, second]


def test_failed_write_leaves_store_untouched(tmp_path, existing_yaml, monkeypatch):
    path = tmp_path / "config"
    path.write_text(existing_yaml)
    store = CredentialStore(str(path))

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("k3s_auth_agent.kubeconfig.os.replace", broken_replace)

    with pytest.raises(StoreError) as excinfo:
        store.save(CredentialDocument())
    assert excinfo.value.stage == "activating"
    assert isinstance(excinfo.value.cause, OSError)

    assert path.read_text() == existing_yaml
    assert not [p for p in tmp_path.iterdir() if p.name.endswith(".tmp")]


def test_store_load_invalid_utf8_is_merge_stage(tmp_path):
    path = tmp_path / "config"
    path.write_bytes(b"apiVersion: v1\n\xff\xfe\n")

    with pytest.raises(ParseError) as excinfo:
        CredentialStore(str(path)).load()
    assert excinfo.value.stage == "merging"
    assert isinstance(excinfo.value.cause, UnicodeDecodeError)


def test_store_load_unreadable_is_store_error(tmp_path, monkeypatch):
    path = tmp_path / "config"
    path.write_text("apiVersion: v1\n")

    def denied(self):
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr("k3s_auth_agent.kubeconfig.Path.read_bytes", denied)

    with pytest.raises(StoreError) as excinfo:
        CredentialStore(str(path)).load()
    assert excinfo.value.stage == "merging"


def test_save_into_unwritable_directory_is_store_error(tmp_path, monkeypatch):
    store = CredentialStore(str(tmp_path / "kube" / "config"))

    def denied(*args, **kwargs):
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr("k3s_auth_agent.kubeconfig.tempfile.mkstemp", denied)

    with pytest.raises(StoreError) as excinfo:
        store.save(CredentialDocument())
    assert excinfo.value.stage == "activating"
    assert not store.exists()
