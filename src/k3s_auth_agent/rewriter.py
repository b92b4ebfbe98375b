"""
API 서버 주소 재작성 모듈
k3s.yaml의 루프백 기본 주소를 외부에서 접근 가능한 주소로 변경
"""

from typing import Union
from urllib.parse import urlsplit

from .errors import ParseError
from .kubeconfig import CredentialDocument, decode_document
from .logger import get_logger

LOOPBACK_HOSTS = {"127.0.0.1", "localhost", "::1"}
K3S_DEFAULT_API_PORT = 6443


def is_loopback_default(server: str) -> bool:
    """k3s가 기록하는 기본 주소(https://127.0.0.1:6443 등)인지 확인"""
    try:
        parts = urlsplit(server)
        port = parts.port
    except ValueError:
        return False
    return (
        parts.scheme == "https"
        and parts.hostname in LOOPBACK_HOSTS
        and port == K3S_DEFAULT_API_PORT
    )


def format_endpoint(host: str, port: int) -> str:
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return f"https://{host}:{port}"


def rewrite_server(raw: Union[str, bytes], host: str, port: int) -> CredentialDocument:
    """원격 문서를 파싱하고 루프백 주소를 https://{host}:{port}로 교체

    이미 다른 주소가 기록된 클러스터는 건드리지 않는다.
    """
    if isinstance(raw, bytes):
        raw = decode_document(raw, "fetched kubeconfig")

    if not raw or not raw.strip():
        raise ParseError("fetched kubeconfig is empty")

    doc = CredentialDocument.from_yaml(raw, source="fetched kubeconfig")
    if not doc.clusters:
        raise ParseError("fetched kubeconfig has no clusters")

    return rewrite_document(doc, host, port)


def rewrite_document(doc: CredentialDocument, host: str, port: int) -> CredentialDocument:
    logger = get_logger()
    endpoint = format_endpoint(host, port)
    rewritten = doc.copy()

    for name, body in rewritten.clusters.items():
        server = body.get("server")
        if isinstance(server, str) and is_loopback_default(server):
            body["server"] = endpoint
            logger.info(f"Cluster '{name}': server {server} -> {endpoint}")
        else:
            logger.debug(f"Cluster '{name}': keeping server {server}")

    return rewritten
