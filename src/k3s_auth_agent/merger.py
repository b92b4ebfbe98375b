"""
kubeconfig 병합 모듈
기존 항목을 보존하면서 새로 가져온 클러스터 정보를 합친다 (디스크 I/O 없음)
"""

import copy
from typing import Optional

from .errors import MergeError
from .kubeconfig import CredentialDocument, SECTIONS
from .logger import get_logger

DEFAULT_CONTEXT = "default"


def _pair(body):
    return body.get("cluster"), body.get("user")


def source_context(fetched: CredentialDocument) -> str:
    """가져온 문서에서 이름을 바꿀 대상 컨텍스트"""
    if DEFAULT_CONTEXT in fetched.contexts:
        return DEFAULT_CONTEXT
    if fetched.current_context and fetched.current_context in fetched.contexts:
        return fetched.current_context
    raise MergeError("fetched kubeconfig has neither a 'default' context nor a current-context")


def merge(store: Optional[CredentialDocument], fetched: CredentialDocument) -> CredentialDocument:
    """store와 fetched의 합집합, 이름이 겹치면 fetched가 우선

    단, 같은 이름의 기존 컨텍스트가 다른 클러스터/사용자를 가리키면 그대로 둔다.
    current-context는 store의 값을 유지한다.
    """
    logger = get_logger()

    problems = fetched.validate()
    if not fetched.contexts:
        problems.append("no contexts defined")
    if problems:
        raise MergeError("fetched kubeconfig is structurally invalid: " + "; ".join(problems))
    source_context(fetched)

    if store is None:
        merged = CredentialDocument(extras=copy.deepcopy(fetched.extras))
        logger.info("No existing kubeconfig, creating a new one")
    else:
        merged = store.copy()

    for section, _ in SECTIONS:
        target = getattr(merged, section)
        for name, body in getattr(fetched, section).items():
            existing = target.get(name)
            if section == "contexts" and existing is not None and _pair(existing) != _pair(body):
                # 다른 클러스터/사용자를 가리키는 기존 컨텍스트는 보존, 이름 지정은 Activator가 처리
                logger.info(f"Keeping existing context '{name}', it points at {_pair(existing)}")
                continue
            if existing is None:
                logger.debug(f"Adding {section[:-1]} '{name}'")
            elif existing != body:
                logger.info(f"Replacing {section[:-1]} '{name}' with fetched version")
            target[name] = copy.deepcopy(body)

    merged.current_context = store.current_context if store is not None else None
    return merged
