"""
K3s Auth Agent
원격 K3s 마스터의 kubeconfig를 가져와 로컬 kubeconfig에 병합하는 에이전트

Features:
- SSH 기반 kubeconfig 수집
- API 서버 주소 재작성
- 기존 kubeconfig 보존 병합 및 타임스탬프 백업
- 컨텍스트 이름 지정 및 연결 확인
- ArgoCD CLI 인증 (선택사항)
"""

__version__ = "1.0.0"
__author__ = "DevOps Team"
