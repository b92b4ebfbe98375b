"""
ArgoCD CLI 인증 모듈
argocd 네임스페이스 확인 및 argocd login 수행
"""

import subprocess
from typing import Dict, List, Tuple
from rich.console import Console
from .logger import get_logger

console = Console()


class ArgoCDManager:
    """ArgoCD CLI 관리 클래스"""

    def __init__(self, config: Dict, kubeconfig_path: str, context: str, debug: bool = False):
        self.config = config
        self.debug = debug
        self.logger = get_logger()
        self.kubeconfig_path = str(kubeconfig_path)
        self.context = context
        self.namespace = config.get("namespace", "argocd")
        self.insecure = config.get("insecure", True)
        self.grpc_web = config.get("grpc_web", True)

    def is_installed(self) -> bool:
        """argocd CLI 설치 확인"""
        try:
            result = subprocess.run(["which", "argocd"], capture_output=True, text=True)
        except OSError:
            return False
        installed = result.returncode == 0
        self.logger.debug(f"argocd CLI installed: {installed}")
        return installed

    def namespace_exists(self) -> bool:
        """클러스터에 ArgoCD 네임스페이스가 있는지 확인"""
        cmd = [
            "kubectl",
            "--kubeconfig", self.kubeconfig_path,
            "--context", self.context,
            "get", "namespace", self.namespace,
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=30)
        except (OSError, subprocess.TimeoutExpired) as e:
            self.logger.warning(f"Could not check namespace {self.namespace}: {e}")
            return False

        exists = result.returncode == 0
        self.logger.info(f"Namespace {self.namespace} exists: {exists}")
        return exists

    def build_login_command(self, server: str, username: str, password: str) -> List[str]:
        cmd = ["argocd", "login", server, "--username", username, "--password", password]
        if self.insecure:
            cmd.append("--insecure")
        if self.grpc_web:
            cmd.append("--grpc-web")
        return cmd

    def login(self, server: str, username: str, password: str) -> Tuple[bool, str]:
        """argocd login 실행"""
        console.print("\n[cyan]ArgoCD 로그인 중...[/cyan]")
        self.logger.info(f"Logging in to ArgoCD at {server} as {username}")

        if not self.is_installed():
            self.logger.error("argocd CLI not installed")
            return False, "argocd CLI가 설치되지 않았습니다"

        cmd = self.build_login_command(server, username, password)
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=60)
        except subprocess.TimeoutExpired:
            self.logger.error("ArgoCD login timed out")
            return False, "로그인 타임아웃 (60초)"

        if result.returncode == 0:
            console.print("[green]✓ ArgoCD CLI 인증 완료![/green]")
            console.print("[cyan]  테스트: argocd app list[/cyan]")
            self.logger.info("ArgoCD login successful")
            return True, "로그인 완료"

        console.print("[red]✗ ArgoCD 로그인 실패. 인증 정보와 서버 주소를 확인하세요.[/red]")
        self.logger.error(f"ArgoCD login failed: {result.stderr.strip()}")
        return False, result.stderr.strip() or "로그인 실패"

    def show_install_hint(self):
        console.print(f"[yellow]⚠ 클러스터에 {self.namespace} 네임스페이스가 없습니다[/yellow]")
        console.print("  ArgoCD 설치:")
        console.print(f"  [cyan]kubectl create namespace {self.namespace}[/cyan]")
        console.print(
            f"  [cyan]kubectl apply -n {self.namespace} -f "
            "https://raw.githubusercontent.com/argoproj/argo-cd/stable/manifests/install.yaml[/cyan]"
        )
