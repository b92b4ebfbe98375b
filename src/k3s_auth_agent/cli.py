"""
CLI 메인 인터페이스
Click 및 Rich 기반 사용자 친화적 CLI
"""

import getpass
import sys
import click
from enum import Enum
from typing import List, Optional, Tuple
from urllib.parse import urlsplit
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.markup import escape
from rich.prompt import Confirm, IntPrompt, Prompt
from . import __version__
from .activator import Activator, ClusterProber, ContextAction, NodeInfo
from .argocd import ArgoCDManager
from .config import Config
from .errors import AgentError, ConnectivityError
from .fetcher import KubeconfigFetcher
from .kubeconfig import CredentialStore
from .logger import init_logger, get_logger
from .merger import merge
from .network import NetworkChecker
from .rewriter import rewrite_server

console = Console()


class Stage(Enum):
    """파이프라인 상태"""
    FETCHING = "fetching"
    REWRITING = "rewriting"
    MERGING = "merging"
    ACTIVATING = "activating"
    CONNECTED = "connected"
    UNREACHABLE = "unreachable"


STAGE_LABELS = {
    Stage.FETCHING: "kubeconfig 수집",
    Stage.REWRITING: "서버 주소 변경",
    Stage.MERGING: "kubeconfig 병합",
    Stage.ACTIVATING: "컨텍스트 활성화",
}


def endpoint_for_context(store: CredentialStore, context: str) -> Optional[Tuple[str, int]]:
    """컨텍스트가 가리키는 API 서버 (host, port)"""
    doc = store.load()
    if doc is None:
        return None
    pair = doc.context_pair(context)
    if pair is None:
        return None
    server = doc.clusters.get(pair[0], {}).get("server")
    if not server:
        return None
    try:
        parts = urlsplit(server)
        return parts.hostname, parts.port or 443
    except ValueError:
        return None


def show_nodes(nodes: List[NodeInfo]):
    """노드 목록 테이블 출력"""
    table = Table(title="클러스터 노드", show_header=True, header_style="bold magenta")
    table.add_column("NAME", style="cyan")
    table.add_column("STATUS")
    table.add_column("ROLES")
    table.add_column("VERSION")

    for node in nodes:
        color = "green" if node.status == "Ready" else "red"
        table.add_row(
            node.name,
            f"[{color}]{node.status}[/{color}]",
            ",".join(node.roles) or "<none>",
            node.version
        )

    console.print(table)


class AuthOrchestrator:
    """kubeconfig 수집 -> 주소 변경 -> 병합 -> 활성화 파이프라인"""

    def __init__(self, config: Config, debug: bool = False,
                 fetcher: Optional[KubeconfigFetcher] = None,
                 prober: Optional[ClusterProber] = None):
        self.config = config
        self.debug = debug
        self.logger = get_logger()
        self.store = CredentialStore(config.kubeconfig.path)
        self.fetcher = fetcher or KubeconfigFetcher(
            host=config.master.ip,
            user=config.master.ssh_user or getpass.getuser(),
            port=config.master.ssh_port,
            remote_path=config.master.remote_path,
            connect_timeout=config.master.ssh_timeout,
        )
        self.prober = prober or ClusterProber(str(self.store.path), timeout=config.agent.probe_timeout)
        self.activator = Activator(self.store, self.prober)
        self.network_checker = NetworkChecker(debug)
        self.stage: Optional[Stage] = None
        self.nodes: List[NodeInfo] = []
        self.execution_log = []

    def log_step(self, step: str, status: str, message: str = ""):
        """실행 단계 로깅"""
        self.execution_log.append({
            "step": step,
            "status": status,
            "message": message
        })

    def show_summary(self):
        """실행 결과 요약 표시"""
        console.print("\n" + "="*60)
        console.print("[bold]실행 결과 요약[/bold]")
        console.print("="*60 + "\n")

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("단계", style="cyan", width=20)
        table.add_column("상태", width=6)
        table.add_column("메시지", width=40)

        for log in self.execution_log:
            status_icon = "✓" if log["status"] == "success" else "✗"
            status_color = "green" if log["status"] == "success" else "red"
            table.add_row(
                log["step"],
                f"[{status_color}]{status_icon}[/{status_color}]",
                log["message"][:40] if log["message"] else ""
            )

        console.print(table)

        log_files = self.logger.get_log_files()
        console.print(f"\n[bold]로그 파일:[/bold]")
        console.print(f"  Main: {log_files['main_log']}")
        console.print(f"  Error: {log_files['error_log']}")

    def report_failure(self, error: AgentError):
        """실패 단계와 원인 표시"""
        stage = self.stage.value if self.stage else error.stage
        label = STAGE_LABELS.get(self.stage, stage)
        self.log_step(label, "failed", error.message)
        self.logger.error(f"Stage '{stage}' failed: {error}")
        console.print(f"\n[bold red]✗ {label} 단계 실패 ({stage})[/bold red]")
        console.print(f"[red]  {escape(str(error))}[/red]")

    def run(self) -> bool:
        """메인 실행 로직"""
        host = self.config.master.ip
        api_port = self.config.master.api_port
        name = self.config.context.name

        try:
            console.print(Panel.fit(
                "[bold cyan]K3s Cluster Authentication[/bold cyan]\n"
                "K3s 마스터의 kubeconfig를 가져와 로컬 kubeconfig에 병합합니다.",
                border_style="cyan"
            ))
            self.logger.info("=== Agent execution started ===")

            # 1. kubeconfig 수집
            self.stage = Stage.FETCHING
            console.print(f"\n[cyan]>>> {self.fetcher.target}에서 kubeconfig를 가져오는 중...[/cyan]")
            with self.fetcher.fetch() as path:
                raw = path.read_bytes()
            self.log_step(STAGE_LABELS[Stage.FETCHING], "success", self.fetcher.remote_path)

            # 2. 서버 주소 변경
            self.stage = Stage.REWRITING
            console.print(f"[cyan]>>> 서버 주소를 https://{host}:{api_port}로 변경 중...[/cyan]")
            fetched = rewrite_server(raw, host, api_port)
            self.log_step(STAGE_LABELS[Stage.REWRITING], "success", f"https://{host}:{api_port}")

            # 3. 병합
            self.stage = Stage.MERGING
            existing = self.store.load()
            if existing is None:
                console.print("[cyan]>>> 새 kubeconfig를 생성합니다...[/cyan]")
            else:
                console.print("[cyan]>>> 기존 kubeconfig와 병합 중...[/cyan]")
            merged = merge(existing, fetched)
            self.log_step(STAGE_LABELS[Stage.MERGING], "success", f"{len(merged.contexts)} contexts")

            # 4. 컨텍스트 활성화 및 저장
            self.stage = Stage.ACTIVATING
            console.print(f"[cyan]>>> 컨텍스트 이름을 '{name}'(으)로 설정 중...[/cyan]")
            result = self.activator.activate(merged, fetched, name)
            if result.decision.action is ContextAction.NO_OP_ALREADY_NAMED:
                console.print(f"[green]✓ 컨텍스트 '{name}'이(가) 이미 존재합니다[/green]")
            if result.backup:
                console.print(f"[green]✓ 기존 kubeconfig 백업: {result.backup}[/green]")
            self.log_step(STAGE_LABELS[Stage.ACTIVATING], "success", name)

            # 5. 연결 확인
            console.print("\n[cyan]연결 테스트 중...[/cyan]")
            self.nodes = self.activator.probe(name)
            self.stage = Stage.CONNECTED
            self.log_step("연결 확인", "success", f"{len(self.nodes)} nodes")

            console.print("[bold green]✓ K3s 클러스터 연결 성공![/bold green]\n")
            show_nodes(self.nodes)
            self.logger.info("=== Agent execution completed successfully ===")
            self.show_summary()
            return True

        except ConnectivityError as e:
            self.stage = Stage.UNREACHABLE
            self.log_step("연결 확인", "failed", e.message)
            self.logger.error(f"Connectivity check failed: {e}")
            console.print("[bold red]✗ 연결 실패. K3s 마스터 IP와 방화벽 설정을 확인하세요.[/bold red]")
            console.print(f"[yellow]  이 머신에서 {api_port} 포트에 접근 가능한지 확인하세요.[/yellow]")
            console.print(f"[yellow]  kubeconfig는 저장되었습니다. 'k3s-auth-agent probe'로 다시 확인할 수 있습니다.[/yellow]")
            if self.config.agent.diagnose_on_failure:
                self.network_checker.diagnose(host, api_port)
            self.show_summary()
            return False

        except AgentError as e:
            self.report_failure(e)
            console.print("[yellow]로컬 kubeconfig는 변경되지 않았습니다.[/yellow]")
            self.show_summary()
            return False

        except KeyboardInterrupt:
            console.print("\n[yellow]사용자에 의해 중단되었습니다.[/yellow]")
            self.logger.warning("Execution interrupted by user")
            return False

        except Exception as e:
            stage = self.stage.value if self.stage else "unknown"
            self.log_step(STAGE_LABELS.get(self.stage, stage), "failed", str(e))
            console.print(f"\n[red]예상치 못한 오류 발생 ({stage}): {escape(str(e))}[/red]")
            self.logger.exception(f"Unexpected error in stage '{stage}'")
            self.show_summary()
            return False

    def configure_argocd(self, server: Optional[str] = None, username: Optional[str] = None,
                         password: Optional[str] = None, confirm: bool = True,
                         interactive: bool = True) -> Optional[bool]:
        """ArgoCD CLI 인증 (네임스페이스가 있을 때만)

        로그인하지 않았으면 None, 시도했으면 성공 여부를 반환한다.
        interactive가 False이면 묻지 않고, 서버나 비밀번호가 없으면 건너뛴다.
        """
        try:
            return self._configure_argocd(server, username, password, confirm, interactive)
        except (EOFError, KeyboardInterrupt):
            console.print("\n[yellow]ArgoCD 설정을 건너뜁니다.[/yellow]")
            self.logger.warning("ArgoCD setup aborted at prompt")
            return None

    def _configure_argocd(self, server, username, password, confirm, interactive) -> Optional[bool]:
        console.print("\n[cyan]>>> ArgoCD 설치 확인 중...[/cyan]")
        manager = ArgoCDManager(
            self.config.to_dict()["argocd"],
            str(self.store.path),
            self.config.context.name,
            self.debug
        )

        if not manager.namespace_exists():
            manager.show_install_hint()
            return None

        console.print(f"[green]✓ {manager.namespace} 네임스페이스 발견[/green]")

        server = server or self.config.argocd.server
        username = username or self.config.argocd.username

        if not interactive:
            if not server or password is None:
                console.print("[yellow]ArgoCD 서버 주소 또는 비밀번호가 없어 로그인을 건너뜁니다.[/yellow]")
                self.logger.info("Skipping ArgoCD login: server or password not provided")
                return None
        else:
            if confirm and not Confirm.ask("ArgoCD CLI 인증을 설정하시겠습니까?", default=False):
                return None
            server = server or Prompt.ask(
                "ArgoCD 서버 주소 (예: argocd.example.com 또는 localhost:8080)"
            )
            username = Prompt.ask("ArgoCD 사용자", default=username)
            if password is None:
                password = Prompt.ask("ArgoCD 비밀번호", password=True)

        success, msg = manager.login(server, username, password)
        self.log_step("ArgoCD 로그인", "success" if success else "failed", msg)
        return success

    def show_final(self):
        """최종 안내"""
        console.print("\n[bold green]=== 설정 완료 ===[/bold green]\n")
        console.print(f"kubeconfig: {self.store.path}")
        console.print(f"현재 컨텍스트: {self.config.context.name}")
        backups = self.store.list_backups()
        if backups:
            console.print(f"이전 설정 백업: {backups[-1]}")
        console.print("\n[bold]유용한 명령어:[/bold]")
        console.print("  kubectl get nodes")
        console.print("  kubectl get pods -A")
        console.print("  kubectl config get-contexts")
        console.print("  argocd app list")


def apply_overrides(cfg: Config, host=None, user=None, ssh_port=None, api_port=None,
                    context=None, kubeconfig=None):
    """명령행 옵션으로 설정 덮어쓰기"""
    if host:
        cfg.master.ip = host
    if user:
        cfg.master.ssh_user = user
    if ssh_port:
        cfg.master.ssh_port = ssh_port
    if api_port:
        cfg.master.api_port = api_port
    if context:
        cfg.context.name = context
    if kubeconfig:
        cfg.kubeconfig.path = kubeconfig
    if not cfg.master.ssh_user:
        cfg.master.ssh_user = getpass.getuser()


@click.group()
@click.version_option(version=__version__)
def cli():
    """K3s Auth Agent

    K3s 마스터의 kubeconfig를 가져와 로컬 kubeconfig에 안전하게 병합합니다.
    """
    pass


@cli.command()
@click.option('--config', '-c', type=click.Path(exists=True), help='설정 파일 경로')
@click.option('--host', '-H', help='K3s 마스터 노드 IP')
@click.option('--user', '-u', help='SSH 사용자')
@click.option('--ssh-port', type=int, help='SSH 포트')
@click.option('--api-port', type=int, help='K3s API 포트')
@click.option('--context', '-n', 'context', help='컨텍스트 이름')
@click.option('--kubeconfig', type=click.Path(), help='로컬 kubeconfig 경로')
@click.option('--yes', '-y', is_flag=True, help='질문 없이 기본값 사용')
@click.option('--skip-argocd', is_flag=True, help='ArgoCD 설정 건너뛰기')
@click.option('--argocd-password', envvar='ARGOCD_PASSWORD', help='ArgoCD 비밀번호 (ARGOCD_PASSWORD)')
@click.option('--debug', is_flag=True, help='디버그 모드')
def setup(config, host, user, ssh_port, api_port, context, kubeconfig, yes, skip_argocd,
          argocd_password, debug):
    """kubeconfig를 가져와 병합하고 컨텍스트를 활성화"""
    cfg = Config(config)
    apply_overrides(cfg, host, user, ssh_port, api_port, context, kubeconfig)

    init_logger(cfg.agent.log_dir, cfg.agent.log_level, debug)
    logger = get_logger()
    logger.info(f"Starting setup command (debug={debug}, yes={yes})")

    if not yes:
        console.print("\n[bold cyan]=== K3s 클러스터 인증 설정 ===[/bold cyan]\n")
        if not host:
            cfg.master.ip = Prompt.ask("K3s 마스터 노드 IP", default=cfg.master.ip or None)
        if not user:
            cfg.master.ssh_user = Prompt.ask("SSH 사용자", default=cfg.master.ssh_user)
        if not api_port:
            cfg.master.api_port = IntPrompt.ask("K3s API 포트", default=cfg.master.api_port)
        if not context:
            cfg.context.name = Prompt.ask("컨텍스트 이름", default=cfg.context.name)

    if not cfg.master.ip:
        console.print("[red]오류: K3s 마스터 노드 IP가 필요합니다.[/red]")
        console.print("[yellow]--host 옵션을 사용하거나 설정 파일을 제공하세요.[/yellow]")
        sys.exit(1)

    orchestrator = AuthOrchestrator(cfg, debug)
    success = orchestrator.run()
    if not success:
        sys.exit(1)

    if cfg.argocd.enabled and not skip_argocd:
        try:
            orchestrator.configure_argocd(password=argocd_password, confirm=not yes, interactive=not yes)
        except Exception as e:
            logger.exception(f"ArgoCD setup failed: {e}")
            console.print(f"[yellow]ArgoCD 설정 중 오류가 발생했습니다: {escape(str(e))}[/yellow]")

    orchestrator.show_final()
    sys.exit(0)


@cli.command()
@click.option('--config', '-c', type=click.Path(exists=True), help='설정 파일 경로')
@click.option('--context', '-n', 'context', help='확인할 컨텍스트 (기본값: current-context)')
@click.option('--kubeconfig', type=click.Path(), help='로컬 kubeconfig 경로')
@click.option('--timeout', type=int, help='타임아웃 (초)')
@click.option('--debug', is_flag=True, help='디버그 모드')
def probe(config, context, kubeconfig, timeout, debug):
    """저장된 kubeconfig로 연결만 다시 확인"""
    cfg = Config(config)
    apply_overrides(cfg, kubeconfig=kubeconfig)
    init_logger(cfg.agent.log_dir, cfg.agent.log_level, debug)
    logger = get_logger()

    store = CredentialStore(cfg.kubeconfig.path)
    try:
        doc = store.load()
    except AgentError as e:
        console.print(f"[red]✗ kubeconfig 오류: {escape(str(e))}[/red]")
        sys.exit(1)

    if doc is None:
        console.print(f"[red]✗ kubeconfig가 없습니다: {store.path}[/red]")
        sys.exit(1)

    name = context or doc.current_context
    if not name:
        console.print("[red]✗ current-context가 설정되어 있지 않습니다. --context를 지정하세요.[/red]")
        sys.exit(1)

    prober = ClusterProber(str(store.path), timeout=timeout or cfg.agent.probe_timeout)
    try:
        nodes = prober.probe(name)
    except ConnectivityError as e:
        logger.error(f"Probe failed: {e}")
        console.print(f"[bold red]✗ '{name}' 연결 실패: {escape(e.message)}[/bold red]")
        endpoint = endpoint_for_context(store, name)
        if endpoint and cfg.agent.diagnose_on_failure:
            NetworkChecker(debug).diagnose(*endpoint)
        sys.exit(1)

    console.print(f"[bold green]✓ '{name}' 연결 성공![/bold green]\n")
    show_nodes(nodes)
    sys.exit(0)


@cli.command()
@click.option('--config', '-c', type=click.Path(exists=True), help='설정 파일 경로')
@click.option('--context', '-n', 'context', help='컨텍스트 이름')
@click.option('--kubeconfig', type=click.Path(), help='로컬 kubeconfig 경로')
@click.option('--server', help='ArgoCD 서버 주소')
@click.option('--username', help='ArgoCD 사용자')
@click.option('--password', envvar='ARGOCD_PASSWORD', help='ArgoCD 비밀번호 (ARGOCD_PASSWORD)')
@click.option('--debug', is_flag=True, help='디버그 모드')
def argocd(config, context, kubeconfig, server, username, password, debug):
    """ArgoCD CLI 인증만 수행"""
    cfg = Config(config)
    apply_overrides(cfg, context=context, kubeconfig=kubeconfig)
    init_logger(cfg.agent.log_dir, cfg.agent.log_level, debug)

    orchestrator = AuthOrchestrator(cfg, debug)
    result = orchestrator.configure_argocd(server, username, password, confirm=False)
    sys.exit(0 if result else 1)


@cli.command()
@click.argument('output', type=click.Path(), default='./config.yaml')
def init(output):
    """샘플 설정 파일 생성"""
    cfg = Config()
    cfg.create_sample(output)
    console.print(f"[green]✓ 샘플 설정 파일 생성: {output}[/green]")
    console.print(f"[cyan]설정 파일을 편집한 후 다음 명령어로 실행하세요:[/cyan]")
    console.print(f"[cyan]  k3s-auth-agent setup --config {output}[/cyan]")


@cli.command()
@click.option('--config', '-c', type=click.Path(exists=True), help='설정 파일 경로')
def validate(config):
    """설정 파일 유효성 검사"""
    try:
        cfg = Config(config)
    except Exception as e:
        console.print(f"[red]✗ 설정 파일 오류: {str(e)}[/red]")
        sys.exit(1)

    console.print("[green]✓ 설정 파일이 유효합니다.[/green]")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("항목", style="cyan")
    table.add_column("값")

    table.add_row("마스터 IP", cfg.master.ip or "[red]미설정[/red]")
    table.add_row("SSH", f"{cfg.master.ssh_user or getpass.getuser()}@{cfg.master.ip or '?'}:{cfg.master.ssh_port}")
    table.add_row("API 포트", str(cfg.master.api_port))
    table.add_row("컨텍스트", cfg.context.name)
    table.add_row("kubeconfig", cfg.kubeconfig.path)
    table.add_row("ArgoCD 설정", "예" if cfg.argocd.enabled else "아니오")

    console.print(table)


def main():
    """메인 엔트리 포인트"""
    cli()


if __name__ == '__main__':
    main()
