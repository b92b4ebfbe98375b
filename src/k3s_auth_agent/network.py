"""
네트워크 연결성 체크 모듈
연결 확인 실패 시 API 서버 포트 및 HTTPS 응답 진단
"""

import socket
import requests
from typing import Tuple, Dict
from rich.console import Console
from .logger import get_logger

console = Console()


class NetworkChecker:
    """API 서버 도달 가능성 확인 클래스"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.logger = get_logger()

    def check_port(self, host: str, port: int, timeout: int = 5) -> Tuple[bool, str]:
        """포트 연결 테스트"""
        try:
            self.logger.debug(f"Checking port {host}:{port}...")
            with socket.create_connection((host, port), timeout=timeout):
                pass
            self.logger.debug(f"✓ {host}:{port} is open")
            return True, f"✓ {host}:{port} 연결 성공"

        except socket.gaierror:
            self.logger.error(f"✗ Cannot resolve {host}")
            return False, f"✗ {host} 호스트를 찾을 수 없습니다"
        except socket.timeout:
            self.logger.warning(f"✗ {host}:{port} timed out")
            return False, f"✗ {host}:{port} 타임아웃"
        except (OSError, OverflowError) as e:
            self.logger.warning(f"✗ {host}:{port} is closed: {e}")
            return False, f"✗ {host}:{port} 연결 실패"

    def check_api(self, host: str, port: int, timeout: int = 5) -> Tuple[bool, str]:
        """API 서버 HTTPS 응답 확인

        인증 없이 호출하므로 401/403도 서버가 응답한 것으로 본다.
        """
        url = f"https://{host}:{port}/version"
        try:
            self.logger.debug(f"Checking HTTPS endpoint {url}...")
            response = requests.get(url, timeout=timeout, verify=False)
            self.logger.debug(f"✓ API server answered (status: {response.status_code})")
            return True, f"✓ API 서버 응답 ({response.status_code})"
        except requests.exceptions.SSLError:
            self.logger.error("✗ SSL handshake failed")
            return False, "✗ SSL 핸드셰이크 실패"
        except requests.exceptions.Timeout:
            self.logger.error("✗ API request timed out")
            return False, "✗ 타임아웃"
        except requests.exceptions.ConnectionError:
            self.logger.error("✗ API connection failed")
            return False, "✗ 연결 실패"
        except requests.exceptions.RequestException as e:
            self.logger.error(f"API check error: {e}")
            return False, f"✗ API 테스트 오류: {e}"

    def diagnose(self, host: str, port: int) -> Dict:
        """API 서버 연결 진단"""
        console.print("\n[bold cyan]API 서버 연결 진단...[/bold cyan]\n")
        self.logger.info(f"Diagnosing {host}:{port}...")

        results = {}

        success, msg = self.check_port(host, port)
        results["port"] = {"success": success, "message": msg}
        console.print(f"  {msg}")

        if success:
            success, msg = self.check_api(host, port)
            results["api"] = {"success": success, "message": msg}
            console.print(f"  {msg}")
        else:
            results["api"] = {"success": False, "message": "건너뜀"}

        results["overall"] = results["port"]["success"] and results["api"]["success"]

        console.print()
        if not results["port"]["success"]:
            console.print(f"[yellow]이 머신에서 {host}:{port} 포트에 접근할 수 있는지 확인하세요 (방화벽).[/yellow]")
        elif not results["api"]["success"]:
            console.print("[yellow]포트는 열려 있지만 API 서버가 응답하지 않습니다. K3s 서비스 상태를 확인하세요.[/yellow]")
        else:
            console.print("[yellow]API 서버는 응답합니다. 인증서 또는 사용자 인증 정보를 확인하세요.[/yellow]")

        self.logger.info(f"Diagnosis: {results}")
        return results
