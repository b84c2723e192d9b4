import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import winrm
from requests.exceptions import RequestException
from winrm.exceptions import WinRMOperationTimeoutError, WinRMTransportError

from .errors import categorize_error

logger = logging.getLogger("hostfacts.winrm")

_UNREACHABLE_TOKENS = (
    "connect",
    "connection",
    "timed out",
    "timeout",
    "refused",
    "unreachable",
    "no route",
    "failed to establish",
    "name or service not known",
    "temporary failure in name resolution",
)


@dataclass
class WinRMResult:
    host: str
    exit_code: int
    stdout: str
    stderr: str
    error: Optional[str] = None
    unreachable: bool = False


def is_unreachable_exception(exc: Exception) -> bool:
    if isinstance(exc, (RequestException, WinRMTransportError, WinRMOperationTimeoutError, TimeoutError)):
        msg = str(exc).lower()
        return any(token in msg for token in _UNREACHABLE_TOKENS)
    return False


class WinRMClient:
    def __init__(self, host: str, config):
        self.host = host
        self.config = config

    @property
    def endpoint(self) -> str:
        return f"{self.config.winrm_scheme}://{self.host}:{self.config.winrm_port}/wsman"

    def _get_session(self, operation_timeout=None, read_timeout=None):
        op_timeout = max(5, int(operation_timeout or self.config.read_timeout))
        # HTTP read timeout must outlast the WSMan operation timeout
        rd_timeout = read_timeout or (op_timeout + 30)

        return winrm.Session(
            target=self.endpoint,
            auth=(self.config.username, self.config.password),
            transport=self.config.winrm_transport,
            server_cert_validation='validate' if self.config.verify_ssl else 'ignore',
            operation_timeout_sec=op_timeout,
            read_timeout_sec=rd_timeout
        )

    def run_command(self, command: str) -> WinRMResult:
        """Run a PowerShell command."""
        session = self._get_session()
        try:
            r = session.run_ps(command)
            return WinRMResult(
                host=self.host,
                exit_code=r.status_code,
                stdout=self._decode(r.std_out),
                stderr=self._decode(r.std_err)
            )
        except Exception as e:
            logger.debug(f"[{self.host}] run_ps failed: {e}")
            return WinRMResult(self.host, -1, "", "", str(e), unreachable=is_unreachable_exception(e))

    def check(self) -> Dict[str, Any]:
        """Fast connectivity check."""
        start = time.time()
        result = self.run_command("hostname")
        duration = time.time() - start

        status = "OK"
        error_info = {}
        if result.error:
            status = "ERROR"
            error_info = categorize_error(result.error)
        elif result.exit_code != 0:
            status = "EXEC_FAIL"
            error_info = {"error_category": "NON_ZERO_EXIT", "error_detail": result.stderr[:200]}

        return {
            "host": self.host,
            "status": status,
            "latency_ms": round(duration * 1000, 2),
            "endpoint": f"{self.endpoint} ({self.config.winrm_transport})",
            "hostname": result.stdout.strip(),
            **error_info
        }

    def _decode(self, b: bytes) -> str:
        if not b:
            return ""
        try:
            return b.decode("utf-8")
        except UnicodeDecodeError:
            return b.decode("utf-16-le", errors="ignore")
