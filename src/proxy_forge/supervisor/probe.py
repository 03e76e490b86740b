"""Upstream probe - can nginx reach the backend?

Runs curl on the host itself, so the result reflects what nginx sees.
A refused connection is the usual cause of a 502.
"""

import shlex

from proxy_forge.connector.base import BaseConnector
from proxy_forge.model.state import ProbeOutcome, ProbeResult

# curl exit codes
CURL_COULDNT_CONNECT = 7
CURL_TIMEOUT = 28


class UpstreamProbe:
    def __init__(self, connector: BaseConnector, timeout: int = 5) -> None:
        self.connector = connector
        self.timeout = timeout

    def check(self, upstream: str, path: str = "/") -> ProbeResult:
        url = f"http://{upstream}{path}"
        command = (
            f"curl -s -o /dev/null -w '%{{http_code}}' --max-time {self.timeout} {shlex.quote(url)}"
        )
        result = self.connector.run(command, use_sudo=False, timeout=self.timeout + 5)

        if result.exit_code == CURL_COULDNT_CONNECT:
            return ProbeResult(upstream, ProbeOutcome.REFUSED, detail="connection refused: nothing listening")
        if result.exit_code == CURL_TIMEOUT:
            return ProbeResult(upstream, ProbeOutcome.TIMEOUT, detail=f"no response within {self.timeout}s")
        if not result.success:
            return ProbeResult(upstream, ProbeOutcome.UNKNOWN, detail=result.output or f"curl exit {result.exit_code}")

        code_text = result.stdout.strip()[-3:]
        code = int(code_text) if code_text.isdigit() else None
        if code is None or code == 0:
            return ProbeResult(upstream, ProbeOutcome.UNKNOWN, detail=f"unexpected curl output {result.stdout!r}")
        if code >= 500:
            return ProbeResult(upstream, ProbeOutcome.HTTP_ERROR, status_code=code, detail=f"upstream answered {code}")
        return ProbeResult(upstream, ProbeOutcome.OK, status_code=code)
