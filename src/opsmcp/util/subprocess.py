from __future__ import annotations
import subprocess
from dataclasses import dataclass
from typing import Sequence, Optional

@dataclass
class CmdResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def error_text(self) -> str:
        # git reports some failures (e.g. "nothing to commit") on stdout
        return (self.stderr or self.stdout).strip() or f"exit code {self.returncode}"

def run_cmd(cmd: Sequence[str], cwd: str, timeout: Optional[int]=120) -> CmdResult:
    p = subprocess.run(
        list(cmd),
        cwd=cwd,
        text=True,
        capture_output=True,
        timeout=timeout,
        shell=False,
        stdin=subprocess.DEVNULL,
    )
    return CmdResult(p.returncode, p.stdout, p.stderr)
