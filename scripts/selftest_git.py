from __future__ import annotations
import json
import subprocess
import tempfile
from pathlib import Path

from opsmcp.backends.git import GitRepo
from opsmcp.config.models import ServerConfig
from opsmcp.app_context import AppContext

def main():
    with tempfile.TemporaryDirectory() as td:
        cwd = Path(td)
        subprocess.run(["git", "init", "-q"], cwd=cwd, check=True)
        subprocess.run(["git", "config", "user.name", "selftest"], cwd=cwd, check=True)
        subprocess.run(["git", "config", "user.email", "selftest@example.com"], cwd=cwd, check=True)

        ctx = AppContext.build(ServerConfig(family="git", target=str(cwd)), GitRepo(cwd))
        call = ctx.dispatcher.call_wire

        (cwd / "a.txt").write_text("hello\nworld\n", encoding="utf-8")
        print("STATUS:", json.dumps(call("git_status", {}), indent=2))
        print("ADD:", call("git_add", {"files": "a.txt"}))
        print("COMMIT:", call("git_commit", {"message": "selftest"}))
        print("LOG:", call("git_log", {"maxCount": 1}))

        (cwd / "a.txt").write_text("hello\nWORLD\n", encoding="utf-8")
        print("DIFF:", call("git_diff", {}))

        print("BRANCH create:", call("git_branch", {"action": "create", "branchName": "topic"}))
        print("BRANCH list:", call("git_branch", {"action": "list"}))
        print("BRANCH bad:", call("git_branch", {"action": "delete"}))
        print("PUSH (no remote):", call("git_push", {}))
        ctx.close()

if __name__ == "__main__":
    main()
