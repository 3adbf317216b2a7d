"""Version-control tools driving the git CLI in one working tree."""

from __future__ import annotations

import json
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..errors import BackendUnavailable, ValidationFailure
from ..tools.base import FieldSpec, ToolSpec, ValidatedArgs
from ..tools.registry import ToolRegistry
from ..util.subprocess import run_cmd

SERVER_NAME = "git-manager-mcp"

_BRANCH_HEADER = re.compile(
    r"^(?P<current>.+?)(?:\.\.\.(?P<tracking>\S+))?(?: \[(?P<ab>[^\]]+)\])?$"
)
_COMMIT_HEAD = re.compile(r"^\[[^\]]*?\b(?P<hash>[0-9a-f]{7,40})\]", re.M)
_FILES_CHANGED = re.compile(r"(\d+) files? changed")
_INSERTIONS = re.compile(r"(\d+) insertions?\(\+\)")
_DELETIONS = re.compile(r"(\d+) deletions?\(-\)")
_CONFLICT_CODES = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"


class GitCommandError(RuntimeError):
    pass


def _count(pattern: re.Pattern, text: str) -> int:
    m = pattern.search(text)
    return int(m.group(1)) if m else 0


def _operand(field_name: str, value: str) -> str:
    """Refuse values git would parse as an option (e.g. --upload-pack=...)."""
    if value.startswith("-"):
        raise ValidationFailure(field_name, f"{field_name} must not start with \"-\"")
    return value


@dataclass
class GitStatus:
    current: str | None = None
    tracking: str | None = None
    ahead: int = 0
    behind: int = 0
    modified: list[str] = field(default_factory=list)
    created: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    renamed: list[dict[str, str]] = field(default_factory=list)
    staged: list[str] = field(default_factory=list)
    conflicted: list[str] = field(default_factory=list)
    not_added: list[str] = field(default_factory=list)

    def is_clean(self) -> bool:
        return not (self.modified or self.created or self.deleted or self.renamed
                    or self.staged or self.conflicted or self.not_added)

    def summary(self) -> dict[str, Any]:
        return {
            "current": self.current,
            "tracking": self.tracking,
            "ahead": self.ahead,
            "behind": self.behind,
            "modified": self.modified,
            "created": self.created,
            "deleted": self.deleted,
            "renamed": self.renamed,
            "staged": self.staged,
            "conflicted": self.conflicted,
            "isClean": self.is_clean(),
        }


def parse_status(out: str) -> GitStatus:
    """Parse `git status --porcelain=v1 --branch -z` output."""
    st = GitStatus()
    tokens = out.split("\0")
    i = 0
    while i < len(tokens):
        entry = tokens[i]
        i += 1
        if not entry:
            continue
        if entry.startswith("## "):
            _parse_branch_header(st, entry[3:])
            continue
        xy, path = entry[:2], entry[3:]
        x, y = xy[0], xy[1]
        if xy == "??":
            st.not_added.append(path)
            continue
        if xy in _CONFLICT_CODES:
            st.conflicted.append(path)
            continue
        if x in "RC":
            # -z puts the rename source in the next token
            orig = tokens[i] if i < len(tokens) else ""
            i += 1
            if x == "R":
                st.renamed.append({"from": orig, "to": path})
        if x == "A":
            st.created.append(path)
        if x == "M" or y == "M":
            st.modified.append(path)
        if x == "D" or y == "D":
            st.deleted.append(path)
        if x not in " ?":
            st.staged.append(path)
    return st


def _parse_branch_header(st: GitStatus, header: str) -> None:
    for prefix in ("No commits yet on ", "Initial commit on "):
        if header.startswith(prefix):
            st.current = header[len(prefix):]
            return
    if header.startswith("HEAD (no branch)"):
        st.current = "HEAD"
        return
    m = _BRANCH_HEADER.match(header)
    if not m:
        st.current = header
        return
    st.current = m.group("current")
    st.tracking = m.group("tracking")
    for part in (m.group("ab") or "").split(","):
        word, _, num = part.strip().partition(" ")
        if word == "ahead" and num.isdigit():
            st.ahead = int(num)
        elif word == "behind" and num.isdigit():
            st.behind = int(num)


class GitRepo:
    """Long-lived handle on a working tree; each method is one git invocation."""

    def __init__(self, path: str | Path, timeout: int | None = 120):
        self.path = str(Path(path).expanduser().resolve())
        self.timeout = timeout

    def run(self, *args: str) -> str:
        res = run_cmd(["git", *args], cwd=self.path, timeout=self.timeout)
        if not res.ok:
            raise GitCommandError(res.error_text)
        return res.stdout

    def ping(self) -> None:
        try:
            out = self.run("rev-parse", "--is-inside-work-tree")
        except (GitCommandError, OSError) as e:
            raise BackendUnavailable(self.path, e) from e
        if out.strip() != "true":
            raise BackendUnavailable(self.path, "not a git working tree")

    def close(self) -> None:
        pass

    def status(self) -> GitStatus:
        return parse_status(self.run("status", "--porcelain=v1", "--branch", "-z"))

    def log(self, max_count: int) -> list[dict[str, str]]:
        fmt = _FIELD_SEP.join(["%H", "%aI", "%s", "%an", "%ae"]) + _RECORD_SEP
        out = self.run("log", f"--max-count={max_count}", f"--format={fmt}")
        commits = []
        for record in out.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            hash_, date, message, author, email = record.split(_FIELD_SEP)
            commits.append({"hash": hash_, "date": date, "message": message, "author": author, "email": email})
        return commits

    def diff(self, cached: bool) -> str:
        return self.run("diff", "--cached") if cached else self.run("diff")

    def branches(self) -> dict[str, Any]:
        out = self.run("branch", "--list", "--format=%(HEAD)%(refname:short)")
        current = None
        names = []
        for line in out.splitlines():
            if not line:
                continue
            marker, name = line[0], line[1:]
            if name.startswith("(HEAD detached"):
                continue
            if marker == "*":
                current = name
            names.append(name)
        return {"current": current, "all": names}

    def create_branch(self, name: str) -> None:
        self.run("checkout", "-b", _operand("branchName", name))

    def delete_branch(self, name: str) -> None:
        self.run("branch", "-d", _operand("branchName", name))

    def checkout(self, branch: str) -> None:
        self.run("checkout", _operand("branch", branch))

    def add(self, files: str) -> None:
        self.run("add", "--", *shlex.split(files))

    def commit(self, message: str) -> dict[str, Any]:
        out = self.run("commit", "-m", message)
        m = _COMMIT_HEAD.search(out)
        return {
            "commit": m.group("hash") if m else "",
            "changes": _count(_FILES_CHANGED, out),
            "insertions": _count(_INSERTIONS, out),
            "deletions": _count(_DELETIONS, out),
        }

    @staticmethod
    def _remote_args(remote: str, branch: str | None) -> list[str]:
        args = [_operand("remote", remote)]
        if branch:
            args.append(_operand("branch", branch))
        return args

    def push(self, remote: str, branch: str | None = None) -> None:
        self.run("push", *self._remote_args(remote, branch))

    def pull(self, remote: str, branch: str | None = None) -> int:
        out = self.run("pull", *self._remote_args(remote, branch))
        return _count(_FILES_CHANGED, out)


def _dumps(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


@dataclass
class GitStatusTool:
    repo: GitRepo
    spec: ToolSpec = ToolSpec(
        name="git_status",
        description="Show the working tree status (git status).",
        error_prefix="Error getting status",
    )

    def execute(self, args: ValidatedArgs) -> str:
        return _dumps(self.repo.status().summary())


@dataclass
class GitLogTool:
    repo: GitRepo
    spec: ToolSpec = ToolSpec(
        name="git_log",
        description="Show commit history (git log).",
        fields=(
            FieldSpec("maxCount", "number", "Maximum number of commits to show. Default 10.", required=False, default=10),
        ),
        error_prefix="Error getting log",
    )

    def execute(self, args: ValidatedArgs) -> str:
        return _dumps(self.repo.log(int(args["maxCount"])))


@dataclass
class GitDiffTool:
    repo: GitRepo
    spec: ToolSpec = ToolSpec(
        name="git_diff",
        description="Show changes between commits, commit and working tree, etc (git diff).",
        fields=(
            FieldSpec("cached", "boolean", "Show staged changes (--cached).", required=False, default=False),
        ),
        error_prefix="Error getting diff",
    )

    def execute(self, args: ValidatedArgs) -> str:
        return self.repo.diff(args["cached"]) or "No changes"


@dataclass
class GitBranchTool:
    repo: GitRepo
    spec: ToolSpec = ToolSpec(
        name="git_branch",
        description="List, create, or delete branches.",
        fields=(
            FieldSpec("action", "enum", "Action to perform.", choices=("list", "create", "delete")),
            FieldSpec(
                "branchName", "string", "Branch name (required for create/delete).",
                required=False, required_when=("action", ("create", "delete")),
            ),
        ),
        error_prefix="Error with branch operation",
    )

    def execute(self, args: ValidatedArgs) -> str:
        action = args["action"]
        if action == "list":
            return self._list()
        if action == "create":
            return self._create(args["branchName"])
        return self._delete(args["branchName"])

    def _list(self) -> str:
        return _dumps(self.repo.branches())

    def _create(self, name: str) -> str:
        self.repo.create_branch(name)
        return f'Branch "{name}" created and checked out.'

    def _delete(self, name: str) -> str:
        self.repo.delete_branch(name)
        return f'Branch "{name}" deleted.'


@dataclass
class GitCheckoutTool:
    repo: GitRepo
    spec: ToolSpec = ToolSpec(
        name="git_checkout",
        description="Switch branches or restore working tree files (git checkout).",
        fields=(FieldSpec("branch", "string", "Branch name to checkout."),),
        error_prefix="Error checking out branch",
    )

    def execute(self, args: ValidatedArgs) -> str:
        self.repo.checkout(args["branch"])
        return f'Switched to branch "{args["branch"]}".'


@dataclass
class GitAddTool:
    repo: GitRepo
    spec: ToolSpec = ToolSpec(
        name="git_add",
        description="Add file contents to the index (git add).",
        fields=(FieldSpec("files", "string", "Files to add (e.g., '.' for all, or specific file paths)."),),
        error_prefix="Error adding files",
    )

    def execute(self, args: ValidatedArgs) -> str:
        self.repo.add(args["files"])
        return f"Files added: {args['files']}"


@dataclass
class GitCommitTool:
    repo: GitRepo
    spec: ToolSpec = ToolSpec(
        name="git_commit",
        description="Record changes to the repository (git commit).",
        fields=(FieldSpec("message", "string", "Commit message."),),
        error_prefix="Error creating commit",
    )

    def execute(self, args: ValidatedArgs) -> str:
        r = self.repo.commit(args["message"])
        return (
            f"Commit created: {r['commit']}\n"
            f"{r['changes']} files changed, {r['insertions']} insertions(+), {r['deletions']} deletions(-)"
        )


def _remote_fields(verb: str) -> tuple[FieldSpec, ...]:
    return (
        FieldSpec("remote", "string", "Remote name. Default 'origin'.", required=False, default="origin"),
        FieldSpec("branch", "string", f"Branch name. If not specified, {verb} current branch.", required=False),
    )


def _target(remote: str, branch: str | None) -> str:
    return f"{remote}/{branch}" if branch else remote


@dataclass
class GitPushTool:
    repo: GitRepo
    spec: ToolSpec = ToolSpec(
        name="git_push",
        description="Update remote refs along with associated objects (git push).",
        fields=_remote_fields("pushes"),
        error_prefix="Error pushing",
    )

    def execute(self, args: ValidatedArgs) -> str:
        self.repo.push(args["remote"], args.get("branch"))
        return f"Pushed to {_target(args['remote'], args.get('branch'))}"


@dataclass
class GitPullTool:
    repo: GitRepo
    spec: ToolSpec = ToolSpec(
        name="git_pull",
        description="Fetch from and integrate with another repository or a local branch (git pull).",
        fields=_remote_fields("pulls"),
        error_prefix="Error pulling",
    )

    def execute(self, args: ValidatedArgs) -> str:
        changed = self.repo.pull(args["remote"], args.get("branch"))
        return f"Pulled from {_target(args['remote'], args.get('branch'))}\nFiles changed: {changed}"


def open_backend(config) -> GitRepo:
    return GitRepo(config.target)


def register_tools(registry: ToolRegistry, repo: GitRepo | None) -> None:
    registry.register(GitStatusTool(repo))
    registry.register(GitLogTool(repo))
    registry.register(GitDiffTool(repo))
    registry.register(GitBranchTool(repo))
    registry.register(GitCheckoutTool(repo))
    registry.register(GitAddTool(repo))
    registry.register(GitCommitTool(repo))
    registry.register(GitPushTool(repo))
    registry.register(GitPullTool(repo))
