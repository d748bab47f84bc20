"""Minimal async git wrapper used to commit and push the tracked ID file.

Commands run through ``asyncio.create_subprocess_exec`` inside the working
copy. The commit author is passed with ``-c`` so the user's global git
configuration is never touched.
"""

import asyncio
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

_GIT_BINARY = "git"


class GitCommandError(Exception):
    """A git command exited with a non-zero status."""

    def __init__(self, args: list[str], returncode: int, stderr: str):
        super().__init__(
            f"git {' '.join(args)} exited with code {returncode}: {stderr}"
        )
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr


class GitRepository:
    """A working copy that can stage, commit and push files."""

    def __init__(self, work_tree: Path, user_name: str, user_email: str):
        self._work_tree = work_tree
        self._user_name = user_name
        self._user_email = user_email

    async def _run(self, *args: str) -> str:
        """Run one git command and return its stdout."""
        process = await asyncio.create_subprocess_exec(
            _GIT_BINARY,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self._work_tree,
        )
        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            raise GitCommandError(
                list(args),
                process.returncode,
                stderr.decode("utf-8", errors="replace").strip(),
            )
        return stdout.decode("utf-8", errors="replace")

    async def commit_and_push(self, path: Path, message: str) -> None:
        """Stage ``path``, commit it with ``message`` and push the branch."""
        await self._run("add", "--", str(path))
        await self._run(
            "-c",
            f"user.name={self._user_name}",
            "-c",
            f"user.email={self._user_email}",
            "commit",
            "-m",
            message,
        )
        await self._run("push")
        logger.info("Committed and pushed %s", path)
