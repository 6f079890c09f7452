"""Git integration for Diff Reviewer."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from diff_reviewer.analyzers import prepare_files
from diff_reviewer.exceptions import GitCommandError
from diff_reviewer.models import DiffFile


logger = logging.getLogger(__name__)


class GitAdapter:
    """Reads diffs from and applies patches to a git working tree."""

    def __init__(
        self,
        repo_path: str | Path,
        git_binary: str = "git",
        diff_base: str = "HEAD",
        timeout: Optional[float] = None,
    ):
        self.repo_path = Path(repo_path)
        self.git_binary = git_binary
        self.diff_base = diff_base
        self.timeout = timeout

    async def get_raw_diff(self, file_path: Optional[str] = None) -> str:
        """Get the diff of uncommitted changes (staged and unstaged) against the base.

        Args:
            file_path: Limit the diff to one file

        Returns:
            Unified diff text
        """
        args = ["diff", self.diff_base]
        if file_path:
            args.extend(["--", file_path])
        return await self._exec(args)

    async def get_diff(self) -> list[DiffFile]:
        """Get the parsed, split and id-tagged diff of all uncommitted changes."""
        raw = await self.get_raw_diff()
        if not raw.strip():
            return []
        return prepare_files(raw)

    async def get_file_diff(self, file_path: str) -> list[DiffFile]:
        """Get the parsed diff of a single file."""
        raw = await self.get_raw_diff(file_path)
        if not raw.strip():
            return []
        return prepare_files(raw)

    async def get_file_content(self, file_path: str) -> list[str]:
        """Read the working-tree content of a file, split into lines.

        Bytes that are not valid UTF-8 are shown as U+FFFD; the content is
        for display only and never fed back into a patch.
        """
        path = self.repo_path / file_path
        content = await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")
        return content.split("\n")

    async def apply_reverse(self, patch: str):
        """Reverse-apply a single-hunk zero-context patch (reject a hunk)."""
        await self._exec(["apply", "-R", "--unidiff-zero", "-"], stdin=patch)

    async def apply_forward(self, patch: str):
        """Forward-apply a patch previously passed to ``apply_reverse``."""
        await self._exec(["apply", "--unidiff-zero", "-"], stdin=patch)

    async def _exec(self, args: list[str], stdin: Optional[str] = None) -> str:
        """Run git in the repository and return its stdout."""
        logger.debug(f"Running git {' '.join(args)}")
        process = await asyncio.create_subprocess_exec(
            self.git_binary,
            *args,
            cwd=str(self.repo_path),
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        # surrogateescape keeps non-UTF-8 file content byte-exact through a
        # diff -> patch -> apply round trip
        input_bytes = stdin.encode("utf-8", errors="surrogateescape") if stdin is not None else None
        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(input_bytes),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise GitCommandError(args, None, f"timed out after {self.timeout}s")

        if process.returncode != 0:
            error_msg = stderr.decode("utf-8", errors="replace") if stderr else ""
            raise GitCommandError(args, process.returncode, error_msg)

        return stdout.decode("utf-8", errors="surrogateescape")
