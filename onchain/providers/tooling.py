"""
External CLI tool runner for tool-gated providers (nansen, agent-browser).
"""

import asyncio
import json
import logging
import shutil
from typing import Any, Callable, Optional

from onchain.exceptions import FetchError, NormalizationError, ToolNotAvailableError


logger = logging.getLogger(__name__)


class ToolRunner:
    """
    Runs one external command-line tool and captures its stdout.

    ``which`` is injectable so tests can pretend the tool is (not) installed.
    """

    def __init__(
        self,
        tool: str,
        provider: str,
        which: Callable[[str], Optional[str]] = shutil.which,
    ) -> None:
        self.tool = tool
        self.provider = provider
        self._which = which

    def is_available(self) -> bool:
        return self._which(self.tool) is not None

    async def run(self, args: list[str], timeout: float) -> str:
        """
        Run ``tool *args`` and return stdout.

        Raises:
            ToolNotAvailableError: Tool not on PATH
            FetchError: Non-zero exit status or timeout

        The child is killed if the caller is cancelled mid-run.
        """
        executable = self._which(self.tool)
        if executable is None:
            raise ToolNotAvailableError(
                f"{self.tool} CLI not available",
                provider=self.provider,
                tool=self.tool,
            )

        logger.debug(f"[{self.provider}] running {self.tool} {args[0] if args else ''}")
        process = await asyncio.create_subprocess_exec(
            executable,
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.CancelledError:
            await self._kill(process)
            raise
        except asyncio.TimeoutError:
            await self._kill(process)
            raise FetchError(
                f"{self.tool} timed out after {timeout:g}s",
                provider=self.provider,
            ) from None

        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip()
            raise FetchError(
                message or f"{self.tool} exited with code {process.returncode}",
                provider=self.provider,
            )

        return stdout.decode(errors="replace")

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        logger.debug(f"[{self.provider}] killing {self.tool} (pid {process.pid})")
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()

    async def run_json(self, args: list[str], timeout: float) -> Any:
        """Run the tool and decode its stdout as JSON."""
        output = await self.run(args, timeout)
        try:
            return json.loads(output.strip())
        except json.JSONDecodeError as e:
            raise NormalizationError(
                f"Failed to parse {self.tool} output: {output[:200]}",
                provider=self.provider,
                raw_data=output[:500],
                original_error=e,
            ) from e
