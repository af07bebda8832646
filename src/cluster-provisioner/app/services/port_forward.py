"""Scoped local port-forward tunnels into a target cluster."""

from __future__ import annotations

import asyncio
import contextlib
from pathlib import Path
from typing import Any

from shared.observability import get_logger

logger = get_logger(__name__)


class PortForwardError(Exception):
    """Raised when a tunnel cannot be established."""

    pass


class PortForwardTunnel:
    """``kubectl port-forward`` wrapped as an async context manager.

    The subprocess is terminated on every exit path, including errors raised
    inside the ``async with`` block.

    Usage:
        async with PortForwardTunnel(kubectl, kubeconfig, "vault", "pod/vault-0", 8200, 8200) as url:
            ...
    """

    def __init__(
        self,
        kubectl_path: Path,
        kubeconfig_path: Path,
        namespace: str,
        target: str,
        local_port: int,
        remote_port: int,
        ready_timeout: float = 30.0,
    ):
        self.kubectl_path = kubectl_path
        self.kubeconfig_path = kubeconfig_path
        self.namespace = namespace
        self.target = target
        self.local_port = local_port
        self.remote_port = remote_port
        self.ready_timeout = ready_timeout
        self._process: asyncio.subprocess.Process | None = None
        self._stop = asyncio.Event()
        self._drains: list[asyncio.Task[None]] = []

    @property
    def url(self) -> str:
        return f"http://localhost:{self.local_port}"

    async def __aenter__(self) -> str:
        self._process = await asyncio.create_subprocess_exec(
            str(self.kubectl_path),
            "--kubeconfig",
            str(self.kubeconfig_path),
            "--namespace",
            self.namespace,
            "port-forward",
            self.target,
            f"{self.local_port}:{self.remote_port}",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            await asyncio.wait_for(self._wait_ready(), timeout=self.ready_timeout)
        except BaseException:
            await self.close()
            raise
        self._drains = [
            asyncio.create_task(self._drain_output(stream))
            for stream in (self._process.stdout, self._process.stderr)
            if stream is not None
        ]
        logger.info(
            "Port-forward established",
            namespace=self.namespace,
            target=self.target,
            local_port=self.local_port,
        )
        return self.url

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _wait_ready(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        while True:
            line = await self._process.stdout.readline()
            if not line:
                stderr = b""
                if self._process.stderr is not None:
                    stderr = await self._process.stderr.read()
                raise PortForwardError(
                    f"port-forward to {self.namespace}/{self.target} exited: {stderr.decode(errors='replace').strip()}"
                )
            if line.startswith(b"Forwarding from"):
                return

    @staticmethod
    async def _drain_output(stream: asyncio.StreamReader) -> None:
        # kubectl logs every handled connection and every dropped one; keep both pipes from filling up
        while await stream.read(65536):
            pass

    async def close(self) -> None:
        """Signal stop and reap the subprocess."""
        self._stop.set()
        drains, self._drains = self._drains, []
        for drain in drains:
            drain.cancel()
        for drain in drains:
            with contextlib.suppress(asyncio.CancelledError):
                await drain
        process, self._process = self._process, None
        if process is None or process.returncode is not None:
            return
        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=5)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
        logger.info("Port-forward closed", namespace=self.namespace, target=self.target)

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()
