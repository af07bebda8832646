"""CLI tool downloads (kubectl, terraform).

Both binaries are fetched concurrently; the first failure cancels the
other download. Failed downloads are retried, and each binary is verified
by invoking its version command.
"""

from __future__ import annotations

import asyncio
import io
import os
import platform
import tempfile
import zipfile
from collections.abc import Awaitable, Callable
from pathlib import Path

import httpx

from shared.config import ToolSettings
from shared.observability import get_logger

from .commands import CommandError, run_command

logger = get_logger(__name__)

ARCH_ALIASES = {"x86_64": "amd64", "amd64": "amd64", "aarch64": "arm64", "arm64": "arm64"}


class ToolDownloadError(Exception):
    """Raised when a tool cannot be downloaded or fails verification."""

    pass


def _write_executable(path: Path, content: bytes) -> None:
    """Write through a temp file so an interrupted run never leaves a partial binary."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}-")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        os.chmod(tmp_name, 0o755)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def host_platform() -> tuple[str, str]:
    """Return (os, arch) in the naming used by release download URLs."""
    system = platform.system().lower()
    machine = platform.machine().lower()
    return system, ARCH_ALIASES.get(machine, machine)


class ToolInstaller:
    def __init__(self, settings: ToolSettings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings or ToolSettings()
        self._transport = transport

    def kubectl_url(self, os_name: str, arch: str) -> str:
        return f"{self.settings.kubectl_base_url}/{self.settings.kubectl_version}/bin/{os_name}/{arch}/kubectl"

    def terraform_url(self, os_name: str, arch: str) -> str:
        version = self.settings.terraform_version
        return f"{self.settings.terraform_base_url}/{version}/terraform_{version}_{os_name}_{arch}.zip"

    async def install(self, tools_dir: Path) -> None:
        """Download and verify kubectl and terraform into ``tools_dir``."""
        tools_dir.mkdir(parents=True, exist_ok=True)
        os_name, arch = host_platform()

        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=self.settings.download_timeout_seconds,
            follow_redirects=True,
        ) as http:
            tasks = [
                asyncio.create_task(self._install_kubectl(http, tools_dir / "kubectl", os_name, arch)),
                asyncio.create_task(self._install_terraform(http, tools_dir / "terraform", os_name, arch)),
            ]
            try:
                await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

        logger.info("Tools installed", tools_dir=str(tools_dir))

    async def _install_kubectl(self, http: httpx.AsyncClient, path: Path, os_name: str, arch: str) -> None:
        url = self.kubectl_url(os_name, arch)

        async def download() -> bytes:
            return await self._fetch(http, url)

        await self._install(path, download, ["version", "--client=true"])

    async def _install_terraform(self, http: httpx.AsyncClient, path: Path, os_name: str, arch: str) -> None:
        url = self.terraform_url(os_name, arch)

        async def download() -> bytes:
            archive = await self._fetch(http, url)
            try:
                with zipfile.ZipFile(io.BytesIO(archive)) as zf:
                    return zf.read("terraform")
            except (zipfile.BadZipFile, KeyError) as e:
                raise ToolDownloadError(f"invalid terraform archive from {url}: {e}") from e

        await self._install(path, download, ["version"])

    async def _install(
        self,
        path: Path,
        download: Callable[[], Awaitable[bytes]],
        version_args: list[str],
    ) -> None:
        """Reuse a cached binary that still verifies, otherwise fetch it again."""
        if path.exists():
            try:
                await self._verify(path, version_args)
                return
            except ToolDownloadError as e:
                logger.warning("Cached tool failed verification, downloading again", tool=path.name, error=str(e))
                path.unlink(missing_ok=True)

        logger.info("Downloading tool", tool=path.name)
        _write_executable(path, await download())
        await self._verify(path, version_args)

    async def _fetch(self, http: httpx.AsyncClient, url: str) -> bytes:
        attempts = self.settings.download_retries
        for attempt in range(1, attempts + 1):
            try:
                response = await http.get(url)
                response.raise_for_status()
                return response.content
            except httpx.HTTPError as e:
                if attempt == attempts:
                    raise ToolDownloadError(f"downloading {url} failed after {attempts} attempts: {e}") from e
                logger.warning("Download failed, retrying", url=url, attempt=attempt, error=str(e))
                await asyncio.sleep(self.settings.download_retry_delay_seconds)

    async def _verify(self, path: Path, version_args: list[str]) -> None:
        try:
            output = await run_command([path, *version_args], timeout=60)
        except (CommandError, OSError, asyncio.TimeoutError) as e:
            raise ToolDownloadError(f"verifying {path.name} failed: {e}") from e
        logger.debug("Verified tool", tool=path.name, version=output.splitlines()[0] if output else "")
