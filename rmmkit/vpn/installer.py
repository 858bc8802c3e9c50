"""VPN client downloader and silent installer.

Downloads the installer over HTTPS with httpx, optionally checks its
SHA-256, then runs it unattended (msiexec for .msi packages, /S for NSIS
.exe installers). Skips everything when the client is already installed.
"""

import hashlib
import os
import tempfile
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import httpx

from ..errors import InstallError
from ..utils.logging import get_logger
from ..utils.shell import run_cmd

logger = get_logger("vpn.installer")

# msiexec: 1641 = restart initiated, 3010 = restart required
MSI_SUCCESS_CODES = (0, 1641, 3010)


class VPNInstaller:
    """Fetches and silently installs the VPN client."""

    def __init__(
        self,
        installer_url: str,
        exe_path: str,
        sha256: Optional[str] = None,
        timeout: int = 600,
        download_dir: Optional[str] = None,
    ):
        if urlparse(installer_url).scheme != "https":
            raise ValueError(f"Installer URL must use https: {installer_url!r}")
        self._url = installer_url
        self._exe_path = Path(exe_path)
        self._sha256 = sha256.lower() if sha256 else None
        self._timeout = timeout
        self._download_dir = Path(download_dir) if download_dir else Path(tempfile.gettempdir())

    def is_installed(self) -> bool:
        return self._exe_path.exists()

    @property
    def installer_path(self) -> Path:
        name = os.path.basename(urlparse(self._url).path) or "vpn-installer.msi"
        return self._download_dir / name

    async def download(self) -> Path:
        """Stream the installer to disk and return its path."""
        target = self.installer_path
        target.parent.mkdir(parents=True, exist_ok=True)
        digest = hashlib.sha256()
        size = 0

        logger.info("installer_download_started", url=self._url, target=str(target))
        try:
            async with httpx.AsyncClient(timeout=60, follow_redirects=True) as client:
                async with client.stream("GET", self._url) as resp:
                    resp.raise_for_status()
                    with open(target, "wb") as f:
                        async for chunk in resp.aiter_bytes():
                            f.write(chunk)
                            digest.update(chunk)
                            size += len(chunk)
        except (httpx.HTTPError, OSError) as e:
            target.unlink(missing_ok=True)
            raise InstallError(f"download failed: {e}") from e

        if size == 0:
            target.unlink(missing_ok=True)
            raise InstallError("download returned an empty file")

        if self._sha256 and digest.hexdigest() != self._sha256:
            target.unlink(missing_ok=True)
            raise InstallError(
                f"checksum mismatch: expected {self._sha256}, got {digest.hexdigest()}"
            )

        logger.info("installer_downloaded", bytes=size, sha256=digest.hexdigest())
        return target

    def install_command(self, installer: Path) -> list[str]:
        if installer.suffix.lower() == ".msi":
            return ["msiexec.exe", "/i", str(installer), "/qn", "/norestart"]
        return [str(installer), "/S"]

    async def install(self, force: bool = False) -> bool:
        """Download and run the installer unless the client is already present."""
        if self.is_installed() and not force:
            logger.info("vpn_client_already_installed", exe=str(self._exe_path))
            return True

        installer = await self.download()
        try:
            result = run_cmd(
                self.install_command(installer),
                timeout=self._timeout,
                ok_codes=MSI_SUCCESS_CODES,
            )
        finally:
            installer.unlink(missing_ok=True)

        if not result.ok:
            raise InstallError(f"installer exited with code {result.returncode}")
        if not self.is_installed():
            raise InstallError(f"installer finished but {self._exe_path} is missing")

        logger.info("vpn_client_installed", exe=str(self._exe_path))
        return True
