"""Binary download for the geth backend.

Geth is fetched on first local launch when it is not installed in the
binary directory. The download URL may point at the binary itself or
at a ``.zip`` / ``.tar.gz`` archive that contains it.
"""

import io
import os
import stat
import tarfile
import zipfile
from pathlib import Path
from typing import Self, final

import anyio.to_thread
import httpx

from emerald_services.config import LauncherConfig  # noqa: TC001 - Used in runtime type annotations
from emerald_services.exceptions import DownloadError

from ._protocol import StatusNotifier  # noqa: TC001 - Used in runtime type annotations

DEFAULT_DOWNLOAD_TIMEOUT = 300.0


def _extract_binary(payload: bytes, url_path: str, binary_name: str) -> bytes:
    """Return the binary from a downloaded payload.

    Args:
        payload: Downloaded bytes.
        url_path: Path component of the download URL, used to detect archives.
        binary_name: File name of the binary inside an archive.

    Returns:
        The binary contents.

    Raises:
        DownloadError: If the archive is corrupt or lacks the binary.
    """
    try:
        if url_path.endswith(".zip"):
            with zipfile.ZipFile(io.BytesIO(payload)) as archive:
                for info in archive.infolist():
                    if not info.is_dir() and Path(info.filename).name == binary_name:
                        return archive.read(info)
        elif url_path.endswith((".tar.gz", ".tgz")):
            with tarfile.open(fileobj=io.BytesIO(payload), mode="r:gz") as archive:
                for member in archive.getmembers():
                    if member.isfile() and Path(member.name).name == binary_name:
                        extracted = archive.extractfile(member)
                        if extracted is not None:
                            return extracted.read()
        else:
            return payload
    except (zipfile.BadZipFile, tarfile.TarError) as e:
        msg = f"Corrupt archive: {e}"
        raise DownloadError(msg) from e

    msg = f"Archive does not contain '{binary_name}'"
    raise DownloadError(msg)


@final
class GethDownloader:
    """Downloads geth into the binary directory unless it is installed.

    Attributes:
        binary_path: Where the geth binary is expected.
        url: Where to download geth from, if anywhere.
    """

    __slots__ = ("_client", "_notifier", "_timeout", "binary_path", "url")

    def __init__(
        self,
        binary_path: Path,
        *,
        url: str | None,
        notifier: StatusNotifier,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_DOWNLOAD_TIMEOUT,
    ) -> None:
        """Initialize the downloader.

        Args:
            binary_path: Where the geth binary is expected.
            url: Download URL; None disables downloading.
            notifier: Receives download progress messages.
            client: HTTP client to use. A new one is created per download if None.
            timeout: Request timeout in seconds for a created client.
        """
        self.binary_path = binary_path
        self.url = url
        self._notifier = notifier
        self._client = client
        self._timeout = timeout

    @classmethod
    def from_config(cls, config: LauncherConfig, notifier: StatusNotifier) -> Self:
        """Create a downloader for the geth binary described by config."""
        return cls(
            config.bin_dir / config.geth_binary,
            url=config.geth_download_url,
            notifier=notifier,
        )

    def is_installed(self) -> bool:
        """Check if an executable geth binary is present."""
        return self.binary_path.is_file() and os.access(self.binary_path, os.X_OK)

    async def download_if_not_exists(self) -> None:
        """Download geth unless it is already installed.

        Raises:
            DownloadError: If geth is missing and cannot be downloaded.
        """
        if self.is_installed():
            return

        if self.url is None:
            msg = (
                f"Geth binary not found at {self.binary_path} "
                "and no download URL is configured"
            )
            raise DownloadError(msg)

        self._notifier.info(f"Downloading Geth from {self.url}")
        try:
            payload = await self._fetch(self.url)
        except httpx.HTTPError as e:
            msg = f"Failed to download Geth from {self.url}: {e}"
            raise DownloadError(msg, url=self.url) from e

        await anyio.to_thread.run_sync(self._install, payload, self.url)
        self._notifier.info("Geth downloaded")

    async def _fetch(self, url: str) -> bytes:
        if self._client is not None:
            return await self._get(self._client, url)
        async with httpx.AsyncClient(
            timeout=self._timeout, follow_redirects=True
        ) as client:
            return await self._get(client, url)

    @staticmethod
    async def _get(client: httpx.AsyncClient, url: str) -> bytes:
        response = await client.get(url)
        _ = response.raise_for_status()
        return response.content

    def _install(self, payload: bytes, url: str) -> None:
        """Write the binary to its final location and mark it executable."""
        try:
            binary = _extract_binary(
                payload, httpx.URL(url).path, self.binary_path.name
            )
        except DownloadError as e:
            e.url = url
            raise

        partial = self.binary_path.with_name(f"{self.binary_path.name}.part")
        try:
            self.binary_path.parent.mkdir(parents=True, exist_ok=True)
            _ = partial.write_bytes(binary)
            partial.chmod(
                partial.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH
            )
            _ = partial.replace(self.binary_path)
        except OSError as e:
            msg = f"Failed to install Geth to {self.binary_path}: {e}"
            raise DownloadError(msg, url=url) from e
