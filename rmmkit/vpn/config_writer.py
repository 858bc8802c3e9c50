"""VPN client configuration writer.

Takes the configuration blob handed to the RMM script (plain ``.ovpn`` text
or base64 of it), patches directives and writes the result to the client's
config directory. Inline blocks such as ``<ca>...</ca>`` are copied
verbatim and never patched.
"""

import base64
import binascii
import os
import re
import tempfile
from pathlib import Path, PureWindowsPath
from typing import Optional

from ..errors import ConfigWriteError
from ..utils.logging import get_logger

logger = get_logger("vpn.config_writer")

_BLOCK_OPEN = re.compile(r"^<([A-Za-z0-9_-]+)>\s*$")
_BASE64_RE = re.compile(r"^[A-Za-z0-9+/=\s]+$")


def decode_blob(blob: str) -> str:
    """Return the config text, decoding base64 when the blob is base64."""
    stripped = blob.strip()
    if not stripped:
        raise ConfigWriteError("configuration blob is empty")

    if _BASE64_RE.match(stripped) and len("".join(stripped.split())) % 4 == 0:
        try:
            decoded = base64.b64decode("".join(stripped.split()), validate=True)
            return decoded.decode("utf-8-sig")
        except (binascii.Error, UnicodeDecodeError):
            pass
    return blob.lstrip("\ufeff")


def openvpn_path(path: str | os.PathLike) -> str:
    """Windows path with forward slashes, which OpenVPN's parser reads without escaping."""
    return PureWindowsPath(os.fspath(path)).as_posix()


def _directive(line: str) -> Optional[str]:
    stripped = line.strip()
    if not stripped or stripped[0] in "#;":
        return None
    return stripped.split(None, 1)[0].lower()


def patch_config(text: str, overrides: dict[str, Optional[str]]) -> str:
    """Apply directive overrides to config text.

    For each ``directive -> value`` pair, existing occurrences of the
    directive outside inline blocks are removed; the directive is then
    appended as ``directive value`` (or bare when value is ""). A value of
    None only removes the directive.
    """
    targets = {k.strip().lower(): v for k, v in overrides.items()}
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")

    out: list[str] = []
    block: Optional[str] = None
    for line in lines:
        if block is not None:
            out.append(line)
            if line.strip().lower() == f"</{block}>":
                block = None
            continue
        opening = _BLOCK_OPEN.match(line.strip())
        if opening:
            block = opening.group(1).lower()
            out.append(line)
            continue
        if _directive(line) in targets:
            continue
        out.append(line)

    if block is not None:
        raise ConfigWriteError(f"unterminated inline block <{block}>")

    while out and not out[-1].strip():
        out.pop()

    for directive, value in overrides.items():
        if value is None:
            continue
        out.append(f"{directive.strip()} {value}".rstrip())

    return "\r\n".join(out) + "\r\n"


def _atomic_write(path: Path, data: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(data)
        os.replace(tmp, path)
    except OSError:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


class ConfigWriter:
    """Writes the patched VPN config (and optional credentials file) to disk."""

    def __init__(
        self,
        config_path: str | os.PathLike,
        overrides: dict[str, Optional[str]] | None = None,
        auth_path: str | os.PathLike | None = None,
    ):
        self._config_path = Path(os.fspath(config_path))
        self._overrides = dict(overrides or {})
        self._auth_path = Path(os.fspath(auth_path)) if auth_path else None

    @property
    def config_path(self) -> Path:
        return self._config_path

    def write(self, blob: Optional[str], username: Optional[str] = None, password: Optional[str] = None) -> Path:
        """Decode, patch and write the config. Returns the written path."""
        if not blob:
            raise ConfigWriteError("no VPN configuration supplied")

        overrides = dict(self._overrides)
        if username and password and self._auth_path:
            self._write_credentials(username, password)
            overrides["auth-user-pass"] = f'"{openvpn_path(self._auth_path)}"'
            overrides.setdefault("auth-nocache", "")

        text = patch_config(decode_blob(blob), overrides)
        try:
            _atomic_write(self._config_path, text)
        except OSError as e:
            raise ConfigWriteError(f"cannot write {self._config_path}: {e}") from e

        logger.info(
            "vpn_config_written",
            path=str(self._config_path),
            overrides=sorted(overrides),
            bytes=len(text),
        )
        return self._config_path

    def _write_credentials(self, username: str, password: str) -> None:
        if "\n" in username or "\n" in password:
            raise ConfigWriteError("credentials must be single-line")
        try:
            _atomic_write(self._auth_path, f"{username}\r\n{password}\r\n")
        except OSError as e:
            raise ConfigWriteError(f"cannot write {self._auth_path}: {e}") from e
        logger.info("vpn_credentials_written", path=str(self._auth_path))

    def remove(self) -> bool:
        """Delete the config and credentials files if present."""
        for path in (self._config_path, self._auth_path):
            if path is None:
                continue
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("vpn_config_remove_failed", path=str(path), error=str(e))
                return False
        return True
