"""Thin wrapper around winreg for reading, writing and deleting values."""

from typing import Any, Optional

from ..errors import RegistryUnavailableError

HIVES = ("HKLM", "HKCU")
KINDS = ("DWORD", "SZ")


def _winreg():
    try:
        import winreg
    except ImportError:
        raise RegistryUnavailableError("winreg is only available on Windows")
    return winreg


def _hive(winreg, hive: str):
    mapping = {
        "HKLM": winreg.HKEY_LOCAL_MACHINE,
        "HKCU": winreg.HKEY_CURRENT_USER,
    }
    if hive not in mapping:
        raise ValueError(f"Unsupported hive: {hive!r}")
    return mapping[hive]


def read_value(hive: str, key: str, name: str) -> Optional[Any]:
    """Return the value's data, or None when the key or value is absent."""
    winreg = _winreg()
    try:
        handle = winreg.OpenKey(_hive(winreg, hive), key, 0, winreg.KEY_READ | winreg.KEY_WOW64_64KEY)
    except FileNotFoundError:
        return None
    try:
        value, _ = winreg.QueryValueEx(handle, name)
        return value
    except FileNotFoundError:
        return None
    finally:
        winreg.CloseKey(handle)


def write_value(hive: str, key: str, name: str, value: Any, kind: str = "DWORD") -> None:
    """Create the key if needed and set the value."""
    winreg = _winreg()
    if kind not in KINDS:
        raise ValueError(f"Unsupported value kind: {kind!r}")
    reg_type = winreg.REG_DWORD if kind == "DWORD" else winreg.REG_SZ
    handle = winreg.CreateKeyEx(_hive(winreg, hive), key, 0, winreg.KEY_SET_VALUE | winreg.KEY_WOW64_64KEY)
    try:
        winreg.SetValueEx(handle, name, 0, reg_type, int(value) if kind == "DWORD" else str(value))
    finally:
        winreg.CloseKey(handle)


def delete_value(hive: str, key: str, name: str) -> bool:
    """Delete the value. Returns False when it was already absent."""
    winreg = _winreg()
    try:
        handle = winreg.OpenKey(_hive(winreg, hive), key, 0, winreg.KEY_SET_VALUE | winreg.KEY_WOW64_64KEY)
    except FileNotFoundError:
        return False
    try:
        winreg.DeleteValue(handle, name)
        return True
    except FileNotFoundError:
        return False
    finally:
        winreg.CloseKey(handle)
