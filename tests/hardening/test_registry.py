"""Tests for the winreg wrapper."""

from unittest.mock import MagicMock, patch

import pytest

from rmmkit.errors import RegistryUnavailableError
from rmmkit.hardening import registry


@pytest.fixture
def fake_winreg():
    winreg = MagicMock()
    winreg.HKEY_LOCAL_MACHINE = "HKLM-handle"
    winreg.HKEY_CURRENT_USER = "HKCU-handle"
    winreg.REG_DWORD = 4
    winreg.REG_SZ = 1
    with patch("rmmkit.hardening.registry._winreg", return_value=winreg):
        yield winreg


class TestRegistry:
    def test_unavailable_off_windows(self):
        with patch.dict("sys.modules", {"winreg": None}):
            with pytest.raises(RegistryUnavailableError):
                registry.read_value("HKLM", r"SOFTWARE\Test", "Value")

    def test_read_value(self, fake_winreg):
        fake_winreg.QueryValueEx.return_value = (1, 4)
        assert registry.read_value("HKLM", r"SOFTWARE\Test", "Value") == 1
        fake_winreg.CloseKey.assert_called_once()

    def test_read_missing_key(self, fake_winreg):
        fake_winreg.OpenKey.side_effect = FileNotFoundError
        assert registry.read_value("HKLM", r"SOFTWARE\Missing", "Value") is None

    def test_read_missing_value(self, fake_winreg):
        fake_winreg.QueryValueEx.side_effect = FileNotFoundError
        assert registry.read_value("HKLM", r"SOFTWARE\Test", "Missing") is None

    def test_unsupported_hive(self, fake_winreg):
        with pytest.raises(ValueError):
            registry.read_value("HKCR", r"SOFTWARE\Test", "Value")

    def test_write_dword(self, fake_winreg):
        registry.write_value("HKLM", r"SOFTWARE\Test", "Value", "255")
        args = fake_winreg.SetValueEx.call_args.args
        assert args[1:] == ("Value", 0, 4, 255)

    def test_write_string(self, fake_winreg):
        registry.write_value("HKCU", r"Software\Test", "Name", 7, kind="SZ")
        assert fake_winreg.SetValueEx.call_args.args[3:] == (1, "7")

    def test_write_bad_kind(self, fake_winreg):
        with pytest.raises(ValueError):
            registry.write_value("HKLM", r"SOFTWARE\Test", "Value", 1, kind="QWORD")

    def test_delete_absent(self, fake_winreg):
        fake_winreg.DeleteValue.side_effect = FileNotFoundError
        assert registry.delete_value("HKLM", r"SOFTWARE\Test", "Value") is False

    def test_delete_present(self, fake_winreg):
        assert registry.delete_value("HKLM", r"SOFTWARE\Test", "Value") is True
