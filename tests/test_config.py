import json
import os
from unittest.mock import Mock

import pytest

from davcal import config
from davcal.config import Credentials
from davcal.config import get_connection_params
from davcal.config import get_davclient
from davcal.config import read_config
from davcal.lib.error import ConfigurationError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.startswith("DAVCAL_"):
            monkeypatch.delenv(key)
    ## keep the user's own config files out of the tests
    monkeypatch.setenv("HOME", str(tmp_path))


class TestReadConfig:
    def test_json(self, tmp_path):
        fn = tmp_path / "calendar.conf"
        fn.write_text(json.dumps({"default": {"caldav_user": "someone"}}))
        assert read_config(str(fn)) == {"default": {"caldav_user": "someone"}}

    def test_yaml(self, tmp_path):
        fn = tmp_path / "calendar.yaml"
        fn.write_text("---\ndefault:\n  caldav_user: someone\n  caldav_pass: secret\n")
        assert read_config(str(fn)) == {
            "default": {"caldav_user": "someone", "caldav_pass": "secret"}
        }

    def test_missing_file(self, tmp_path):
        assert read_config(str(tmp_path / "nope.conf")) == {}

    def test_invalid_file(self, tmp_path):
        fn = tmp_path / "broken.conf"
        fn.write_text("default: [unclosed\n  - {")
        assert read_config(str(fn)) == {}

    def test_default_location(self, tmp_path):
        cfgdir = tmp_path / ".config" / "davcal"
        cfgdir.mkdir(parents=True)
        (cfgdir / "calendar.conf").write_text('{"default": {"caldav_user": "x"}}')
        assert read_config(None) == {"default": {"caldav_user": "x"}}

    def test_no_default_file(self):
        assert not read_config(None)


class TestConfigSection:
    def test_inherits(self):
        cfg = {
            "default": {"caldav_url": "https://cal.example.com", "caldav_user": "a"},
            "work": {"inherits": "default", "caldav_user": "b"},
        }
        section = config.config_section(cfg, "work")
        assert section["caldav_url"] == "https://cal.example.com"
        assert section["caldav_user"] == "b"

    def test_missing_section(self):
        assert config.config_section({}, "work") == {}


class TestCredentials:
    def test_repr_masks_password(self):
        credentials = Credentials("someone@icloud.com", "abcd-efgh")
        assert "abcd-efgh" not in repr(credentials)
        assert "someone@icloud.com" in repr(credentials)

    def test_is_valid(self):
        assert Credentials("a", "b").is_valid
        assert not Credentials("a", "").is_valid
        assert not Credentials("  ", "b").is_valid


class TestConnectionParams:
    def test_keyword_arguments_win(self, monkeypatch):
        monkeypatch.setenv("DAVCAL_USERNAME", "from-env")
        params = get_connection_params(username="u", password="p")
        assert params == {"username": "u", "password": "p", "url": config.DEFAULT_URL}

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("DAVCAL_URL", "https://cal.example.com")
        monkeypatch.setenv("DAVCAL_USERNAME", "u")
        monkeypatch.setenv("DAVCAL_PASSWORD", "p")
        monkeypatch.setenv("DAVCAL_TIMEOUT", "5")
        params = get_connection_params()
        assert params == {
            "url": "https://cal.example.com",
            "username": "u",
            "password": "p",
            "timeout": 5.0,
        }

    def test_config_file(self, monkeypatch, tmp_path):
        fn = tmp_path / "my.conf"
        fn.write_text(
            json.dumps(
                {
                    "default": {"caldav_user": "a", "caldav_pass": "b"},
                    "other": {"caldav_user": "c", "caldav_pass": "d"},
                }
            )
        )
        monkeypatch.setenv("DAVCAL_CONFIG_FILE", str(fn))
        assert get_connection_params()["username"] == "a"
        monkeypatch.setenv("DAVCAL_CONFIG_SECTION", "other")
        params = get_connection_params()
        assert params["username"] == "c"
        assert params["password"] == "d"

    def test_ssl_verify_cert_from_string(self, monkeypatch):
        monkeypatch.setenv("DAVCAL_USERNAME", "u")
        monkeypatch.setenv("DAVCAL_SSL_VERIFY_CERT", "false")
        assert get_connection_params()["ssl_verify_cert"] is False

    def test_nothing_configured(self):
        assert get_connection_params() == {"url": config.DEFAULT_URL}


class TestGetDavclient:
    def test_get_davclient(self):
        client = get_davclient(username="u", password="p", url="https://cal.example.com")
        try:
            assert client.url == "https://cal.example.com"
            request = client.protocol.principal_request()
            assert request.headers["Authorization"].startswith("Basic ")
        finally:
            client.close()

    def test_missing_credentials(self):
        with pytest.raises(ConfigurationError) as e:
            get_davclient()
        assert "username and password" in str(e.value)

    def test_shortcut_in_davclient(self, monkeypatch):
        from davcal import davclient

        fake = Mock()
        monkeypatch.setattr(config, "get_davclient", fake)
        davclient.get_davclient(username="u")
        fake.assert_called_once_with(username="u")
