"""
Configuration tests.
"""

import json

from tacmap.config import (
    Config,
    HubConfig,
    ProxyConfig,
    ServerConfig,
    get_config,
    reset_config,
    set_config,
)


class TestServerConfig:

    def test_defaults(self):
        server = ServerConfig()
        assert server.port == 9090
        assert server.bind_host == "127.0.0.1"
        assert server.scheme == "http"

    def test_public_binds_all_interfaces(self):
        assert ServerConfig(public=True).bind_host == "0.0.0.0"
        ssl = ServerConfig(publicssl=True)
        assert ssl.bind_host == "0.0.0.0"
        assert ssl.scheme == "https"

    def test_from_dict_ignores_unknown(self):
        server = ServerConfig.from_dict({"port": 8080, "legacy": True})
        assert server.port == 8080


class TestConfig:
    """Load/save round trip and overrides."""

    def test_load_missing_returns_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TACMAP_PORT", raising=False)
        monkeypatch.delenv("TACMAP_PUBLIC_DIR", raising=False)
        config = Config.load(tmp_path)

        assert config.data_dir == tmp_path
        assert config.server.port == 9090
        assert config.hub.scoped_delivery is False
        assert Config.exists(tmp_path) is False

    def test_save_and_load(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TACMAP_PORT", raising=False)
        monkeypatch.delenv("TACMAP_PUBLIC_DIR", raising=False)
        config = Config(
            data_dir=tmp_path,
            public_dir=tmp_path / "www",
            server=ServerConfig(port=8081, public=True),
            proxy=ProxyConfig(upstream_proxy="http://proxy:8000", bypass_hosts=["lan1"]),
            hub=HubConfig(scoped_delivery=True),
        )
        config.save()

        assert Config.exists(tmp_path)
        saved = json.loads((tmp_path / "config.json").read_text())
        assert saved["proxy"]["bypass_hosts"] == ["lan1"]

        loaded = Config.load(tmp_path)
        assert loaded.public_dir == tmp_path / "www"
        assert loaded.server.port == 8081
        assert loaded.server.public is True
        assert loaded.proxy.upstream_proxy == "http://proxy:8000"
        assert loaded.hub.scoped_delivery is True

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TACMAP_PORT", "7000")
        monkeypatch.setenv("TACMAP_PUBLIC_DIR", str(tmp_path / "pub"))
        config = Config.load(tmp_path)

        assert config.server.port == 7000
        assert config.public_dir == tmp_path / "pub"

    def test_bad_env_port_ignored(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TACMAP_PORT", "not-a-port")
        assert Config.load(tmp_path).server.port == 9090


class TestGlobalConfig:

    def test_set_get_reset(self, tmp_path):
        config = Config(data_dir=tmp_path)
        set_config(config)
        try:
            assert get_config() is config
        finally:
            reset_config()
