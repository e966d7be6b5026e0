"""
Tests for Service Configuration
===============================
"""

import json

from captcha_ocr.config import ServiceConfig, get_config, load_config, reset_config


class TestDefaults:

    def test_defaults(self):
        config = ServiceConfig()
        assert config.solver.use_gpu is True
        assert config.solver.execution_providers == []
        assert config.solver.inter_op_threads == 4
        assert config.solver.intra_op_threads == 4
        assert config.solver.low_confidence_threshold == 0.9
        assert config.server.port == 3001
        assert config.server.environment == "production"
        assert config.server.is_development is False
        assert config.server.cors_origins == ["http://localhost:3000"]


class TestEnvironmentOverrides:

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("CAPTCHA_USE_GPU", "false")
        monkeypatch.setenv("CAPTCHA_PORT", "8080")
        monkeypatch.setenv("CAPTCHA_ENV", "Development")
        monkeypatch.setenv("CAPTCHA_LOW_CONFIDENCE", "0.75")
        monkeypatch.setenv("CAPTCHA_MODEL_PATH", "/models/m.onnx")

        config = ServiceConfig()
        assert config.solver.use_gpu is False
        assert config.server.port == 8080
        assert config.server.is_development is True
        assert config.solver.low_confidence_threshold == 0.75
        assert config.solver.model_path == "/models/m.onnx"

    def test_list_parsing(self, monkeypatch):
        monkeypatch.setenv("CAPTCHA_EXECUTION_PROVIDERS", " cuda, ,cpu ")
        monkeypatch.setenv("CAPTCHA_CORS_ORIGINS", "https://a.example,https://b.example")

        config = ServiceConfig()
        assert config.solver.execution_providers == ["cuda", "cpu"]
        assert config.server.cors_origins == ["https://a.example", "https://b.example"]

    def test_invalid_number_falls_back(self, monkeypatch):
        monkeypatch.setenv("CAPTCHA_PORT", "not-a-port")
        monkeypatch.setenv("CAPTCHA_LOW_CONFIDENCE", "high")

        config = ServiceConfig()
        assert config.server.port == 3001
        assert config.solver.low_confidence_threshold == 0.9

    def test_empty_origin_regex_disables_it(self, monkeypatch):
        monkeypatch.setenv("CAPTCHA_CORS_ORIGIN_REGEX", "")
        assert ServiceConfig().server.cors_origin_regex is None


class TestPersistence:

    def test_save_and_load(self, tmp_path):
        config = ServiceConfig()
        config.server.port = 9000
        config.solver.batch_workers = 2

        path = tmp_path / "config.json"
        config.save(path)
        assert json.loads(path.read_text())["server"]["port"] == 9000

        loaded = ServiceConfig.load(path)
        assert loaded.server.port == 9000
        assert loaded.solver.batch_workers == 2

    def test_load_ignores_unknown_keys(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"server": {"port": 1234, "bogus": True}, "extra": {}}))

        loaded = ServiceConfig.load(path)
        assert loaded.server.port == 1234
        assert not hasattr(loaded.server, "bogus")


class TestSingleton:

    def test_get_config_cached_until_reset(self, monkeypatch):
        first = get_config()
        assert get_config() is first

        monkeypatch.setenv("CAPTCHA_PORT", "4000")
        assert get_config().server.port == first.server.port

        reset_config()
        assert get_config().server.port == 4000

    def test_load_config_replaces_global(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CAPTCHA_ENV", "development")
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"solver": {"use_gpu": False}, "server": {"port": 5555}}))

        loaded = load_config(path)
        assert get_config() is loaded
        assert loaded.solver.use_gpu is False
        assert loaded.server.port == 5555
        # keys absent from the file keep their environment values
        assert loaded.server.is_development is True
