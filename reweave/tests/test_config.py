"""Tests for settings loading."""

from reweave.core.config import load_settings


class TestLoadSettings:

    def test_defaults_without_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("REWEAVE_LOCK_TTL_SECONDS", raising=False)
        settings = load_settings(str(tmp_path / "missing.yaml"))
        assert settings.lock_ttl_seconds == 600
        assert settings.creatable_categories == ["documentation", "build-tool"]
        assert settings.category_default_paths == {"documentation": ["README.md"]}
        assert settings.markup_extension_map == {".js": ".jsx"}
        assert settings.dependency_manifests[0] == "package.json"
        assert settings.max_file_size_bytes == 1024 * 1024

    def test_yaml_values(self, tmp_path):
        config = tmp_path / "reweave.yaml"
        config.write_text(
            "reweave:\n"
            "  max_files: 10\n"
            "  markup_extension_map:\n"
            "    '.js': '.jsx'\n"
            "    '.ts': '.tsx'\n"
        )
        settings = load_settings(str(config))
        assert settings.max_files == 10
        assert settings.markup_extension_map == {".js": ".jsx", ".ts": ".tsx"}

    def test_unknown_keys_are_ignored(self, tmp_path):
        config = tmp_path / "reweave.yaml"
        config.write_text("reweave:\n  not_a_setting: 1\n")
        settings = load_settings(str(config))
        assert not hasattr(settings, "not_a_setting")

    def test_environment_overrides(self, tmp_path, monkeypatch):
        config = tmp_path / "reweave.yaml"
        config.write_text("reweave:\n  lock_ttl_seconds: 30\n  use_pipeline: true\n")
        monkeypatch.setenv("REWEAVE_LOCK_TTL_SECONDS", "90")
        monkeypatch.setenv("REWEAVE_USE_PIPELINE", "false")
        monkeypatch.setenv("REWEAVE_MAX_FILE_SIZE_MB", "2.5")

        settings = load_settings(str(config))
        assert settings.lock_ttl_seconds == 90
        assert settings.use_pipeline is False
        assert settings.max_file_size_mb == 2.5

    def test_invalid_environment_value_keeps_default(self, tmp_path, monkeypatch):
        monkeypatch.setenv("REWEAVE_MAX_FILES", "many")
        settings = load_settings(str(tmp_path / "missing.yaml"))
        assert settings.max_files == 5000

    def test_job_retention(self, tmp_path, monkeypatch):
        monkeypatch.delenv("REWEAVE_JOB_RETENTION_SECONDS", raising=False)
        assert load_settings(str(tmp_path / "missing.yaml")).job_retention_seconds == 3600

        monkeypatch.setenv("REWEAVE_JOB_RETENTION_SECONDS", "120")
        assert load_settings(str(tmp_path / "missing.yaml")).job_retention_seconds == 120
