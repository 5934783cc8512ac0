"""Tests for layered .env loading."""

import os

from adosync.core.config import env_file_paths, load_layered_env


class TestLoadLayeredEnv:
    """Test load_layered_env precedence and filtering."""

    def test_default_paths(self, tmp_path):
        """Test the user file comes first and .env.local last."""
        assert env_file_paths(tmp_path) == [
            tmp_path / "xdg" / "adosync" / ".env",
            tmp_path / ".env",
            tmp_path / ".env.local",
        ]

    def test_missing_files_set_nothing(self, tmp_path):
        """Test that absent .env files are skipped."""
        assert load_layered_env(tmp_path) == []

    def test_project_files_override_user_file(self, tmp_path):
        """Test user .env < project .env < .env.local."""
        user_env = tmp_path / "xdg" / "adosync" / ".env"
        user_env.parent.mkdir(parents=True)
        user_env.write_text("AZURE_DEVOPS_ORG=user-org\nAZURE_DEVOPS_PROJECT=user-project\n")
        (tmp_path / ".env").write_text("AZURE_DEVOPS_ORG=contoso\nAZURE_DEVOPS_PROJECT=web\n")
        (tmp_path / ".env.local").write_text("AZURE_DEVOPS_PROJECT=web-local\n")

        keys = load_layered_env(tmp_path)

        assert keys == ["AZURE_DEVOPS_ORG", "AZURE_DEVOPS_PROJECT"]
        assert os.environ["AZURE_DEVOPS_ORG"] == "contoso"
        assert os.environ["AZURE_DEVOPS_PROJECT"] == "web-local"

    def test_unrelated_keys_not_exported(self, tmp_path, monkeypatch):
        """Test that only AZURE_DEVOPS_* and ADOSYNC_* keys are exported."""
        monkeypatch.delenv("DATABASE_URL", raising=False)
        env_file = tmp_path / "app.env"
        env_file.write_text("DATABASE_URL=postgres://db\nADOSYNC_MAX_WORKERS=3\n")

        keys = load_layered_env(paths=[env_file])

        assert keys == ["ADOSYNC_MAX_WORKERS"]
        assert "DATABASE_URL" not in os.environ

    def test_os_environment_never_overridden(self, tmp_path, monkeypatch):
        """Test that variables already in the environment win."""
        monkeypatch.setenv("AZURE_DEVOPS_PAT", "from-shell")
        (tmp_path / ".env").write_text("AZURE_DEVOPS_PAT=from-file\n")

        assert load_layered_env(tmp_path) == []
        assert os.environ["AZURE_DEVOPS_PAT"] == "from-shell"
