"""tests for settings"""
import pytest
from pydantic import ValidationError

from gmx.core.config import Settings


def test_unknown_project_is_rejected():
    with pytest.raises(ValidationError):
        Settings(PROJECT="mlab-nowhere")


@pytest.mark.parametrize("project", ["mlab-sandbox", "mlab-staging", "mlab-oti"])
def test_known_projects(project):
    assert Settings(PROJECT=project).PROJECT == project


def test_github_secret_from_environment():
    assert Settings(PROJECT="mlab-oti", GITHUB_WEBHOOK_SECRET=" envsecret\n").github_secret() == b"envsecret"


def test_github_secret_from_file(tmp_path):
    secret_file = tmp_path / "secret"
    secret_file.write_text("  filesecret\n")
    config = Settings(PROJECT="mlab-oti", GITHUB_WEBHOOK_SECRET="envsecret", GITHUB_SECRET_PATH=secret_file)
    assert config.github_secret() == b"filesecret"


def test_empty_github_secret_is_fatal():
    with pytest.raises(RuntimeError):
        Settings(PROJECT="mlab-oti", GITHUB_WEBHOOK_SECRET="   ").github_secret()


def test_reload_bounds_are_checked():
    with pytest.raises(ValidationError):
        Settings(PROJECT="mlab-oti", RELOAD_MIN=7200, RELOAD_TIME=3600)
