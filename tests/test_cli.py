"""Tests for the sitebuild command line."""

from unittest.mock import AsyncMock, patch

import pytest

from sitebuild.cli import main
from sitebuild.models.build_report import BuildReport
from sitebuild.services.fetcher import ContentFetchError
from sitebuild.services.normalizer import FallbackPolicy
from sitebuild.services.site_writer import SiteWriteError


@pytest.fixture(autouse=True)
def quiet_logging():
    with patch("sitebuild.cli.configure_logging"):
        yield


class TestBuildCommand:
    def test_success_exit_code(self, tmp_path):
        run = AsyncMock(return_value=BuildReport(published={"en": 1}, pages_written=1))
        with patch("sitebuild.cli.run_build", new=run):
            code = main(["build", "--output-dir", str(tmp_path / "out"), "--seed", "3"])

        assert code == 0
        settings = run.await_args.args[0]
        assert settings.output_dir == tmp_path / "out"
        assert settings.placeholder_seed == 3

    def test_fallback_policy_flag(self):
        run = AsyncMock(return_value=BuildReport())
        with patch("sitebuild.cli.run_build", new=run):
            main(["build", "--fallback-policy", "fallback-to-primary"])
        assert run.await_args.args[0].fallback_policy == FallbackPolicy.FALLBACK_TO_PRIMARY

    def test_fetch_failure_exit_code(self):
        with patch("sitebuild.cli.run_build", new=AsyncMock(side_effect=ContentFetchError("down"))):
            assert main(["build"]) == 1

    def test_write_failure_exit_code(self):
        with patch("sitebuild.cli.run_build", new=AsyncMock(side_effect=SiteWriteError("no template"))):
            assert main(["build"]) == 1

    def test_unknown_policy_rejected(self):
        with pytest.raises(SystemExit):
            main(["build", "--fallback-policy", "guess"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            main([])
