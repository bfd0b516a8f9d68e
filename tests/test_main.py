"""Tests for the deploy_server entry point."""

import json
import logging
from unittest.mock import patch

from deploy_server.__main__ import LOG_FILENAME, main, setup_logging


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_stdout_and_file_handlers(self, tmp_path):
        log_dir = tmp_path / "logs"
        with patch("deploy_server.__main__.logging.basicConfig") as basic_config:
            setup_logging(log_dir)

        assert log_dir.is_dir()
        handlers = basic_config.call_args.kwargs["handlers"]
        assert isinstance(handlers[0], logging.StreamHandler)
        assert isinstance(handlers[1], logging.FileHandler)
        assert handlers[1].baseFilename == str(log_dir / LOG_FILENAME)
        for handler in handlers:
            handler.close()


class TestMain:
    """Tests for main()."""

    def test_config_error_exits_1(self, tmp_path):
        with patch("deploy_server.__main__.uvicorn.run") as run:
            assert main(["--config", str(tmp_path / "missing.json")]) == 1
        run.assert_not_called()

    def test_starts_server(self, tmp_path):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({
            "auth_token": "t",
            "deployment_path": str(tmp_path / "sites"),
            "port": "9123",
            "log_path": str(tmp_path / "logs"),
        }))

        with patch("deploy_server.__main__.uvicorn.run") as run, \
                patch("deploy_server.__main__.setup_logging") as setup:
            assert main(["--config", str(config)]) == 0

        setup.assert_called_once_with(str(tmp_path / "logs"))
        assert (tmp_path / "sites").is_dir()
        assert run.call_args.kwargs["port"] == 9123
        assert run.call_args.args[0].state.settings.auth_token == "t"
