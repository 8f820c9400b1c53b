"""
Tests for logging setup.
"""

import logging
from unittest.mock import patch

from ghui.utils.log import LOG_FORMAT, setup_logging


class TestSetupLogging:
    """Tests for setup_logging()."""

    @patch("ghui.utils.log.logging.basicConfig")
    def test_default_path_under_state_home(self, mock_basic, isolated_env) -> None:
        path = setup_logging()

        assert path == isolated_env / "state" / "ghui" / "ghui.log"
        assert path.parent.is_dir()
        mock_basic.assert_called_once_with(level=logging.WARNING, format=LOG_FORMAT, filename=str(path))

    @patch("ghui.utils.log.logging.basicConfig")
    def test_debug_level(self, mock_basic, tmp_path) -> None:
        path = setup_logging(debug=True, log_path=tmp_path / "logs" / "debug.log")

        assert path == tmp_path / "logs" / "debug.log"
        assert mock_basic.call_args[1]["level"] == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.DEBUG

    @patch("ghui.utils.log.logging.basicConfig")
    def test_quiets_httpx(self, mock_basic, tmp_path) -> None:
        setup_logging(log_path=tmp_path / "ghui.log")
        assert logging.getLogger("httpx").level == logging.WARNING
