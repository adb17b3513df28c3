import unittest
from unittest.mock import MagicMock, patch

import requests

from shlama.server import OllamaServer, is_loopback_url


class TestIsLoopbackUrl(unittest.TestCase):

    def test_local_addresses(self):
        for url in ("http://localhost:11434", "http://127.0.0.1:11434", "http://[::1]:11434", "http://0.0.0.0:11434"):
            with self.subTest(url=url):
                self.assertTrue(is_loopback_url(url))

    def test_remote_addresses(self):
        for url in ("http://192.168.1.20:11434", "https://ollama.example.com", "http://gpu-box:11434"):
            with self.subTest(url=url):
                self.assertFalse(is_loopback_url(url))


@patch("shlama.server.time.sleep")
@patch("shlama.server.subprocess.Popen")
@patch("shlama.server.requests.get")
class TestOllamaServer(unittest.TestCase):
    """Test cases for the liveness check and launcher."""

    def test_alive_server_needs_no_launch(self, mock_get, mock_popen, mock_sleep):
        mock_get.return_value = MagicMock(status_code=200)
        server = OllamaServer("http://localhost:11434")

        self.assertTrue(server.ensure_ready())
        mock_get.assert_called_once_with("http://localhost:11434/api/tags", timeout=3.0)
        mock_popen.assert_not_called()

    def test_any_http_status_counts_as_alive(self, mock_get, mock_popen, mock_sleep):
        mock_get.return_value = MagicMock(status_code=500)

        self.assertTrue(OllamaServer("http://localhost:11434").is_alive())

    def test_remote_unreachable_fails_without_launch(self, mock_get, mock_popen, mock_sleep):
        mock_get.side_effect = requests.ConnectionError("refused")
        server = OllamaServer("http://192.168.1.20:11434")

        self.assertFalse(server.ensure_ready())
        mock_popen.assert_not_called()
        mock_sleep.assert_not_called()

    @patch("shlama.server.platform.system", return_value="Linux")
    @patch("shlama.server.shutil.which", return_value="/usr/local/bin/ollama")
    def test_local_server_is_launched_and_polled(self, mock_which, mock_system, mock_get, mock_popen, mock_sleep):
        mock_get.side_effect = [
            requests.ConnectionError("refused"),
            requests.ConnectionError("refused"),
            MagicMock(status_code=200),
        ]
        server = OllamaServer("http://localhost:11434", poll_interval=0.5, max_attempts=30)

        self.assertTrue(server.ensure_ready())
        mock_popen.assert_called_once()
        args, kwargs = mock_popen.call_args
        self.assertEqual(args[0], ["/usr/local/bin/ollama", "serve"])
        self.assertTrue(kwargs["start_new_session"])
        self.assertEqual(mock_sleep.call_count, 2)
        mock_sleep.assert_called_with(0.5)

    @patch("shlama.server.platform.system", return_value="Linux")
    @patch("shlama.server.shutil.which", return_value="/usr/local/bin/ollama")
    def test_gives_up_after_bounded_attempts(self, mock_which, mock_system, mock_get, mock_popen, mock_sleep):
        mock_get.side_effect = requests.ConnectionError("refused")
        server = OllamaServer("http://localhost:11434", max_attempts=30)

        self.assertFalse(server.ensure_ready())
        self.assertEqual(mock_sleep.call_count, 30)
        # One initial liveness check plus one per attempt
        self.assertEqual(mock_get.call_count, 31)

    @patch("shlama.server.platform.system", return_value="Linux")
    @patch("shlama.server.shutil.which", return_value=None)
    def test_nothing_to_launch(self, mock_which, mock_system, mock_get, mock_popen, mock_sleep):
        mock_get.side_effect = requests.ConnectionError("refused")

        self.assertFalse(OllamaServer("http://localhost:11434").ensure_ready())
        mock_popen.assert_not_called()
        mock_sleep.assert_not_called()

    @patch("shlama.server.os.path.exists", return_value=True)
    @patch("shlama.server.platform.system", return_value="Darwin")
    @patch("shlama.server.shutil.which", return_value="/opt/homebrew/bin/ollama")
    def test_installed_app_is_tried_first(self, mock_which, mock_system, mock_exists, mock_get, mock_popen, mock_sleep):
        mock_popen.side_effect = [OSError("open failed"), MagicMock()]
        server = OllamaServer("http://localhost:11434")

        self.assertTrue(server.launch())
        self.assertEqual(mock_popen.call_args_list[0][0][0], ["open", "-a", "Ollama"])
        self.assertEqual(mock_popen.call_args_list[1][0][0], ["/opt/homebrew/bin/ollama", "serve"])


if __name__ == "__main__":
    unittest.main()
