"""
Unit tests for the attestation client command line.
"""
from unittest.mock import patch

import httpx
import pytest

from attest_client.__main__ import main
from attest_client.client import AttestClientError


class TestMain:

    def test_prints_token(self, capsys):
        with patch("attest_client.__main__.get_token", return_value="tok-123") as get_token:
            assert main(["--url", "https://attest.example.com/v1/attest/", "--timeout", "30"]) == 0

        get_token.assert_called_once_with("https://attest.example.com/v1/attest/place", 30.0)
        assert capsys.readouterr().out.strip() == "tok-123"

    def test_failure(self):
        with patch("attest_client.__main__.get_token", side_effect=AttestClientError("timed out")):
            assert main(["--url", "https://attest.example.com/v1/attest"]) == 1

    def test_url_required(self, monkeypatch):
        monkeypatch.delenv("ATTEST_URL", raising=False)
        with pytest.raises(SystemExit):
            main([])

    def test_hello(self, capsys):
        response = httpx.Response(
            200,
            json={"msg": "Hello, C02XYZ!"},
            request=httpx.Request("GET", "https://attest.example.com/v1/attest/hello"),
        )
        with patch("attest_client.__main__.get_token", return_value="tok-123"), \
                patch("attest_client.__main__.httpx.get", return_value=response) as get:
            assert main(["--url", "https://attest.example.com/v1/attest", "--hello"]) == 0

        assert get.call_args[0][0] == "https://attest.example.com/v1/attest/hello"
        assert capsys.readouterr().out.strip() == "Hello, C02XYZ!"
