"""
Unit tests for the attestation client.
"""
import json
import subprocess
from unittest.mock import MagicMock, patch

import httpx
import pytest

from attest_client.backoff import ExponentialBackoff
from attest_client.client import (
    AttestClientError,
    BearerAuth,
    TokenNotReadyError,
    get_token,
    read_token,
    request_placement,
)
from attest_client.identity import get_serial, parse_ioreg_serial

PLACE_URL = "https://attest.example.com/v1/attest/place"

IOREG_OUTPUT = """+-o Root  <class IORegistryEntry, id 0x100000100, retain 20>
  +-o MacBookPro18,3  <class IOPlatformExpertDevice, id 0x100000110, registered, matched, active, busy 0 (0 ms), retain 37>
    {
      "IOPlatformUUID" = "00000000-0000-0000-0000-000000000000"
      "IOPlatformSerialNumber" = "C02XYZ123"
      "manufacturer" = <"Apple Inc.">
    }
"""


def place_client(path, requests=None, status=200):
    def handler(request):
        if requests is not None:
            requests.append(request)
        return httpx.Response(status, json={"path": str(path)})

    return httpx.Client(transport=httpx.MockTransport(handler))


def no_jitter():
    return ExponentialBackoff(initial_interval=1.0, randomization_factor=0)


class TestIdentity:

    def test_parse(self):
        assert parse_ioreg_serial(IOREG_OUTPUT) == "C02XYZ123"

    def test_parse_missing(self):
        assert parse_ioreg_serial("no serial here") == ""

    def test_get_serial(self):
        result = subprocess.CompletedProcess(args=[], returncode=0, stdout=IOREG_OUTPUT, stderr="")
        with patch("attest_client.identity.subprocess.run", return_value=result) as run:
            assert get_serial() == "C02XYZ123"
        assert run.call_args[0][0][0] == "ioreg"


class TestReadToken:

    def test_read(self, tmp_path):
        path = tmp_path / "token"
        path.write_text("tok-123")
        assert read_token(str(path)) == "tok-123"

    def test_missing(self, tmp_path):
        with pytest.raises(OSError):
            read_token(str(tmp_path / "missing"))

    def test_empty(self, tmp_path):
        path = tmp_path / "token"
        path.write_text("")
        with pytest.raises(TokenNotReadyError):
            read_token(str(path))

    def test_not_ascii(self, tmp_path):
        path = tmp_path / "token"
        path.write_bytes(b"\xff\xfe")
        with pytest.raises(UnicodeDecodeError):
            read_token(str(path))


class TestRequestPlacement:

    def test_request(self, tmp_path):
        requests = []
        path = request_placement(PLACE_URL, "C02XYZ", http_client=place_client("/tmp/abc", requests))

        assert path == "/tmp/abc"
        assert json.loads(requests[0].content) == {"identifier": "C02XYZ"}
        assert requests[0].headers["content-type"] == "application/json"

    def test_http_error(self):
        with pytest.raises(AttestClientError, match="400"):
            request_placement(PLACE_URL, "C02XYZ", http_client=place_client("/tmp/abc", status=400))

    def test_invalid_response(self):
        client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})))
        with pytest.raises(AttestClientError, match="parse"):
            request_placement(PLACE_URL, "C02XYZ", http_client=client)

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        with pytest.raises(AttestClientError, match="request"):
            request_placement(PLACE_URL, "C02XYZ", http_client=client)


class TestGetToken:

    def test_token_appears_after_grace_period(self, tmp_path, clock):
        token_path = tmp_path / "token"

        def sleep(seconds):
            clock.sleep(seconds)
            if clock.now >= 8:
                token_path.write_text("tok-123")

        token = get_token(
            PLACE_URL,
            timeout=60,
            get_identifier=lambda: "C02XYZ",
            http_client=place_client(token_path),
            backoff=no_jitter(),
            clock=clock,
            sleep=sleep,
        )

        assert token == "tok-123"
        # grace period, then 1 + 2 seconds of backoff
        assert clock.sleeps == [5.0, 1.0, 2.0]

    def test_empty_file_is_retried(self, tmp_path, clock):
        token_path = tmp_path / "token"
        token_path.write_text("")

        def sleep(seconds):
            clock.sleep(seconds)
            if clock.now >= 6:
                token_path.write_text("tok-123")

        token = get_token(
            PLACE_URL,
            timeout=60,
            get_identifier=lambda: "C02XYZ",
            http_client=place_client(token_path),
            backoff=no_jitter(),
            clock=clock,
            sleep=sleep,
        )
        assert token == "tok-123"

    def test_timeout(self, tmp_path, clock):
        with pytest.raises(AttestClientError, match="could not get token"):
            get_token(
                PLACE_URL,
                timeout=30,
                get_identifier=lambda: "C02XYZ",
                http_client=place_client(tmp_path / "never"),
                backoff=no_jitter(),
                clock=clock,
                sleep=clock.sleep,
            )

        assert clock.now == pytest.approx(30.0)

    def test_timeout_shorter_than_grace_period(self, tmp_path, clock):
        with pytest.raises(AttestClientError):
            get_token(
                PLACE_URL,
                timeout=2,
                get_identifier=lambda: "C02XYZ",
                http_client=place_client(tmp_path / "never"),
                clock=clock,
                sleep=clock.sleep,
            )
        assert clock.now == pytest.approx(2.0)

    def test_empty_serial(self, tmp_path, clock):
        requests = []
        with pytest.raises(AttestClientError, match="serial"):
            get_token(
                PLACE_URL,
                get_identifier=lambda: "",
                http_client=place_client(tmp_path / "token", requests),
                clock=clock,
                sleep=clock.sleep,
            )
        assert requests == []

    def test_serial_lookup_fails(self, clock):
        def fail():
            raise FileNotFoundError("ioreg")

        with pytest.raises(AttestClientError, match="serial"):
            get_token(PLACE_URL, get_identifier=fail, http_client=MagicMock(), clock=clock, sleep=clock.sleep)

    @pytest.mark.parametrize("error", [
        subprocess.CalledProcessError(1, ["ioreg"]),
        subprocess.TimeoutExpired(["ioreg"], 10),
    ])
    def test_ioreg_failure(self, clock, error):
        def fail():
            raise error

        with pytest.raises(AttestClientError, match="serial"):
            get_token(PLACE_URL, get_identifier=fail, http_client=MagicMock(), clock=clock, sleep=clock.sleep)

    def test_placement_request_bounded_by_timeout(self, tmp_path, clock):
        token_path = tmp_path / "token"
        token_path.write_text("tok-123")
        requests = []

        token = get_token(
            PLACE_URL,
            timeout=5,
            get_identifier=lambda: "C02XYZ",
            http_client=place_client(token_path, requests),
            clock=clock,
            sleep=clock.sleep,
        )

        assert token == "tok-123"
        assert requests[0].extensions["timeout"]["read"] == 5

    def test_backoff_argument_not_modified(self, tmp_path, clock):
        token_path = tmp_path / "token"
        token_path.write_text("tok-123")
        backoff = no_jitter()

        get_token(
            PLACE_URL,
            timeout=30,
            get_identifier=lambda: "C02XYZ",
            http_client=place_client(token_path),
            backoff=backoff,
            clock=clock,
            sleep=clock.sleep,
        )

        assert backoff.max_elapsed_time == 120.0

    def test_non_ascii_token_fails_without_retrying(self, tmp_path, clock):
        token_path = tmp_path / "token"
        token_path.write_bytes(b"\xff\xfe")

        with pytest.raises(AttestClientError, match="ASCII"):
            get_token(
                PLACE_URL,
                timeout=60,
                get_identifier=lambda: "C02XYZ",
                http_client=place_client(token_path),
                backoff=no_jitter(),
                clock=clock,
                sleep=clock.sleep,
            )

        assert clock.sleeps == [5.0]

    def test_placement_fails(self, tmp_path, clock):
        with pytest.raises(AttestClientError):
            get_token(
                PLACE_URL,
                get_identifier=lambda: "C02XYZ",
                http_client=place_client(tmp_path / "token", status=500),
                clock=clock,
                sleep=clock.sleep,
            )
        assert clock.sleeps == []


class TestBearerAuth:

    def test_header(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"msg": "Hello, C02XYZ!"})

        client = httpx.Client(transport=httpx.MockTransport(handler), auth=BearerAuth("tok-123"))
        client.get("https://attest.example.com/v1/attest/hello")

        assert requests[0].headers["Authorization"] == "Bearer tok-123"
