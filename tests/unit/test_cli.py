"""
test_cli.py — Unit tests for the relayctl CLI

API commands run against the real API app through an httpx MockTransport;
offline commands read the backing files directly.
"""

import httpx
import pytest
import typer
from fastapi.testclient import TestClient
from typer.testing import CliRunner

import relayctl.main as cli
from core.logger import LOGGER
from relay.api import create_api_app
from relayctl.client import Client, RelayAPIError

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_log_level():
    """The CLI quietens the relay logger; put it back for other tests."""
    level = LOGGER.level
    yield
    LOGGER.setLevel(level)


@pytest.fixture
def transport(store, mapping):
    """Forward httpx requests to an in-process API app."""
    app_client = TestClient(create_api_app(store, mapping, "tok"))

    def handler(request: httpx.Request) -> httpx.Response:
        r = app_client.request(
            request.method,
            request.url.path,
            headers={k: v for k, v in request.headers.items() if k.lower() not in ("host", "content-length")},
            content=request.content,
        )
        return httpx.Response(r.status_code, headers=r.headers, content=r.content)

    return httpx.MockTransport(handler)


@pytest.fixture
def patched_client(monkeypatch, transport):
    def factory(base_url="http://localhost:5000", token=""):
        return Client(base_url=base_url, token=token, transport=transport)

    monkeypatch.setattr(cli, "Client", factory)


# ── Client ─────────────────────────────────────────────────────────────────────


class TestRelayClient:
    def test_save_and_get(self, transport, store):
        with Client(token="tok", transport=transport) as c:
            assert c.set_port(52000) == {"message": "Data saved successfully"}
            assert c.get() == {"port": 52000}
        assert store.port() == 52000

    def test_bad_token_raises(self, transport):
        with Client(token="wrong", transport=transport) as c:
            with pytest.raises(RelayAPIError, match="Unauthorized"):
                c.get()

    def test_unreachable_raises(self):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        with Client(transport=httpx.MockTransport(refuse)) as c:
            assert c.is_alive() is False
            with pytest.raises(RelayAPIError, match="not reachable"):
                c.health()


# ── parse_pairs ────────────────────────────────────────────────────────────────


class TestParsePairs:
    def test_values_are_json_when_possible(self):
        data = cli.parse_pairs(["port=51000", "note=stun", "ok=true", "meta={\"a\": 1}", "empty="])
        assert data == {"port": 51000, "note": "stun", "ok": True, "meta": {"a": 1}, "empty": ""}

    def test_non_finite_constants_stay_strings(self):
        assert cli.parse_pairs(["port=NaN", "x=-Infinity"]) == {"port": "NaN", "x": "-Infinity"}

    @pytest.mark.parametrize("pair", ["port", "=1"])
    def test_rejects_non_pairs(self, pair):
        with pytest.raises(typer.BadParameter):
            cli.parse_pairs([pair])


# ── API commands ───────────────────────────────────────────────────────────────


class TestApiCommands:
    def test_set_port(self, patched_client, store):
        result = runner.invoke(cli.app, ["set-port", "52000", "--token", "tok"])
        assert result.exit_code == 0, result.output
        assert "52000" in result.output
        assert store.port() == 52000

    def test_set_port_out_of_range(self, patched_client):
        result = runner.invoke(cli.app, ["set-port", "70000", "--token", "tok"])
        assert result.exit_code != 0

    def test_save(self, patched_client, store):
        result = runner.invoke(cli.app, ["save", "port=53000", "source=stun", "--token", "tok"])
        assert result.exit_code == 0, result.output
        assert store.get() == {"port": 53000, "source": "stun"}

    def test_get(self, patched_client, store):
        store.merge({"source": "stun"})
        result = runner.invoke(cli.app, ["get", "--token", "tok"])
        assert result.exit_code == 0, result.output
        assert "51000" in result.output
        assert "stun" in result.output

    def test_bad_token_exits_1(self, patched_client):
        result = runner.invoke(cli.app, ["get", "--token", "nope"])
        assert result.exit_code == 1
        assert "Unauthorized" in result.output

    def test_health(self, patched_client):
        result = runner.invoke(cli.app, ["health"])
        assert result.exit_code == 0, result.output
        assert "ok" in result.output


# ── Offline commands ───────────────────────────────────────────────────────────


class TestOfflineCommands:
    def test_resolve(self, data_file, mapping_file):
        result = runner.invoke(
            cli.app,
            ["resolve", "example.com:33331", "--data-file", str(data_file), "--mapping-file", str(mapping_file)],
        )
        assert result.exit_code == 0, result.output
        assert "http://1.2.3.4:51000" in result.output

    def test_resolve_unmapped_exits_1(self, data_file, mapping_file):
        result = runner.invoke(
            cli.app,
            ["resolve", "example.com:9999", "--data-file", str(data_file), "--mapping-file", str(mapping_file)],
        )
        assert result.exit_code == 1
        assert "404" in result.output

    def test_rules(self, data_file, mapping_file):
        result = runner.invoke(cli.app, ["rules", "--data-file", str(data_file), "--mapping-file", str(mapping_file)])
        assert result.exit_code == 0, result.output
        assert "*:33331" in result.output
        assert "http://1.2.3.4:51000" in result.output

    def test_rules_missing_mapping_file(self, data_file, tmp_path):
        result = runner.invoke(
            cli.app, ["rules", "--data-file", str(data_file), "--mapping-file", str(tmp_path / "none.json")]
        )
        assert result.exit_code == 1

    def test_version(self):
        result = runner.invoke(cli.app, ["--version"])
        assert result.exit_code == 0
        assert "relayctl" in result.output
