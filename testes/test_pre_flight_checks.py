import pytest
import requests

from conftest import SOURCE, FakeResponse
from wp_migrator.utils.pre_flight_checks import PreFlightCheckError, run_pre_flight_checks


def _config(**wordpress):
    wp = {"base_url": SOURCE, "username": "", "application_password": ""}
    wp.update(wordpress)
    return {"wordpress": wp}


def test_passes_and_returns_tenant(store, tenant_id, wordpress, log_lines):
    tenant = run_pre_flight_checks(_config(), store, tenant_id, session=wordpress, log=log_lines)
    assert tenant["id"] == tenant_id
    assert wordpress.calls[0] == (f"{SOURCE}/wp-json/wp/v2/posts", {"per_page": 1})


def test_unknown_tenant_lists_available_ones(store, tenant_id, wordpress, log_lines):
    with pytest.raises(PreFlightCheckError) as exc:
        run_pre_flight_checks(_config(), store, "nope", session=wordpress, log=log_lines)
    assert tenant_id in str(exc.value)
    assert wordpress.calls == []


def test_missing_source_url(store, tenant_id, wordpress, log_lines):
    with pytest.raises(PreFlightCheckError):
        run_pre_flight_checks(_config(base_url=""), store, tenant_id, session=wordpress, log=log_lines)


def test_incomplete_credentials(store, tenant_id, wordpress, log_lines):
    with pytest.raises(PreFlightCheckError):
        run_pre_flight_checks(_config(username="editor"), store, tenant_id, session=wordpress, log=log_lines)


def test_unreachable_source(store, tenant_id, wordpress, log_lines):
    wordpress.errors[f"{SOURCE}/wp-json/wp/v2/posts"] = requests.ConnectionError("refused")
    with pytest.raises(PreFlightCheckError):
        run_pre_flight_checks(_config(), store, tenant_id, session=wordpress, log=log_lines)


def test_rejected_credentials(store, tenant_id, log_lines):
    class Unauthorized:
        def get(self, url, params=None, timeout=None):
            return FakeResponse(401)

    with pytest.raises(PreFlightCheckError) as exc:
        run_pre_flight_checks(_config(), store, tenant_id, session=Unauthorized(), log=log_lines)
    assert "401" in str(exc.value)
