from typing import Optional

import requests

from .errors import console_log


class PreFlightCheckError(Exception):
    """Custom exception for pre-flight check failures."""
    pass


def run_pre_flight_checks(config: dict, store, tenant_id: str, *, session: Optional[requests.Session] = None, log=console_log):
    """
    Verifies that the source site and the destination tenant are usable
    before any item is touched.

    Args:
        config: The application configuration dictionary.
        store: The destination store the run will write to.
        tenant_id: ID of the destination tenant.
        session: Optional HTTP session used to reach the source API.
        log: Logging callable.

    Returns:
        The tenant row.

    Raises:
        PreFlightCheckError: If any check fails.
    """
    log("Running pre-flight checks...")

    # Check 1: destination tenant
    tenant = store.get_tenant(tenant_id)
    if tenant is None:
        available = ", ".join(f"{t['id']} ({t['name']})" for t in store.list_tenants()) or "none"
        raise PreFlightCheckError(f"Tenant '{tenant_id}' not found. Available tenants: {available}")

    # Check 2: source configuration
    wp = config.get("wordpress", {})
    base_url = (wp.get("base_url") or "").rstrip("/")
    if not base_url:
        raise PreFlightCheckError("WordPress base URL not found in configuration (wordpress.base_url / WP_BASE_URL).")
    if bool(wp.get("username")) != bool(wp.get("application_password")):
        raise PreFlightCheckError(
            "Incomplete WordPress credentials: both username and application_password are required."
        )

    # Check 3: source API reachable
    session = session or requests.Session()
    url = f"{base_url}/wp-json/wp/v2/posts"
    try:
        response = session.get(url, params={"per_page": 1}, timeout=wp.get("timeout", 30))
        response.raise_for_status()
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else "?"
        if status in (401, 403):
            raise PreFlightCheckError(f"The WordPress API rejected the configured credentials ({status}).")
        raise PreFlightCheckError(f"Unexpected error while checking the WordPress API: {e}")
    except requests.RequestException as e:
        raise PreFlightCheckError(f"Network error while connecting to the WordPress API at {url}: {e}")

    log("Pre-flight checks passed successfully.")
    return tenant
