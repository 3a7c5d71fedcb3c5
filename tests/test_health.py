"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status and version
  - No authentication required, and a bogus bearer token is ignored
"""

from __future__ import annotations


def test_health_returns_200(api_client):
    """Health endpoint returns 200 with status and version."""
    client, _, _ = api_client
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert "version" in data


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    client, _, _ = api_client
    resp = client.get("/api/v1/health", headers={})
    assert resp.status_code == 200


def test_health_ignores_bearer_token(api_client):
    """Health sits outside the routers, so token resolution never runs for it."""
    client, _, _ = api_client
    resp = client.get("/api/v1/health", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 200
