from __future__ import annotations

from authguard.security.client_identity import UNKNOWN_IDENTITY, resolve_client_identity


def test_first_forwarded_for_hop_wins():
    headers = {
        "X-Forwarded-For": "203.0.113.7, 10.0.0.1, 10.0.0.2",
        "X-Real-IP": "10.0.0.9",
        "CF-Connecting-IP": "198.51.100.1",
    }
    assert resolve_client_identity(headers) == "203.0.113.7"


def test_real_ip_used_without_forwarded_for():
    headers = {"x-real-ip": " 10.0.0.9 ", "cf-connecting-ip": "198.51.100.1"}
    assert resolve_client_identity(headers) == "10.0.0.9"


def test_cdn_header_is_last_resort():
    assert resolve_client_identity({"CF-Connecting-IP": "198.51.100.1"}) == "198.51.100.1"


def test_empty_values_fall_through():
    headers = {"X-Forwarded-For": " , 10.0.0.1", "X-Real-IP": "", "CF-Connecting-IP": "198.51.100.1"}
    assert resolve_client_identity(headers) == "198.51.100.1"


def test_missing_headers_pool_under_unknown():
    assert resolve_client_identity({"User-Agent": "curl/8.0"}) == UNKNOWN_IDENTITY
    assert UNKNOWN_IDENTITY == "unknown"
