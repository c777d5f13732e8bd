#!/usr/bin/env python3
"""HRMS Health Check — verify a running API is operational.

Checks:
  1. API responds on /api/health (HTTP 200, status "healthy")
  2. Protected routes reject anonymous requests with problem+json 401
  3. SSL certificate valid and not expiring soon (https targets only)

Usage:
    python scripts/healthcheck.py                               # check http://localhost:8000
    python scripts/healthcheck.py --url https://hr.example.com
    python scripts/healthcheck.py --json                        # machine-readable output

Exit codes:
    0 = all checks passed
    1 = one or more checks failed
    2 = critical failure (cannot reach target at all)
"""

from __future__ import annotations

import argparse
import json
import socket
import ssl
import sys
from datetime import datetime, timezone
from urllib.parse import urlparse

import httpx

# ══════════════════════════════════════════════════════════════════════
# Check result model
# ══════════════════════════════════════════════════════════════════════


class CheckResult:
    """Single health check result."""

    def __init__(self, name: str, passed: bool, message: str,
                 detail: str = "", severity: str = "error"):
        self.name = name
        self.passed = passed
        self.message = message
        self.detail = detail
        self.severity = severity  # "error", "warning", "info"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "passed": self.passed,
            "message": self.message,
            "detail": self.detail,
            "severity": self.severity,
        }

    def __str__(self) -> str:
        icon = "✅" if self.passed else ("⚠️" if self.severity == "warning" else "❌")
        s = f"{icon} {self.name}: {self.message}"
        if self.detail:
            s += f"\n     {self.detail}"
        return s


class Unreachable(Exception):
    """The target could not be contacted at all."""


# ══════════════════════════════════════════════════════════════════════
# Health checks
# ══════════════════════════════════════════════════════════════════════


def check_api_health(client: httpx.Client) -> CheckResult:
    """GET /api/health must answer 200 with status "healthy"."""
    try:
        resp = client.get("/api/health")
    except httpx.ConnectError as e:
        raise Unreachable(str(e)) from e
    except httpx.HTTPError as e:
        return CheckResult("API", False, f"Request failed: {type(e).__name__}", str(e))

    if resp.status_code != 200:
        return CheckResult("API", False, f"HTTP {resp.status_code} (expected 200)")

    try:
        body = resp.json()
    except ValueError:
        return CheckResult("API", False, "Response is not JSON", resp.text[:200])

    if body.get("status") != "healthy":
        return CheckResult(
            "API", False,
            f"Status: {body.get('status', 'missing')} (expected 'healthy')",
            f"Response: {json.dumps(body)}",
        )
    return CheckResult(
        "API", True,
        f"Healthy (v{body.get('version', 'unknown')}, {body.get('environment', 'unknown')})",
    )


def check_auth_guard(client: httpx.Client) -> CheckResult:
    """An anonymous request to a protected route must be rejected with 401."""
    try:
        resp = client.get("/api/dashboard/employee")
    except httpx.HTTPError as e:
        return CheckResult("Auth Guard", False, f"Request failed: {type(e).__name__}", str(e))

    if resp.status_code != 401:
        return CheckResult(
            "Auth Guard", False,
            f"HTTP {resp.status_code} (expected 401)",
            "Protected routes are reachable without a token.",
        )
    content_type = resp.headers.get("content-type", "")
    if not content_type.startswith("application/problem+json"):
        return CheckResult(
            "Auth Guard", True,
            "Rejected, but not as problem+json",
            f"Content-Type: {content_type}",
            severity="warning",
        )
    return CheckResult("Auth Guard", True, "Anonymous requests rejected (401 problem+json)")


def check_ssl_certificate(hostname: str, port: int = 443,
                          warn_days: int = 14) -> CheckResult:
    """Check SSL certificate validity and expiry."""
    try:
        ctx = ssl.create_default_context()
        with socket.create_connection((hostname, port), timeout=10) as sock:
            with ctx.wrap_socket(sock, server_hostname=hostname) as ssock:
                cert = ssock.getpeercert()
    except ssl.SSLCertVerificationError as e:
        return CheckResult("SSL Certificate", False, "Certificate verification failed", str(e))
    except (socket.timeout, ConnectionRefusedError) as e:
        return CheckResult(
            "SSL Certificate", False, f"Cannot connect to {hostname}:{port}", str(e),
        )

    not_after = cert.get("notAfter", "")
    if not not_after:
        return CheckResult("SSL Certificate", False, "Cannot read certificate expiry")

    # Format: 'Mar 15 12:00:00 2025 GMT'
    expiry = datetime.strptime(not_after, "%b %d %H:%M:%S %Y %Z").replace(tzinfo=timezone.utc)
    days_left = (expiry - datetime.now(timezone.utc)).days
    issuer = dict(x[0] for x in cert.get("issuer", []))
    detail = f"Issuer: {issuer.get('commonName', 'unknown')}, Expires: {not_after}"

    if days_left < 0:
        return CheckResult("SSL Certificate", False, f"EXPIRED {abs(days_left)} days ago!", detail)
    if days_left < warn_days:
        return CheckResult(
            "SSL Certificate", True, f"Expiring soon: {days_left} days left", detail,
            severity="warning",
        )
    return CheckResult("SSL Certificate", True, f"Valid ({days_left} days until expiry)", detail)


# ══════════════════════════════════════════════════════════════════════
# Runner
# ══════════════════════════════════════════════════════════════════════


def run_healthcheck(url: str, timeout: float = 10.0) -> list[CheckResult]:
    """Run all health checks and return results; raises Unreachable."""
    results: list[CheckResult] = []
    parsed = urlparse(url)

    with httpx.Client(base_url=url.rstrip("/"), timeout=timeout) as client:
        results.append(check_api_health(client))
        results.append(check_auth_guard(client))

    if parsed.scheme == "https":
        results.append(check_ssl_certificate(parsed.hostname))
    else:
        results.append(CheckResult(
            "SSL Certificate", True, "Skipped (not HTTPS)", severity="info",
        ))
    return results


def main():
    parser = argparse.ArgumentParser(description="HRMS Health Check")
    parser.add_argument("--url", type=str, default="http://localhost:8000",
                        help="Base URL to check (default: http://localhost:8000)")
    parser.add_argument("--json", dest="output_json", action="store_true",
                        help="Output results as JSON")
    parser.add_argument("--timeout", type=float, default=10.0,
                        help="HTTP timeout in seconds (default: 10)")
    args = parser.parse_args()

    try:
        results = run_healthcheck(args.url, timeout=args.timeout)
    except Unreachable as e:
        print(f"❌ Cannot reach {args.url}: {e}", file=sys.stderr)
        sys.exit(2)

    if args.output_json:
        print(json.dumps({
            "target": args.url,
            "checks": [r.to_dict() for r in results],
            "all_passed": all(r.passed for r in results),
        }, indent=2))
    else:
        for result in results:
            print(result)
        failed = sum(1 for r in results if not r.passed)
        print(f"\n{'=' * 60}")
        if failed == 0:
            print(f"  ✅ ALL {len(results)} CHECKS PASSED")
        else:
            print(f"  ❌ {failed}/{len(results)} CHECKS FAILED")
        print(f"{'=' * 60}")

    sys.exit(1 if any(not r.passed for r in results) else 0)


if __name__ == "__main__":
    main()
