"""End-to-end check of the quarterly refresh.

Usage: python -m scripts.e2e_refresh

Requires:
  - Backend running (uvicorn riskboard.main:app or `riskboard serve`)
  - FRED_API_KEY, BLS_API_KEY, TE_USER and TE_KEY configured on the server
  - E2E_TOKEN set if the server has REFRESH_TOKEN configured

Steps:
  1. POST /api/refresh, verify six rows for the current quarter
  2. GET /api/snapshot?region=Global, verify the period is stored once
  3. POST /api/refresh again, verify the Global series did not grow
  4. Print the rows table
"""
from __future__ import annotations

import os
import sys

import httpx

BASE = os.environ.get("E2E_BASE_URL", "http://localhost:8000")
TOKEN = os.environ.get("E2E_TOKEN", "")

REGIONS = ["USA", "Europe", "China", "India", "Latin America", "Global"]


def headers():
    return {"x-refresh-token": TOKEN} if TOKEN else {}


def main():
    client = httpx.Client(base_url=BASE, timeout=300)

    # 1. Refresh
    print("=== Step 1: POST /api/refresh ===")
    r = client.post("/api/refresh", headers=headers())
    if r.status_code != 200:
        print(f"  Refresh failed: {r.status_code} {r.text}")
        sys.exit(1)
    data = r.json()
    period = data["period"]
    rows = data["updated"]
    assert [row["region"] for row in rows] == REGIONS, f"Unexpected regions: {rows}"
    for w in data["warnings"]:
        print(f"  WARN {w}")
    print(f"  Refreshed {period}: {len(rows)} rows")

    # 2. Snapshot
    print("\n=== Step 2: GET /api/snapshot?region=Global ===")
    r = client.get("/api/snapshot", params={"region": "Global"})
    assert r.status_code == 200, f"Snapshot failed: {r.status_code}"
    series = r.json()["rows"]
    periods = [row["period"] for row in series]
    assert periods.count(period) == 1, f"{period} stored {periods.count(period)} times"
    assert periods == sorted(periods), "Snapshot not ascending by period"

    # 3. Idempotence
    print("\n=== Step 3: Refresh again ===")
    r = client.post("/api/refresh", headers=headers())
    assert r.status_code == 200, f"Second refresh failed: {r.status_code}"
    r = client.get("/api/snapshot", params={"region": "Global"})
    assert len(r.json()["rows"]) == len(series), "Second refresh added rows"
    print("  Row count unchanged")

    # 4. Table
    print(f"\n  {'Region':<15} {'hyOAS':>8} {'FCI':>7} {'PMI':>6} {'DXY':>8} {'UR':>5} {'Score':>6}  Signal")
    print(f"  {'-'*15} {'-'*8} {'-'*7} {'-'*6} {'-'*8} {'-'*5} {'-'*6}  {'-'*7}")
    for row in rows:
        assert 0 <= row["riskScore"] <= 1, f"{row['region']} riskScore={row['riskScore']} out of range"
        print(
            f"  {row['region']:<15} {row['hyOAS']:>8.1f} {row['fci']:>7.2f} {row['pmi']:>6.1f} "
            f"{row['dxy']:>8.2f} {row['unemployment']:>5.1f} {row['riskScore']:>6.3f}  {row['signal']}"
        )

    print("\n=== E2E PASSED ===")


if __name__ == "__main__":
    main()
