# twofactor/operations/time_sync.py

# Clock drift check against NTP servers.
# TOTP verification tolerates skew of at most window * 30 seconds between the
# authenticator and this server, so server drift eats directly into that budget.

import logging
from datetime import datetime, timezone
from typing import Dict, List

import ntplib

from twofactor.otp.generator import PERIOD_SECONDS

logger = logging.getLogger(__name__)

NTP_SERVERS = [
    "pool.ntp.org",
    "time.google.com",
    "time.windows.com",
    "time.apple.com"
]

# Maximum acceptable time offset in seconds
MAX_ALLOWED_OFFSET = 0.5


def check_time_sync(servers=None, max_offset=MAX_ALLOWED_OFFSET, client=None) -> Dict:
    """
    Check time offset from multiple NTP servers.
    Returns:
        A dictionary containing offsets, average drift, and overall health.
    """
    client = client or ntplib.NTPClient()
    results: List[Dict] = []
    total_offset = 0
    valid_servers = 0

    for server in servers or NTP_SERVERS:
        try:
            response = client.request(server, version=3)
        except (ntplib.NTPException, OSError) as e:
            logger.warning("NTP query to %s failed: %s", server, e)
            results.append({
                "server": server,
                "error": str(e),
                "status": "failed"
            })
            continue

        offset = response.offset
        total_offset += offset
        valid_servers += 1
        results.append({
            "server": server,
            "offset_s": round(offset, 6),
            "time": datetime.fromtimestamp(response.tx_time, tz=timezone.utc).isoformat(),
            "status": "ok" if abs(offset) <= max_offset else "drifted"
        })

    avg_offset = round(total_offset / valid_servers, 6) if valid_servers else None
    overall_ok = avg_offset is not None and abs(avg_offset) <= max_offset

    return {
        "overall_ok": overall_ok,
        "average_offset_s": avg_offset,
        "max_allowed_offset_s": max_offset,
        "results": results
    }


def skew_budget(average_offset_s, window) -> Dict:
    """How much of the verification window the server's own drift consumes."""
    tolerance = window * PERIOD_SECONDS
    if average_offset_s is None:
        return {"tolerance_s": tolerance, "remaining_s": None, "within_window": None}
    remaining = tolerance - abs(average_offset_s)
    return {
        "tolerance_s": tolerance,
        "remaining_s": round(remaining, 6),
        "within_window": remaining > 0,
    }
