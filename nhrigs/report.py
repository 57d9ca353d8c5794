"""Map a rigs2 API response onto the view model rendered by the status page."""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, List, Optional

DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S"
DISPLAY_OFFSET_MINUTES = 9 * 60  # JST
DISABLED = "DISABLED"


def local_timezone_offset() -> int:
    """Host offset in minutes as UTC minus local time (JS getTimezoneOffset)."""

    offset = datetime.now().astimezone().utcoffset()
    return -int(offset.total_seconds() // 60)


def parse_epoch_ms(value: Any) -> Optional[int]:
    """
    Accept epoch milliseconds (int or digit string) or an ISO-8601 string.
    ISO strings without an offset are taken as UTC.
    Returns None for empty or unparseable input.
    """

    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    text = str(value).strip()
    if text.lstrip("-").isdigit():
        return int(text)
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def shift_payout_timestamp(
    value: Any,
    local_offset_minutes: Optional[int] = None,
    tz: Optional[tzinfo] = None,
) -> str:
    """
    Display a payout timestamp as JST the way the original page did:
    add (host offset + 9h) to the instant, then render it in the host zone.
    Only correct when the rendering zone matches local_offset_minutes.
    """

    ms = parse_epoch_ms(value)
    if ms is None:
        return ""
    if local_offset_minutes is None:
        local_offset_minutes = local_timezone_offset()
    shifted = ms + (local_offset_minutes + DISPLAY_OFFSET_MINUTES) * 60 * 1000
    try:
        moment = datetime.fromtimestamp(shifted / 1000, tz=tz)
    except (OverflowError, OSError, ValueError):
        return ""
    return moment.strftime(DISPLAY_FORMAT)


def format_number(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_speed(speeds: Optional[List[dict]]) -> str:
    """First speed entry as '<value> <suffix>/s', or '0' when there is none."""

    if not speeds:
        return "0"
    first = speeds[0] or {}
    return f"{format_number(first.get('speed', 0))} {first.get('displaySuffix', '')}/s"


def _description(obj: Any) -> str:
    if isinstance(obj, dict):
        return obj.get("description") or ""
    return ""


def build_device(device: dict) -> Dict[str, Any]:
    status = device.get("status") or {}
    view: Dict[str, Any] = {
        "id": device.get("id", ""),
        "name": device.get("name", ""),
        "type": _description(device.get("deviceType")),
        "active": status.get("enumName") != DISABLED,
    }
    if view["active"]:
        view["status"] = _description(status)
        view["speed"] = format_speed(device.get("speeds"))
        view["power"] = f"{format_number(device.get('powerUsage', 0))}W"
        view["intensity"] = _description(device.get("intensity"))
    return view


def build_rig(rig: dict) -> Dict[str, Any]:
    stats = rig.get("stats") or []
    algorithm = _description((stats[0] or {}).get("algorithm")) if stats else ""
    return {
        "name": rig.get("name", ""),
        "id": rig.get("rigId", ""),
        "miner_status": rig.get("minerStatus", ""),
        "cpu_exists": bool(rig.get("cpuExists", False)),
        "cpu_mining_enabled": bool(rig.get("cpuMiningEnabled", False)),
        "software_versions": rig.get("softwareVersions", ""),
        "unpaid_amount": rig.get("unpaidAmount", ""),
        "algorithm": algorithm,
        "devices": [build_device(d) for d in rig.get("devices") or []],
    }


def build_report(
    rigs: dict,
    local_offset_minutes: Optional[int] = None,
    tz: Optional[tzinfo] = None,
) -> Dict[str, Any]:
    """Build the status-page view model. The input mapping is not modified."""

    if local_offset_minutes is None:
        local_offset_minutes = local_timezone_offset()
    return {
        "last_payout": shift_payout_timestamp(rigs.get("lastPayoutTimestamp"), local_offset_minutes, tz),
        "next_payout": shift_payout_timestamp(rigs.get("nextPayoutTimestamp"), local_offset_minutes, tz),
        "total_rigs": rigs.get("totalRigs", 0),
        "total_devices": rigs.get("totalDevices", 0),
        "btc_address": rigs.get("btcAddress", ""),
        "unpaid_amount": rigs.get("unpaidAmount", ""),
        "rigs": [build_rig(r) for r in rigs.get("miningRigs") or []],
    }


__all__ = [
    "build_device",
    "build_report",
    "build_rig",
    "format_speed",
    "local_timezone_offset",
    "parse_epoch_ms",
    "shift_payout_timestamp",
]
