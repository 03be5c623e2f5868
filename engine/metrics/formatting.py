"""Human-readable metric strings for benchmark reports."""

import math
from typing import Any

from engine.metrics.collector import MetricsSnapshot

NA = "N/A"
BYTE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _trim(value: float, max_decimals: int = 2) -> str:
    text = f"{value:,.{max_decimals}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _format_long(ms: float) -> str:
    """Compact h/m/s form for long durations."""
    total_seconds = ms / 1000
    hours = int(total_seconds // 3600)
    minutes = int((total_seconds % 3600) // 60)
    seconds = total_seconds - hours * 3600 - minutes * 60
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if hours or minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{_round_half_up(seconds)}s")
    return " ".join(parts)


def format_number(num: Any, decimals: int = 0) -> str:
    """Format a number with thousands separators."""
    if not _is_number(num):
        return NA
    return f"{num:,.{decimals}f}"


def format_rps(rps: Any) -> str:
    """Requests per second, two decimals."""
    return format_number(rps, 2)


def format_bytes(num_bytes: Any) -> str:
    """1024-based size with one decimal, e.g. '1.5 KB'."""
    if not _is_number(num_bytes):
        return NA
    if num_bytes <= 0:
        return "0 B"
    i = min(int(math.floor(math.log(num_bytes) / math.log(1024))), len(BYTE_UNITS) - 1)
    value = round(num_bytes / math.pow(1024, i), 1)
    return f"{_trim(value, 1)} {BYTE_UNITS[i]}"


def format_cpu_time(micros: Any) -> str:
    """CPU time from microseconds to the most readable unit."""
    if not _is_number(micros):
        return NA
    if micros < 1000:
        return f"{micros} μs"
    if micros < 1_000_000:
        return f"{_trim(micros / 1000)} ms"
    if micros < 60_000_000:
        return f"{_trim(micros / 1_000_000)} s"
    return _format_long(micros / 1000)


def format_duration(ms: Any) -> str:
    """Wall-clock duration from milliseconds."""
    if not _is_number(ms):
        return NA
    if ms < 1000:
        return f"{_round_half_up(ms)}ms"
    if ms < 10_000:
        return f"{ms / 1000:.2f}s ({_round_half_up(ms)}ms)"
    if ms < 60_000:
        return f"{ms / 1000:.2f}s"
    return _format_long(ms)


def format_status_codes(status_codes: Any) -> str:
    """Status code histogram as '200: 9, 404: 1'."""
    if not isinstance(status_codes, dict):
        return NA
    return ", ".join(f"{code}: {count}" for code, count in status_codes.items())


def percent_diff(a: float, b: float) -> float | None:
    """How much smaller a is than b, in percent of b."""
    if not b:
        return None
    return ((b - a) / b) * 100


def _signed_percent(value: float | None, better: str, worse: str, context: str) -> str:
    if value is None:
        return NA
    rounded = _round_half_up(value)
    word = better if rounded >= 0 else worse
    return f"**~{abs(rounded)}% {word} {context}**"


def _percent_less(value: float | None, context: str) -> str:
    return _signed_percent(value, "less", "more", context)


def _percent_faster(value: float | None, context: str) -> str:
    return _signed_percent(value, "faster", "slower", context)


def _times_faster(value: float) -> str:
    return f"**~{value:.1f}x faster**"


def format_phase_metrics(snapshot: MetricsSnapshot) -> dict[str, dict[str, str]]:
    """All displayable strings for one phase."""
    return {
        "timing": {"duration": format_duration(snapshot.timing.duration_ms)},
        "cpu": {
            "user": format_cpu_time(snapshot.cpu.user_micros),
            "system": format_cpu_time(snapshot.cpu.system_micros),
            "total": format_cpu_time(snapshot.cpu.total_micros),
        },
        "memory": {"peak_rss": format_bytes(snapshot.memory.peak_rss)},
        "requests": {
            "total": format_number(snapshot.requests.total),
            "avg_request_time": format_duration(snapshot.requests.avg_request_time_ms),
            "rps": format_rps(snapshot.requests.rps),
            "total_bytes_downloaded": format_bytes(snapshot.requests.total_bytes_downloaded),
            "status_codes": format_status_codes(snapshot.requests.status_codes),
        },
        "errors": {"total": format_number(snapshot.error_count)},
        "disk": {"total_bytes": format_bytes(snapshot.disk_bytes)},
        "concurrency": {"max": format_number(snapshot.max_concurrency)},
    }


def compare_phase_metrics(langshake: MetricsSnapshot, traditional: MetricsSnapshot) -> dict[str, str]:
    """
    Savings of the LangShake phase relative to the Traditional phase.

    Args:
        langshake: Snapshot of the manifest-driven phase
        traditional: Snapshot of the HTML extraction phase

    Returns:
        Dict of display strings keyed by metric
    """
    l_ms, t_ms = langshake.timing.duration_ms, traditional.timing.duration_ms
    duration = _times_faster(t_ms / l_ms) if l_ms and t_ms else NA

    cpu = NA
    if traditional.cpu.total_micros:
        cpu = _percent_less(
            percent_diff(langshake.cpu.total_micros, traditional.cpu.total_micros), "CPU used"
        )

    memory = NA
    if traditional.memory.peak_rss:
        memory = _percent_less(
            percent_diff(langshake.memory.peak_rss, traditional.memory.peak_rss), "RAM used"
        )

    data = NA
    if traditional.requests.total_bytes_downloaded:
        data = _percent_less(
            percent_diff(
                langshake.requests.total_bytes_downloaded,
                traditional.requests.total_bytes_downloaded,
            ),
            "data",
        )

    avg_request_time = NA
    l_avg, t_avg = langshake.requests.avg_request_time_ms, traditional.requests.avg_request_time_ms
    if t_avg and l_avg is not None:
        avg_request_time = _percent_faster(percent_diff(l_avg, t_avg), "per request")

    l_rps, t_rps = langshake.requests.rps, traditional.requests.rps
    rps = _times_faster(l_rps / t_rps) if l_rps and t_rps else NA

    delta = langshake.requests.total - traditional.requests.total
    if abs(delta) <= 1:
        requests = "Similar"
    elif delta > 0:
        requests = f"~{delta} more"
    else:
        requests = f"~{-delta} less"

    return {
        "duration": duration,
        "cpu": cpu,
        "memory": memory,
        "bytes": data,
        "avg_request_time": avg_request_time,
        "rps": rps,
        "requests": requests,
    }
