"""Lightweight profiling: wall time + RSS memory tracking per pipeline stage.

Usage:
    from hemicord.profiling import step

    with step("Classify coverage"):
        mode = classify(cord, min_slices)

    # Nesting works:
    with step("Atlas split"):
        with step("Sum left tracts"):
            ...

Output format:
    [Classify coverage] 0.1s | RSS 210 MB (+2 MB) | peak 240 MB
      [Sum left tracts] 0.8s | RSS 390 MB (+120 MB) | peak 410 MB

An exception raised inside a step is tagged with the innermost step name
(its ``stage`` attribute) before it propagates, so the top-level handler
can say which stage failed.
"""

import resource
import threading
import time
from contextlib import contextmanager

_depth = threading.local()


def _get_depth():
    """Get current nesting depth (thread-local)."""
    return getattr(_depth, "value", 0)


def _set_depth(d):
    _depth.value = d


def _get_rss_mb():
    """Current RSS in MB via /proc/self/status (Linux) or getrusage fallback."""
    try:
        with open("/proc/self/status") as f:
            for line in f:
                if line.startswith("VmRSS:"):
                    return int(line.split()[1]) / 1024  # kB -> MB
    except (OSError, ValueError):
        pass
    # ru_maxrss is peak, not current
    return resource.getrusage(resource.RUSAGE_SELF).ru_maxrss / 1024


def _get_peak_mb():
    """Peak RSS in MB (lifetime high-water mark)."""
    return resource.getrusage(resource.RUSAGE_SELF).ru_maxrss / 1024


def _fmt_mb(mb):
    if mb >= 1024:
        return f"{mb / 1024:.2f} GB"
    return f"{mb:.0f} MB"


def _fmt_delta(delta_mb):
    sign = "+" if delta_mb >= 0 else ""
    if abs(delta_mb) >= 1024:
        return f"{sign}{delta_mb / 1024:.2f} GB"
    return f"{sign}{delta_mb:.0f} MB"


@contextmanager
def step(name):
    """Track wall time and RSS for a named stage; tag escaping errors.

    Prints a summary line on exit (also on failure, marked FAILED).
    """
    depth = _get_depth()
    _set_depth(depth + 1)

    rss_start = _get_rss_mb()
    t_start = time.monotonic()
    failed = False

    try:
        yield
    except Exception as e:
        failed = True
        if getattr(e, "stage", None) is None:
            e.stage = name
        raise
    finally:
        elapsed = time.monotonic() - t_start
        rss_end = _get_rss_mb()
        peak = _get_peak_mb()
        delta = rss_end - rss_start

        indent = "  " * depth
        status = " FAILED" if failed else ""
        print(f"{indent}[{name}]{status} {elapsed:.1f}s"
              f" | RSS {_fmt_mb(rss_end)} ({_fmt_delta(delta)})"
              f" | peak {_fmt_mb(peak)}")

        _set_depth(depth)
