from __future__ import annotations


def safe_div(n: float, d: float) -> float:
    return float(n) / float(d) if d else 0.0


def pct(n: float, d: float) -> float:
    """n as a percentage of d; 0 when d is zero."""
    return safe_div(n, d) * 100.0
