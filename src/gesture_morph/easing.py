"""Easing curves addressed by GSAP-style names.

Every curve maps progress p in [0, 1] to eased progress with f(0) = 0 and
f(1) = 1. Names follow the tween library the scene was designed with:
``power2.inOut``, ``sine.inOut``, ``elastic.out(1, 0.75)`` and so on.
"""

from __future__ import annotations

import math
import re
from typing import Callable

from gesture_morph.config import ConfigurationError

Easing = Callable[[float], float]

_CALL_RE = re.compile(r"^\s*([a-zA-Z0-9]+)\.(in|out|inOut)\s*(?:\((.*)\))?\s*$")


def linear(p: float) -> float:
    return p


def _power_in(power: int) -> Easing:
    def ease(p: float) -> float:
        return p ** power
    return ease


def _power_out(power: int) -> Easing:
    def ease(p: float) -> float:
        return 1.0 - (1.0 - p) ** power
    return ease


def _power_in_out(power: int) -> Easing:
    def ease(p: float) -> float:
        if p < 0.5:
            return (2.0 * p) ** power / 2.0
        return 1.0 - (2.0 * (1.0 - p)) ** power / 2.0
    return ease


def sine_in(p: float) -> float:
    return 1.0 - math.cos(p * math.pi / 2)


def sine_out(p: float) -> float:
    return math.sin(p * math.pi / 2)


def sine_in_out(p: float) -> float:
    return -(math.cos(math.pi * p) - 1.0) / 2.0


def elastic_out(amplitude: float = 1.0, period: float = 0.3) -> Easing:
    """Overshooting spring settle; amplitude < 1 is clamped to 1 as GSAP does."""
    amp = max(amplitude, 1.0)
    if period <= 0:
        raise ConfigurationError(f"elastic period must be > 0, got {period}")
    shift = period / (2 * math.pi) * math.asin(1.0 / amp)
    omega = 2 * math.pi / period

    def ease(p: float) -> float:
        if p <= 0.0:
            return 0.0
        if p >= 1.0:
            return 1.0
        return amp * 2.0 ** (-10.0 * p) * math.sin((p - shift) * omega) + 1.0
    return ease


def back_out(overshoot: float = 1.70158) -> Easing:
    def ease(p: float) -> float:
        q = p - 1.0
        return q * q * ((overshoot + 1.0) * q + overshoot) + 1.0
    return ease


EASINGS: dict[str, Easing] = {
    "linear": linear,
    "none": linear,
    "sine.in": sine_in,
    "sine.out": sine_out,
    "sine.inOut": sine_in_out,
    "elastic.out": elastic_out(),
    "back.out": back_out(),
}

# GSAP: power1 = quad, power2 = cubic, power3 = quart, power4 = quint
for _n in range(1, 5):
    EASINGS[f"power{_n}.in"] = _power_in(_n + 1)
    EASINGS[f"power{_n}.out"] = _power_out(_n + 1)
    EASINGS[f"power{_n}.inOut"] = _power_in_out(_n + 1)

_FACTORIES: dict[str, Callable[..., Easing]] = {
    "elastic.out": elastic_out,
    "back.out": back_out,
}


def resolve_easing(spec: str | Easing) -> Easing:
    """Turn a name such as ``"elastic.out(1, 0.75)"`` into a curve.

    Callables pass through unchanged.

    Raises:
        ConfigurationError: unknown name or unparsable arguments.
    """
    if callable(spec):
        return spec
    if not isinstance(spec, str):
        raise ConfigurationError(f"easing must be a name or callable, got {spec!r}")

    if spec in EASINGS:
        return EASINGS[spec]

    match = _CALL_RE.match(spec)
    if match is None:
        raise ConfigurationError(f"Unknown easing: {spec!r}")

    name = f"{match.group(1)}.{match.group(2)}"
    raw_args = match.group(3)
    if raw_args is None or not raw_args.strip():
        if name in EASINGS:
            return EASINGS[name]
        raise ConfigurationError(f"Unknown easing: {spec!r}")

    factory = _FACTORIES.get(name)
    if factory is None:
        raise ConfigurationError(f"Easing {name!r} takes no arguments")
    try:
        args = [float(a) for a in raw_args.split(",")]
        return factory(*args)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Bad arguments for easing {spec!r}: {e}") from e
