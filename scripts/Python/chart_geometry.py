"""
Chart geometry shared by the interactive and the static renderers.

Domains are niced and ticked with the usual 1-2-5 progression, histograms are
binned on those ticks and overlapping points are spread around a small circle,
so both renditions of a chart agree on every coordinate.
"""
import math
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Hashable, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

E10 = math.sqrt(50)
E5 = math.sqrt(10)
E2 = math.sqrt(2)

SI_PREFIXES = {
    -24: "y", -21: "z", -18: "a", -15: "f", -12: "p", -9: "n", -6: "µ", -3: "m",
    0: "", 3: "k", 6: "M", 9: "G", 12: "T", 15: "P", 18: "E", 21: "Z", 24: "Y",
}


def _finite(values: Iterable[Any]) -> List[float]:
    out = []
    for v in values:
        if v is None or isinstance(v, bool):
            continue
        try:
            number = float(v)
        except (TypeError, ValueError):
            continue
        if math.isfinite(number):
            out.append(number)
    return out


def _round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


def _tick_spec(start: float, stop: float, count: float) -> Tuple[int, int, float]:
    step = (stop - start) / max(0, count)
    power = math.floor(math.log10(step))
    error = step / 10 ** power
    factor = 10 if error >= E10 else 5 if error >= E5 else 2 if error >= E2 else 1
    if power < 0:
        inc = 10 ** -power / factor
        i1 = _round_half_up(start * inc)
        i2 = _round_half_up(stop * inc)
        if i1 / inc < start:
            i1 += 1
        if i2 / inc > stop:
            i2 -= 1
        inc = -inc
    else:
        inc = 10 ** power * factor
        i1 = _round_half_up(start / inc)
        i2 = _round_half_up(stop / inc)
        if i1 * inc < start:
            i1 += 1
        if i2 * inc > stop:
            i2 -= 1
    if i2 < i1 and 0.5 <= count < 2:
        return _tick_spec(start, stop, count * 2)
    return i1, i2, inc


def tick_increment(start: float, stop: float, count: float) -> float:
    """
    Tick step for ``count`` ticks over [start, stop].

    Negative results encode the reciprocal of a fractional step (-10 means 0.1),
    which keeps the arithmetic exact for decimal steps.
    """
    if not (stop > start) or count <= 0:
        return 0
    return _tick_spec(start, stop, count)[2]


def ticks(start: float, stop: float, count: float) -> List[float]:
    """Roughly ``count`` evenly spaced, round tick values inside [start, stop]."""
    if count <= 0:
        return []
    if start == stop:
        return [start]
    reverse = stop < start
    lo, hi = (stop, start) if reverse else (start, stop)
    i1, i2, inc = _tick_spec(lo, hi, count)
    if i2 < i1:
        return []
    if inc < 0:
        values = [(i1 + i) / -inc for i in range(i2 - i1 + 1)]
    else:
        values = [(i1 + i) * inc for i in range(i2 - i1 + 1)]
    return values[::-1] if reverse else values


class LinearScale:
    """Linear mapping from a data domain onto a pixel range."""

    def __init__(self, domain: Sequence[float], range: Sequence[float] = (0, 1)):
        self.domain = [float(domain[0]), float(domain[1])]
        self.range = [float(range[0]), float(range[1])]

    def __call__(self, value: float) -> float:
        d0, d1 = self.domain
        r0, r1 = self.range
        if d1 == d0:
            return (r0 + r1) / 2
        return r0 + (value - d0) / (d1 - d0) * (r1 - r0)

    def invert(self, pixel: float) -> float:
        d0, d1 = self.domain
        r0, r1 = self.range
        if r1 == r0:
            return (d0 + d1) / 2
        return d0 + (pixel - r0) / (r1 - r0) * (d1 - d0)

    def nice(self, count: int = 10) -> "LinearScale":
        start, stop = self.domain
        reverse = stop < start
        if reverse:
            start, stop = stop, start

        prestep = None
        for _ in range(10):
            step = tick_increment(start, stop, count)
            if step == prestep:
                break
            if step > 0:
                start = math.floor(start / step) * step
                stop = math.ceil(stop / step) * step
            elif step < 0:
                start = math.ceil(start * step) / step
                stop = math.floor(stop * step) / step
            else:
                break
            prestep = step

        self.domain = [stop, start] if reverse else [start, stop]
        return self

    def ticks(self, count: int = 10) -> List[float]:
        return ticks(self.domain[0], self.domain[1], count)


class LogScale:
    """Base-10 logarithmic mapping; the domain must be strictly positive."""

    def __init__(self, domain: Sequence[float], range: Sequence[float] = (0, 1)):
        if min(domain) <= 0:
            raise ValueError(f"Log scale domain must be positive, got {list(domain)}")
        self.domain = [float(domain[0]), float(domain[1])]
        self.range = [float(range[0]), float(range[1])]

    def _linear(self) -> LinearScale:
        return LinearScale([math.log10(d) for d in self.domain], self.range)

    def __call__(self, value: float) -> float:
        return self._linear()(math.log10(value))

    def invert(self, pixel: float) -> float:
        return 10 ** self._linear().invert(pixel)

    def nice(self) -> "LogScale":
        lo, hi = sorted(self.domain)
        lo = 10 ** math.floor(math.log10(lo))
        hi = 10 ** math.ceil(math.log10(hi))
        self.domain = [lo, hi] if self.domain[0] <= self.domain[1] else [hi, lo]
        return self

    def ticks(self, count: int = 10) -> List[float]:
        """
        Tick values on the log domain.

        When the domain spans fewer decades than ``count``, every multiple
        1..9 of each power of ten inside the domain is a tick (falling back to
        linear ticks if that gives fewer than count / 2). Wider domains get
        powers of ten only, ticked like a linear scale over the exponents, so
        decades can be skipped.
        """
        lo, hi = sorted(self.domain)
        i, j = math.log10(lo), math.log10(hi)
        if j - i < count:
            out = []
            for power in range(math.floor(i), math.ceil(j) + 1):
                for k in range(1, 10):
                    value = k / 10 ** -power if power < 0 else float(k * 10 ** power)
                    if value < lo:
                        continue
                    if value > hi:
                        break
                    out.append(value)
            if len(out) * 2 < count:
                out = ticks(lo, hi, count)
        else:
            out = [10.0 ** p for p in ticks(i, j, min(j - i, count))]
        return out[::-1] if self.domain[0] > self.domain[1] else out

    @property
    def log_range(self) -> List[float]:
        """Domain in log10 units, which is how plotly expects log axis ranges."""
        return [math.log10(d) for d in self.domain]


def padded_extent(values: Iterable[Any],
                  fraction: Optional[float] = None,
                  absolute: Optional[float] = None) -> Optional[Tuple[float, float]]:
    """
    Extent of the finite values, widened on both sides.

    Args:
        values: Values to measure
        fraction: Pad by this share of the span (a zero span counts as 1)
        absolute: Pad by a fixed amount instead

    Returns:
        (low, high), or None when there are no finite values
    """
    clean = _finite(values)
    if not clean:
        return None
    lo, hi = min(clean), max(clean)
    if absolute is not None:
        pad = absolute
    elif fraction is not None:
        pad = fraction * ((hi - lo) or 1)
    else:
        pad = 0.0
    return lo - pad, hi + pad


def grid_tick_values(scale, count: int = 4,
                     reference: Optional[float] = None) -> List[float]:
    """Grid lines at the scale ticks minus the top one, plus an optional reference."""
    values = list(scale.ticks(count))[:-1]
    if reference is not None:
        lo, hi = sorted(scale.domain)
        if lo <= reference <= hi and reference not in values:
            values = sorted(values + [reference])
    return values


@dataclass
class Bin:
    x0: float
    x1: float
    count: int

    @property
    def midpoint(self) -> float:
        return (self.x0 + self.x1) / 2

    @property
    def width(self) -> float:
        return self.x1 - self.x0


def histogram_bins(values: Iterable[Any], thresholds: int = 22,
                   domain: Optional[Sequence[float]] = None) -> List[Bin]:
    """
    Bin finite values on nice thresholds.

    Args:
        values: Values to bin; non-finite entries are ignored
        thresholds: Approximate number of thresholds
        domain: Binning domain, defaults to the niced extent of the values

    Returns:
        Bins covering the domain; values outside it are not counted and a value
        equal to a threshold lands in the bin that starts there
    """
    clean = _finite(values)
    if not clean:
        return []
    if domain is None:
        domain = LinearScale([min(clean), max(clean)]).nice().domain
    lo, hi = float(domain[0]), float(domain[1])

    cuts = ticks(lo, hi, thresholds)
    if cuts and cuts[-1] >= hi:
        cuts.pop()
    cuts = [t for t in cuts if lo < t <= hi]

    edges = [lo] + cuts + [hi]
    # half-open bins, the last one closed on hi; values outside are dropped
    counts, _ = np.histogram(np.asarray(clean, dtype=float), bins=np.asarray(edges, dtype=float))
    return [Bin(edges[i], edges[i + 1], int(counts[i])) for i in range(len(counts))]


def count_values(values: Iterable[Any],
                 order: Optional[Sequence[Any]] = None) -> List[Tuple[float, int]]:
    """Count finite values; keys ascend unless an explicit order is given."""
    counts = pd.Series(_finite(values), dtype=float).value_counts()
    if order is not None:
        return [(k, int(counts[k])) for k in order if k in counts.index]
    return [(float(k), int(c)) for k, c in counts.sort_index().items()]


def year_tick_values(years: Sequence[Any], max_ticks: int = 8) -> List[Any]:
    step = max(1, math.ceil(len(years) / max_ticks))
    return [y for i, y in enumerate(years) if i % step == 0]


def jitter_key(*values: float, decimals: int = 3) -> str:
    return "-".join(f"{v:.{decimals}f}" for v in values)


def jitter_offsets(keys: Sequence[Hashable], radius: float) -> List[Tuple[float, float]]:
    """
    Pixel offsets that fan out points sharing a position.

    Points with the same key are spread evenly on a circle of ``radius``;
    a point alone at its position stays put.
    """
    groups: "OrderedDict[Hashable, List[int]]" = OrderedDict()
    for idx, key in enumerate(keys):
        groups.setdefault(key, []).append(idx)

    offsets = [(0.0, 0.0)] * len(keys)
    for members in groups.values():
        n = len(members)
        if n == 1:
            continue
        for i, idx in enumerate(members):
            angle = i / n * 2 * math.pi
            offsets[idx] = (math.cos(angle) * radius, math.sin(angle) * radius)
    return offsets


def si_format(value: float, precision: int = 2) -> str:
    """SI-prefixed number with ``precision`` significant digits (1500000 -> 1.5M)."""
    if value == 0:
        return f"{0:.{max(0, precision - 1)}f}"
    rounded = float(f"{value:.{precision - 1}e}")
    exponent = math.floor(math.log10(abs(rounded)))
    prefix_exp = max(-24, min(24, 3 * (exponent // 3)))
    scaled = rounded / 10 ** prefix_exp
    decimals = max(0, precision - 1 - (exponent - prefix_exp))
    return f"{scaled:.{decimals}f}{SI_PREFIXES[prefix_exp]}"


def money_tick(value: float) -> str:
    return "$" + si_format(value).replace("G", "B")
