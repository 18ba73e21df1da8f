"""
ChrisFlow Reporting Helpers
Small helpers shared by the clinical reporting workflow: completing partial
case report form dates, duration conversions, summary-table cleanup, and the
corporate color palettes used for charts.

Features:
  - Start/end date imputation for partial dates (UNK/UN day and month)
  - Column-wise date completion over pandas DataFrames
  - Days to months/years and HH:MM to minutes conversions
  - Em-dash cleanup of "0 (0%)", NA and Inf summary cells
  - Corporate colors, hue ramps, palette generators and matplotlib colormaps
"""

import argparse
import re
import sys
from datetime import date, datetime, time, timedelta

import numpy as np
import pandas as pd
from matplotlib import colors as mcolors
from matplotlib.colors import ListedColormap


# ── Constants ────────────────────────────────────────────────────────────────

CORP_COLORS = {
    "ice_blue": "#BBCBD3",
    "navy_blue": "#121B4D",
    "green": "#99CC33",
    "sky_blue": "#3EA7F3",
    "royal_blue": "#003494",
    "warm_gray": "#909FA7",
    "yellow": "#FEE568",
    "red": "#FF2600",
}

CORP_PALETTES = {
    "main": ("green", "royal_blue", "navy_blue"),
    "highlight": ("green", "ice_blue"),
    "ae": ("sky_blue", "warm_gray", "yellow", "red"),   # AE severity
}

# Hue ramps run black -> center -> white over 9 steps; the ends are dropped.
RAMP_STEPS = 9

MONTH_ABBREVIATIONS = ("JAN", "FEB", "MAR", "APR", "MAY", "JUN",
                       "JUL", "AUG", "SEP", "OCT", "NOV", "DEC")
MONTH_CODES = {f"{i:02d}": abbr for i, abbr in enumerate(MONTH_ABBREVIATIONS, start=1)}

# Substitutions for unknown CRF fields. "28" exists in every month and is
# corrected to the real last day afterwards when the raw day is "UNK".
START_DEFAULTS = {"day": "01", "month": "JAN"}
END_DEFAULTS = {"day": "28", "month": "DEC"}
UNKNOWN_DAY_MARKER = "UN"
UNKNOWN_DAY_EXACT = "UNK"

DAYS_PER_MONTH = 30.4375   # 365.25 / 12
DAYS_PER_YEAR = 365.25

EM_DASH = "\u2014"
DASH_EXACT_VALUES = ("0 (0%)",)
DASH_SUBSTRINGS = ("NA", "Inf")

_NON_DIGIT = re.compile(r"[^0-9]")
_COMPOSITE = re.compile(r"(\d{4})-([A-Z]{3})-(\d{1,2})")
_HHMM = re.compile(r"\s*(\d+):(\d{2})(?::\d{2})?\s*")


# ── Color Helpers ────────────────────────────────────────────────────────────

def corp_color(*names):
    """Return corporate colors as {name: hex}. No names returns every color."""
    if not names:
        return dict(CORP_COLORS)
    unknown = [n for n in names if n not in CORP_COLORS]
    if unknown:
        raise ValueError(f"Unknown color(s): {', '.join(map(repr, unknown))}. "
                         f"Valid: {', '.join(CORP_COLORS)}")
    return {n: CORP_COLORS[n] for n in names}


def interpolate_colors(colors, n):
    """Interpolate n colors evenly through the given colors in RGB space.

    Accepts hex codes or any matplotlib color name. Channels are rounded
    half-up on the 0-255 scale and returned as uppercase hex codes.
    """
    if n < 1:
        raise ValueError(f"Number of colors must be at least 1, got {n!r}")
    colors = list(colors)
    if not colors:
        raise ValueError("At least one color is required to interpolate")
    rgb = np.array([mcolors.to_rgb(c) for c in colors]) * 255
    stops = np.linspace(0, 1, len(colors))
    positions = np.linspace(0, 1, n)
    channels = [np.interp(positions, stops, rgb[:, i]) for i in range(3)]
    values = np.floor(np.column_stack(channels) + 0.5).astype(int)
    return ["#{:02X}{:02X}{:02X}".format(*row) for row in values]


def ramp_hues(center_color):
    """Seven shades of center_color: 50% darker, 25% darker, center, 25%
    lighter, 50% lighter (plus the two steps nearest black and white)."""
    if not center_color:
        raise ValueError("Please specify a center color for the hue ramp")
    return interpolate_colors(["black", center_color, "white"], RAMP_STEPS)[1:-1]


def corp_palette(palette="main"):
    """Return a palette as a list of hex codes.

    Named palettes are 'main', 'highlight' and 'ae'; any corporate color name
    returns that color's hue ramp. 'all' returns {palette name: colors}.
    """
    if palette == "all":
        return {name: corp_palette(name) for name in [*CORP_PALETTES, *CORP_COLORS]}
    if palette in CORP_PALETTES:
        return list(corp_color(*CORP_PALETTES[palette]).values())
    if palette in CORP_COLORS:
        return ramp_hues(CORP_COLORS[palette])
    raise ValueError(f"Unknown palette: {palette!r}. "
                     f"Valid: all, {', '.join([*CORP_PALETTES, *CORP_COLORS])}")


def palette_gen(palette="main", direction=1):
    """Return a function n -> list of n colors drawn from a palette.

    Uses the first n palette colors when there are enough, otherwise
    interpolates through the palette. direction < 0 reverses the palette.
    """
    if palette == "all":
        raise ValueError("palette_gen needs a single palette, not 'all'")
    colors = corp_palette(palette)
    if direction < 0:
        colors = colors[::-1]

    def generate(n):
        if n < 1:
            raise ValueError(f"Number of colors must be at least 1, got {n!r}")
        if n <= len(colors):
            return colors[:n]
        return interpolate_colors(colors, n)

    return generate


def corp_colormap(palette="main", discrete=True, direction=1):
    """Build a matplotlib colormap named 'corp_<palette>'.

    Discrete maps hold the palette colors; continuous maps hold 256
    interpolated colors for use with `cmap=` on continuous data.
    """
    generate = palette_gen(palette, direction)
    n = len(corp_palette(palette)) if discrete else 256
    return ListedColormap(generate(n), name=f"corp_{palette}")


# ── Date Helpers ─────────────────────────────────────────────────────────────

def as_text(val):
    """Raw text of a CRF field, or None when the field is missing.

    Integral floats (2024.0 from pandas) become '2024'. No stripping or case
    change: the end-date correction inspects the raw day.
    """
    if val is None:
        return None
    if not isinstance(val, str):
        if pd.isna(val):
            return None
        if isinstance(val, float) and val.is_integer():
            return str(int(val))
    return str(val)


def month_abbreviation(month_c, unknown):
    """Map an uppercased month field to its three-letter abbreviation.

    Unknown markers give `unknown`; codes '01'-'12' map to JAN-DEC; anything
    else is passed through unchanged and fails to parse later.
    """
    if "UNK" in month_c or month_c == "UN":
        return unknown
    return MONTH_CODES.get(month_c, month_c)


def parse_composite(composite):
    """Parse a 'YEAR-MON-DAY' string (%Y-%b-%d). Returns None when invalid."""
    match = _COMPOSITE.fullmatch(composite)
    if not match or match.group(2) not in MONTH_ABBREVIATIONS:
        return None
    year, month, day = match.groups()
    try:
        return date(int(year), MONTH_ABBREVIATIONS.index(month) + 1, int(day))
    except ValueError:
        return None


def _resolve(day, month, year, defaults):
    fields = [as_text(v) for v in (day, month, year)]
    if None in fields:
        return None
    day_c, month_c, year_c = (f.upper() for f in fields)

    if UNKNOWN_DAY_MARKER in day_c:
        day_c = defaults["day"]
    month_c = month_abbreviation(month_c, defaults["month"])
    # Year is free text on the CRF
    if _NON_DIGIT.search(year_c):
        return None

    return parse_composite(f"{year_c}-{month_c}-{day_c}")


def last_day_of_month(d):
    """Return the date of the last day of d's month."""
    if not isinstance(d, date):
        raise TypeError(f"last_day_of_month expected date, got {type(d).__name__}: {d!r}")
    if isinstance(d, datetime):
        d = d.date()
    if d.month == 12:
        first_of_next = date(d.year + 1, 1, 1)
    else:
        first_of_next = date(d.year, d.month + 1, 1)
    return first_of_next - timedelta(days=1)


def resolve_start_date(day, month, year):
    """Complete a partial start date with the earliest possible date.

    Unknown day ('UNK'/'UN') becomes the 1st, unknown month becomes January.
    Months may be '01'-'12' or 'JAN'-'DEC'. Returns None when the year is not
    numeric or the date cannot be parsed.

    >>> resolve_start_date("UNK", "03", "2024")
    datetime.date(2024, 3, 1)
    """
    return _resolve(day, month, year, START_DEFAULTS)


def resolve_end_date(day, month, year):
    """Complete a partial end date with the latest possible date.

    Unknown month becomes December. A day of exactly 'UNK' becomes the last
    day of the month; 'UN' stays at the 28th. Returns None when the year is
    not numeric or the date cannot be parsed.

    >>> resolve_end_date("UNK", "02", "2024")
    datetime.date(2024, 2, 29)
    """
    resolved = _resolve(day, month, year, END_DEFAULTS)
    # TODO: confirm with data management whether raw "UN" days should also
    # get the last-day correction.
    if resolved is not None and as_text(day) == UNKNOWN_DAY_EXACT:
        return last_day_of_month(resolved)
    return resolved


RESOLVERS = {"start": resolve_start_date, "end": resolve_end_date}


def complete_dates(df, day_col, month_col, year_col, kind="start"):
    """Resolve partial dates held in three DataFrame columns.

    Returns a datetime64 Series aligned to df.index with NaT for rows that
    could not be resolved. The frame itself is left untouched.
    """
    if kind not in RESOLVERS:
        raise ValueError(f"kind must be one of {', '.join(RESOLVERS)}, got {kind!r}")
    missing = {day_col, month_col, year_col} - set(df.columns)
    if missing:
        raise KeyError(f"DataFrame is missing column(s): {', '.join(sorted(map(str, missing)))}. "
                       f"Found: {', '.join(map(str, df.columns))}")

    resolver = RESOLVERS[kind]
    resolved = [resolver(d, m, y)
                for d, m, y in zip(df[day_col], df[month_col], df[year_col])]

    unresolved = sum(r is None for r in resolved)
    if unresolved:
        print(f"  WARNING: {unresolved} of {len(resolved)} row(s) could not be resolved "
              f"to a {kind} date.")
    return pd.to_datetime(pd.Series(resolved, index=df.index, dtype="object"))


# ── Duration Helpers ─────────────────────────────────────────────────────────

def _as_numeric(days):
    if isinstance(days, (list, tuple)):
        return np.asarray(days, dtype=float)
    return days


def days_to_months(days):
    """Days to months (30.4375 days per month), rounded to 2 decimals."""
    return np.round(_as_numeric(days) / DAYS_PER_MONTH, 2)


def days_to_years(days):
    """Days to years (365.25 days per year), rounded to 2 decimals."""
    return np.round(_as_numeric(days) / DAYS_PER_YEAR, 2)


def hhmm_to_min(hhmm):
    """Total minutes of an HH:MM duration (time, timedelta or 'HH:MM' text)."""
    if isinstance(hhmm, str):
        match = _HHMM.fullmatch(hhmm)
        if not match or int(match.group(2)) >= 60:
            raise ValueError(f"Cannot parse duration: {hhmm!r}. Expected HH:MM")
        return int(match.group(1)) * 60 + int(match.group(2))
    if isinstance(hhmm, timedelta):
        return int(hhmm.total_seconds() // 60)
    if isinstance(hhmm, time):
        return hhmm.hour * 60 + hhmm.minute
    raise TypeError(f"hhmm_to_min expected time, timedelta or str, got {type(hhmm).__name__}: {hhmm!r}")


# ── Table Helpers ────────────────────────────────────────────────────────────

def _dash_cell(val):
    if not isinstance(val, str):
        return val  # missing stays missing
    if val in DASH_EXACT_VALUES or any(s in val for s in DASH_SUBSTRINGS):
        return EM_DASH
    return val


def na_to_dash(x):
    """Replace '0 (0%)', NA and Inf summary-table cells with an em dash.

    Accepts a single string, a list/tuple (returns a list) or a pandas Series.
    """
    if isinstance(x, pd.Series):
        return x.map(_dash_cell)
    if isinstance(x, (list, tuple)):
        return [_dash_cell(v) for v in x]
    return _dash_cell(x)


# ── Main ─────────────────────────────────────────────────────────────────────

def _print_palette(name):
    colors = corp_palette(name)
    if isinstance(colors, dict):
        for pal_name, pal_colors in colors.items():
            print(f"  {pal_name}: {', '.join(pal_colors)}")
    else:
        print(f"  {name}: {', '.join(colors)}")


def main():
    parser = argparse.ArgumentParser(
        description="ChrisFlow \u2014 complete partial CRF dates and look up corporate palettes"
    )
    parser.add_argument("day", nargs="?", help="Day of month, or UNK/UN if unknown")
    parser.add_argument("month", nargs="?", help="Month as 01-12 or JAN-DEC, or UNK/UN if unknown")
    parser.add_argument("year", nargs="?", help="Four-digit year")
    parser.add_argument(
        "--kind", default="both", choices=["start", "end", "both"],
        help="Which imputation to apply (default: both)"
    )
    parser.add_argument(
        "--palette", default=None,
        help="Print a palette's hex codes instead of resolving a date (use 'all' for every palette)"
    )
    args = parser.parse_args()

    if args.palette:
        try:
            _print_palette(args.palette)
        except ValueError as e:
            print(f"Error: {e}")
            sys.exit(1)
        return

    if None in (args.day, args.month, args.year):
        parser.error("DAY, MONTH and YEAR are required unless --palette is given")

    kinds = list(RESOLVERS) if args.kind == "both" else [args.kind]
    print(f"Partial date: day={args.day} month={args.month} year={args.year}")
    invalid = []
    for kind in kinds:
        resolved = RESOLVERS[kind](args.day, args.month, args.year)
        if resolved is None:
            invalid.append(kind)
            print(f"  {kind.capitalize()} date: invalid")
        else:
            print(f"  {kind.capitalize()} date: {resolved.isoformat()}")

    if invalid:
        print(f"  ERROR: Could not resolve {' or '.join(invalid)} date. Year must be numeric "
              f"and month one of 01-12, JAN-DEC or UNK.")
        sys.exit(1)


if __name__ == "__main__":
    main()
