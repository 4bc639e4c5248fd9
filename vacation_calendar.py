"""
Team Vacation Calendar
Reads employees, vacations and public holidays (Excel workbook or JSON backup)
and renders a requested date window as a single PNG image.

Features:
  - Two presentations chosen by window length: a day-by-day Timeline for short
    windows and a Monthly Grid of mini-calendars for long ones
  - Canvas sized exactly to the number of employees, days, vacations and holidays
  - Weekend and public holiday shading, vacation bars clipped to the window
  - Per-day vacation dots with a '+' overflow marker on busy days
  - Vacation and holiday legends below the drawing (flat or grouped per employee)
  - 2x supersampled output for high-density screens
"""

import argparse
import io
import json
import math
import os
import re
import sys
import threading
from calendar import monthrange
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta

import matplotlib
matplotlib.use("Agg")
import matplotlib.image as mpimg
from matplotlib import font_manager
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.collections import LineCollection
from matplotlib.figure import Figure
from matplotlib.font_manager import FontProperties
from matplotlib.patches import Circle, PathPatch, Rectangle
from matplotlib.path import Path
import numpy as np
import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.worksheet.datavalidation import DataValidation


# ── Constants ────────────────────────────────────────────────────────────────

_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_INPUT = os.path.join(_DIR, "vacation_data.xlsx")
DEFAULT_OUTDIR = os.path.join(_DIR, "output")
DEFAULT_OUTPUT_NAME = "vacation_calendar.png"
DEFAULT_FONT_DIR = os.path.join(_DIR, "fonts")
FONT_FILES = ("Roboto-Regular.ttf", "Roboto-Bold.ttf")

DEFAULT_COLOR = "#3498db"
UNKNOWN_LABEL = "Unknown"
NO_COUNTRY_LABEL = "Not selected"
CALENDAR_TITLE = "Team Vacation Calendar"

# Windows longer than this many days switch from Timeline to Monthly Grid.
# A window of exactly VIEW_THRESHOLD_DAYS days is still drawn as a Timeline.
VIEW_THRESHOLD_DAYS = 31
MAX_DOTS_PER_ROW = 3
MAX_DOT_ROWS = 2

# Logical pixels per inch. A power of two keeps figure sizes exact in floating point.
BASE_DPI = 64

BACKUP_VERSION = 1

MONTH_ABBR = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
MONTH_NAMES = ["January", "February", "March", "April", "May", "June", "July",
               "August", "September", "October", "November", "December"]
WEEKDAY_ABBR = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

COUNTRIES = {
    "AL": "Albania", "AD": "Andorra", "AT": "Austria", "BY": "Belarus",
    "BE": "Belgium", "BR": "Brazil", "BG": "Bulgaria", "HR": "Croatia",
    "CZ": "Czechia", "EE": "Estonia", "FR": "France", "DE": "Germany",
    "HU": "Hungary", "IE": "Ireland", "IT": "Italy", "LV": "Latvia",
    "LI": "Liechtenstein", "LT": "Lithuania", "LU": "Luxembourg", "MT": "Malta",
    "MX": "Mexico", "MD": "Moldova", "MC": "Monaco", "NL": "Netherlands",
    "PL": "Poland", "PT": "Portugal", "RO": "Romania", "SM": "San Marino",
    "RS": "Serbia", "SK": "Slovakia", "SI": "Slovenia", "ZA": "South Africa",
    "ES": "Spain", "SE": "Sweden", "CH": "Switzerland", "VA": "Vatican City",
}

EXAMPLE_EMPLOYEES = [
    (1, "Alice Martin", "#E74C3C"),
    (2, "Bruno Costa", "#2ECC71"),
    (3, "Chen Wei", "#9B59B6"),
    (4, "Dana Novak", "#F39C12"),
]

STYLE = {
    "font_family": "Roboto",
    "fallback_font_family": "DejaVu Sans",
    "title_size": 18,
    "subtitle_size": 11,
    "label_size": 12,
    "legend_title_size": 14,
    "month_title_size": 14,
    "weekday_size": 10,
    "day_number_size": 11,
    "overflow_size": 12,
    "bg_color": "#FFFFFF",
    "text_primary": "#000000",
    "text_secondary": "#666666",
    "text_muted": "#888888",
    "text_dimmed": "#BBBBBB",
    "weekend_color": "#F0F0F0",
    "grid_color": "#C8C8C8",
    "grid_linewidth": 0.5,
    "holiday_color": "#FFB74D",        # Warm amber tint over the day column
    "holiday_alpha": 0.35,
    "holiday_edge_color": "#E65100",   # Accent border / top stripe
    "holiday_accent_height": 3,
    "cell_color": "#FFFFFF",
    "cell_dimmed_color": "#F7F7F7",
    "cell_padding_color": "#FAFAFA",
    "cell_border_color": "#E0E0E0",
    "bar_radius": 5,
    "badge_radius": 3,
}

# Drawing order. Every layer is drawn above the ones before it.
LAYERS = {
    "background": 0,
    "title": 1,
    "weekend": 2,
    "holiday": 3,
    "header": 4,
    "rows": 5,
    "grid": 6,
    "legend": 7,
}


class InvalidRangeError(ValueError):
    """Requested window is reversed, empty or cannot be parsed."""


# ── Layout Configuration ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class LayoutConfig:
    """Every geometric constant used by the planner and the renderers.

    Use ``dataclasses.replace(DEFAULT_CONFIG, ...)`` to render with other values;
    instances are never mutated.
    """
    # Timeline
    left_margin: int = 150
    top_margin: int = 60
    row_height: int = 40
    day_width: int = 30
    header_height: int = 50
    bottom_padding: int = 20
    right_padding: int = 20
    bar_inset_x: int = 2
    bar_inset_y: int = 5
    min_width: int = 800
    min_height: int = 200
    # Legends
    legend_row_height: int = 25
    legend_padding: int = 30
    legend_header_height: int = 45
    legend_title_offset: int = 20
    legend_margin: int = 20
    legend_badge_size: int = 14
    legend_gap: int = 15
    # Monthly grid
    cell_size: int = 42
    month_title_height: int = 30
    weekday_header_height: int = 20
    month_gap_x: int = 30
    month_gap_y: int = 30
    months_per_row: int = 3
    month_margin: int = 30
    monthly_min_width: int = 600
    monthly_min_height: int = 400
    dot_radius: float = 3
    dot_spacing: int = 9
    dot_top: int = 24
    dot_row_spacing: int = 9
    max_dots_per_row: int = MAX_DOTS_PER_ROW
    max_dot_rows: int = MAX_DOT_ROWS
    # View selection and output
    view_threshold_days: int = VIEW_THRESHOLD_DAYS
    scale: int = 2

    @property
    def tile_width(self):
        return 7 * self.cell_size

    @property
    def tile_height(self):
        return self.month_title_height + self.weekday_header_height + 6 * self.cell_size

    @property
    def dot_capacity(self):
        return self.max_dots_per_row * self.max_dot_rows

    @property
    def dpi(self):
        return BASE_DPI * self.scale


DEFAULT_CONFIG = LayoutConfig()


# ── Data Model ───────────────────────────────────────────────────────────────

def _first_key(data, *keys, default=None):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass(frozen=True)
class Employee:
    id: object
    name: str
    color: str = DEFAULT_COLOR

    @classmethod
    def from_dict(cls, data):
        return cls(id=data.get("id"),
                   name=clean_str(data.get("name")),
                   color=clean_str(data.get("color")) or DEFAULT_COLOR)


@dataclass(frozen=True)
class Vacation:
    id: object
    employee_id: object
    start_date: date
    end_date: date
    description: str = ""

    def __post_init__(self):
        object.__setattr__(self, "start_date", parse_date(self.start_date, context=f"vacation {self.id}, start"))
        object.__setattr__(self, "end_date", parse_date(self.end_date, context=f"vacation {self.id}, end"))
        object.__setattr__(self, "description", clean_str(self.description))

    @classmethod
    def from_dict(cls, data):
        return cls(id=data.get("id"),
                   employee_id=_first_key(data, "employee_id", "employeeId"),
                   start_date=_first_key(data, "start_date", "startDate"),
                   end_date=_first_key(data, "end_date", "endDate"),
                   description=data.get("description") or "")


@dataclass(frozen=True)
class Holiday:
    date: date
    name: str
    country_code: str = ""
    type: str = "Public"

    def __post_init__(self):
        object.__setattr__(self, "date", parse_date(self.date, context=f"holiday {self.name!r}"))

    @classmethod
    def from_dict(cls, data):
        return cls(date=data.get("date"),
                   name=clean_str(data.get("name")) or "Holiday",
                   country_code=clean_str(_first_key(data, "country_code", "countryCode", default="")),
                   type=clean_str(data.get("type")) or "Public")


@dataclass(frozen=True)
class RenderRequest:
    from_date: date
    to_date: date
    employees: tuple = ()
    vacations: tuple = ()
    holidays: tuple = ()
    country_label: str = ""


@dataclass
class RenderResult:
    """Finished render: PNG bytes plus the logical size callers lay out with."""
    image: bytes
    width: int
    height: int
    view: str
    layout: object
    pixels: np.ndarray = field(repr=False)

    @property
    def pixel_width(self):
        return self.pixels.shape[1]

    @property
    def pixel_height(self):
        return self.pixels.shape[0]


# ── Helpers ──────────────────────────────────────────────────────────────────

def clean_str(val):
    """Return stripped string or empty string for NaN/None."""
    if val is None or val is pd.NaT or (isinstance(val, float) and math.isnan(val)):
        return ""
    return str(val).strip()


def norm_date(d):
    """Normalise datetime/Timestamp/date to a plain calendar date."""
    if isinstance(d, pd.Timestamp):
        d = d.to_pydatetime()
    if isinstance(d, datetime):
        return d.date()
    if isinstance(d, date):
        return d
    raise TypeError(f"norm_date expected date, got {type(d).__name__}: {d!r}")


def parse_date(val, context=""):
    """Parse a calendar date from a date, datetime, Timestamp or string."""
    ctx = f" ({context})" if context else ""
    if isinstance(val, (date, datetime, pd.Timestamp)) and not pd.isna(val):
        return norm_date(val)
    if val is None or (not isinstance(val, str) and pd.isna(val)):
        raise ValueError(f"Date is blank{ctx}")
    if isinstance(val, str):
        val = val.strip()
        if not val:
            raise ValueError(f"Date is blank{ctx}")
        for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y"):
            try:
                return datetime.strptime(val, fmt).date()
            except ValueError:
                pass
        raise ValueError(f"Cannot parse date{ctx}: {val!r}. Expected YYYY-MM-DD or DD/MM/YYYY")
    raise ValueError(f"Cannot parse date{ctx}: {val!r}")


def parse_id(val):
    """Return an int for integral ids (Excel gives floats), else a stripped string."""
    if isinstance(val, (int, np.integer)):
        return int(val)
    if isinstance(val, (float, np.floating)):
        if math.isnan(val):
            return None
        return int(val) if float(val).is_integer() else float(val)
    text = clean_str(val)
    if not text:
        return None
    return int(text) if re.fullmatch(r"-?\d+", text) else text


def count_days(from_date, to_date):
    """Inclusive number of calendar days between two dates."""
    return (to_date - from_date).days + 1


def is_weekend(d):
    return d.weekday() >= 5


def is_valid_color(value):
    """True for '#RRGGBB' or 'RRGGBB'."""
    return re.fullmatch(r"#?[0-9A-Fa-f]{6}", clean_str(value)) is not None


def normalize_color(value):
    """Return '#rrggbb' for a 6-digit hex colour, otherwise the default blue."""
    if not is_valid_color(value):
        return DEFAULT_COLOR
    return "#" + clean_str(value).lstrip("#").lower()


def clip_range(start, end, from_date, to_date):
    """Intersection of [start, end] with [from_date, to_date], or None."""
    lo = max(start, from_date)
    hi = min(end, to_date)
    if lo > hi:
        return None
    return lo, hi


def months_in_range(from_date, to_date):
    """(year, month) for every calendar month touching the window, in order."""
    months = []
    year, month = from_date.year, from_date.month
    while (year, month) <= (to_date.year, to_date.month):
        months.append((year, month))
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return months


def format_short_date(d):
    return f"{MONTH_ABBR[d.month - 1]} {d.day}"


def format_long_date(d):
    return f"{d.day} {MONTH_ABBR[d.month - 1]} {d.year}"


def format_range(start, end):
    if start == end:
        return format_short_date(start)
    return f"{format_short_date(start)} - {format_short_date(end)}"


def get_country_name(code):
    """Display name for an ISO country code; unknown codes are shown as given."""
    code = clean_str(code)
    if not code:
        return NO_COUNTRY_LABEL
    return COUNTRIES.get(code.upper(), code)


def px_to_pt(px):
    """Logical pixels to matplotlib points."""
    return px * 72.0 / BASE_DPI


def rounded_rect_path(x, y, width, height, radius):
    """Closed rounded-rectangle path with quadratic corners, or None if empty."""
    if width <= 0 or height <= 0:
        return None
    r = max(0.0, min(radius, width / 2, height / 2))
    verts = [
        (x + r, y),
        (x + width - r, y),
        (x + width, y), (x + width, y + r),
        (x + width, y + height - r),
        (x + width, y + height), (x + width - r, y + height),
        (x + r, y + height),
        (x, y + height), (x, y + height - r),
        (x, y + r),
        (x, y), (x + r, y),
        (x + r, y),
    ]
    codes = [Path.MOVETO, Path.LINETO, Path.CURVE3, Path.CURVE3,
             Path.LINETO, Path.CURVE3, Path.CURVE3,
             Path.LINETO, Path.CURVE3, Path.CURVE3,
             Path.LINETO, Path.CURVE3, Path.CURVE3,
             Path.CLOSEPOLY]
    return Path(verts, codes)


def draw_rounded_bar(ax, x, y, width, height, color, radius=5, alpha=1.0,
                     edgecolor=None, linewidth=0, zorder=3):
    """Draw a filled rounded rectangle in pixel coordinates (y grows downwards)."""
    path = rounded_rect_path(x, y, width, height, radius)
    if path is None:
        return None
    patch = PathPatch(path, facecolor=color, alpha=alpha,
                      edgecolor=edgecolor or "none", linewidth=px_to_pt(linewidth),
                      zorder=zorder)
    ax.add_patch(patch)
    return patch


# ── Fonts ────────────────────────────────────────────────────────────────────

_FONT_LOCK = threading.Lock()
_FONT_STATE = {"ready": False, "family": STYLE["fallback_font_family"]}


def ensure_fonts(font_dir=None):
    """Register the bundled Roboto faces once; fall back to DejaVu Sans.

    Only affects glyph shapes, never geometry. Safe to call from several threads.
    """
    with _FONT_LOCK:
        if _FONT_STATE["ready"]:
            return _FONT_STATE["family"]
        font_dir = font_dir or os.environ.get("VACATION_CALENDAR_FONT_DIR") or DEFAULT_FONT_DIR
        loaded = 0
        for filename in FONT_FILES:
            path = os.path.join(font_dir, filename)
            if not os.path.isfile(path):
                continue
            try:
                font_manager.fontManager.addfont(path)
                loaded += 1
            except (OSError, RuntimeError, ValueError):
                continue
        if loaded:
            _FONT_STATE["family"] = STYLE["font_family"]
        _FONT_STATE["ready"] = True
        return _FONT_STATE["family"]


def _reset_fonts():
    """Forget font readiness (tests)."""
    with _FONT_LOCK:
        _FONT_STATE["ready"] = False
        _FONT_STATE["family"] = STYLE["fallback_font_family"]


# ── Drawing Surface ──────────────────────────────────────────────────────────

class Surface:
    """Pixel-space drawing helpers over one full-bleed matplotlib axes.

    Data coordinates are logical pixels with the origin at the top-left corner.
    Each render owns its own Figure, so nothing here is shared between calls.
    """

    def __init__(self, width, height, config, family):
        self.width = width
        self.height = height
        self.config = config
        self.family = family
        self.figure = Figure(figsize=(width / BASE_DPI, height / BASE_DPI),
                             dpi=config.dpi, facecolor=STYLE["bg_color"])
        self.canvas = FigureCanvasAgg(self.figure)
        self.ax = self.figure.add_axes((0, 0, 1, 1))
        self.ax.set_xlim(0, width)
        self.ax.set_ylim(height, 0)
        self.ax.set_axis_off()

    def _font(self, weight="normal", style="normal"):
        return FontProperties(family=self.family, weight=weight, style=style)

    def fill_rect(self, x, y, width, height, color, alpha=1.0, zorder=0,
                  edgecolor="none", linewidth=0):
        self.ax.add_patch(Rectangle((x, y), width, height, facecolor=color,
                                    alpha=alpha, edgecolor=edgecolor,
                                    linewidth=px_to_pt(linewidth), zorder=zorder))

    def rounded_rect(self, x, y, width, height, color, radius, zorder=0,
                     edgecolor=None, linewidth=0, alpha=1.0):
        return draw_rounded_bar(self.ax, x, y, width, height, color, radius=radius,
                                alpha=alpha, edgecolor=edgecolor,
                                linewidth=linewidth, zorder=zorder)

    def circle(self, cx, cy, radius, color, zorder=0):
        self.ax.add_patch(Circle((cx, cy), radius, facecolor=color,
                                 edgecolor="none", linewidth=0, zorder=zorder))

    def line(self, x1, y1, x2, y2, color, linewidth=1, zorder=0):
        self.lines([((x1, y1), (x2, y2))], color, linewidth=linewidth, zorder=zorder)

    def lines(self, segments, color, linewidth=1, zorder=0):
        if not segments:
            return
        self.ax.add_collection(LineCollection(segments, colors=color,
                                              linewidths=px_to_pt(linewidth),
                                              capstyle="butt", zorder=zorder))

    def text(self, x, y, s, size, color=STYLE["text_primary"], ha="left",
             va="center", weight="normal", style="normal", zorder=0):
        if not s:
            return None
        return self.ax.text(x, y, s, fontsize=px_to_pt(size), family=self.family,
                            fontweight=weight, fontstyle=style, color=color,
                            ha=ha, va=va, zorder=zorder, clip_on=False,
                            parse_math=False)

    def _advances(self, s, size, weight="normal", style="normal"):
        """Per-character advance widths of s in logical pixels."""
        font = font_manager.get_font(font_manager.findfont(self._font(weight, style)))
        font.set_size(size, 72)
        cache = {}
        widths = np.empty(len(s))
        for i, ch in enumerate(s):
            if ch not in cache:
                cache[ch] = font.load_char(ord(ch)).linearHoriAdvance / 65536
            widths[i] = cache[ch]
        return widths

    def text_width(self, s, size, weight="normal", style="normal"):
        """Advance width of a string in logical pixels."""
        if not s:
            return 0.0
        return float(self._advances(s, size, weight, style).sum())

    def fit_text(self, s, max_width, size, weight="normal", style="normal"):
        """Truncate with an ellipsis so the text fits in max_width pixels."""
        if max_width <= 0 or not s:
            return ""
        running = np.cumsum(self._advances(s, size, weight, style))
        if running[-1] <= max_width:
            return s
        budget = max_width - self.text_width("…", size, weight, style)
        if budget <= 0:
            return ""
        cut = int(np.searchsorted(running, budget, side="right"))
        trimmed = s[:cut].rstrip()
        return trimmed + "…" if trimmed else ""

    def to_pixels(self):
        """Rasterise and return an RGBA uint8 array (device pixels)."""
        self.canvas.draw()
        return np.array(self.canvas.buffer_rgba(), dtype=np.uint8)


def encode_png(pixels, dpi):
    buf = io.BytesIO()
    mpimg.imsave(buf, pixels, format="png", dpi=dpi)
    return buf.getvalue()


# ── Layout Records ───────────────────────────────────────────────────────────

@dataclass
class LegendRow:
    y: float
    color: str
    label: str
    detail: str = ""
    note: str = ""


@dataclass
class LegendBlock:
    kind: str            # "flat", "grouped" or "holiday"
    title: str
    y: float
    height: float
    rows: list = field(default_factory=list)


@dataclass
class DayColumn:
    offset: int
    day: date
    x: float
    weekend: bool
    holiday: bool
    month_label: str = ""


@dataclass
class EmployeeRow:
    employee_id: object
    name: str
    color: str
    y: float


@dataclass
class Bar:
    employee_id: object
    vacation_id: object
    start: date
    end: date
    start_offset: int
    end_offset: int
    x: float
    y: float
    width: float
    height: float
    color: str


@dataclass
class TimelineLayout:
    width: int
    height: int
    from_date: date
    to_date: date
    days: int
    grid_left: float
    grid_top: float
    grid_right: float
    grid_bottom: float
    columns: list = field(default_factory=list)
    rows: list = field(default_factory=list)
    bars: list = field(default_factory=list)
    legends: list = field(default_factory=list)


@dataclass
class Dot:
    x: float
    y: float
    color: str
    employee_key: object


@dataclass
class DayCell:
    day: object          # date, or None for padding cells
    x: float
    y: float
    size: float
    background: str      # "padding", "dimmed", "holiday", "weekend" or "plain"
    in_range: bool = False
    weekend: bool = False
    holiday: bool = False
    holiday_name: str = ""
    away: int = 0
    dots: list = field(default_factory=list)
    overflow: bool = False
    overflow_at: tuple = None


@dataclass
class MonthTile:
    year: int
    month: int
    x: float
    y: float
    width: float
    height: float
    title: str
    week_rows: int
    cells: list = field(default_factory=list)

    def cell_for(self, d):
        for cell in self.cells:
            if cell.day == d:
                return cell
        return None


@dataclass
class MonthlyLayout:
    width: int
    height: int
    from_date: date
    to_date: date
    days: int
    tiles_per_row: int
    tile_rows: int
    grid_left: float
    grid_top: float
    grid_width: float
    grid_height: float
    tiles: list = field(default_factory=list)
    legends: list = field(default_factory=list)

    def cell_for(self, d):
        for tile in self.tiles:
            if (tile.year, tile.month) == (d.year, d.month):
                return tile.cell_for(d)
        return None


# ── Dimension Planner ────────────────────────────────────────────────────────

def legend_block_height(entry_count, config=DEFAULT_CONFIG):
    """Vertical space a legend with entry_count rows needs (0 when empty)."""
    if entry_count <= 0:
        return 0
    return config.legend_padding + config.legend_header_height + entry_count * config.legend_row_height


def _index_employees(employees):
    lookup = {}
    for emp in employees:
        lookup.setdefault(emp.id, emp)
    return lookup


def _employee_identity(emp):
    """Display name and colour; a missing employee becomes 'Unknown' in the default colour."""
    if emp is None:
        return UNKNOWN_LABEL, DEFAULT_COLOR
    return emp.name or UNKNOWN_LABEL, normalize_color(emp.color)


def visible_vacations(vacations, from_date, to_date):
    """(vacation, clipped_start, clipped_end) for vacations overlapping the window."""
    visible = []
    for vac in vacations:
        span = clip_range(vac.start_date, vac.end_date, from_date, to_date)
        if span is not None:
            visible.append((vac, span[0], span[1]))
    return visible


def holidays_in_window(holidays, from_date, to_date):
    """First holiday listed for each day inside the window, ordered by date."""
    by_day = {}
    for hol in holidays:
        if from_date <= hol.date <= to_date and hol.date not in by_day:
            by_day[hol.date] = hol
    return [by_day[d] for d in sorted(by_day)]


def _legend_rows(entries, y, config):
    rows = []
    for i, (color, label, detail, note) in enumerate(entries):
        row_y = y + config.legend_header_height + i * config.legend_row_height
        rows.append(LegendRow(y=row_y, color=color, label=label, detail=detail, note=note))
    return rows


def build_flat_legend(visible, employee_lookup, y, config=DEFAULT_CONFIG):
    """One legend row per visible vacation, in input order."""
    entries = []
    for vac, start, end in visible:
        name, color = _employee_identity(employee_lookup.get(vac.employee_id))
        entries.append((color, name, format_range(start, end), vac.description))
    return LegendBlock(kind="flat", title="Vacation Details:", y=y,
                       height=legend_block_height(len(entries), config),
                       rows=_legend_rows(entries, y, config))


def build_grouped_legend(visible, employee_lookup, y, config=DEFAULT_CONFIG):
    """One legend row per employee (first-seen order) listing all their ranges."""
    groups = {}
    for vac, start, end in visible:
        text = format_range(start, end)
        if vac.description:
            text += f" ({vac.description})"
        groups.setdefault(vac.employee_id, []).append(text)
    entries = []
    for employee_id, ranges in groups.items():
        name, color = _employee_identity(employee_lookup.get(employee_id))
        entries.append((color, name, ", ".join(ranges), ""))
    return LegendBlock(kind="grouped", title="Vacation Details:", y=y,
                       height=legend_block_height(len(entries), config),
                       rows=_legend_rows(entries, y, config))


def build_holiday_legend(holidays, country_label, y, config=DEFAULT_CONFIG):
    entries = [(STYLE["holiday_color"], format_short_date(h.date), h.name, "") for h in holidays]
    return LegendBlock(kind="holiday",
                       title=f"Public Holidays ({get_country_name(country_label)}):",
                       y=y, height=legend_block_height(len(entries), config),
                       rows=_legend_rows(entries, y, config))


def _legends(legend_builder, visible, lookup, holidays, country_label, y, config):
    vacation_block = legend_builder(visible, lookup, y, config)
    holiday_block = build_holiday_legend(holidays, country_label, y + vacation_block.height, config)
    return [block for block in (vacation_block, holiday_block) if block.rows]


def plan_timeline(request, config=DEFAULT_CONFIG):
    """Compute the full Timeline geometry for a request."""
    from_date, to_date = request.from_date, request.to_date
    days = count_days(from_date, to_date)
    lookup = _index_employees(request.employees)
    visible = visible_vacations(request.vacations, from_date, to_date)
    holidays = holidays_in_window(request.holidays, from_date, to_date)
    holiday_days = {h.date for h in holidays}

    grid_left = config.left_margin
    grid_top = config.top_margin + config.header_height
    grid_right = grid_left + days * config.day_width
    grid_bottom = grid_top + len(request.employees) * config.row_height

    vacation_legend_y = grid_bottom + config.bottom_padding
    legends = _legends(build_flat_legend, visible, lookup, holidays,
                       request.country_label, vacation_legend_y, config)
    legend_height = sum(block.height for block in legends)

    width = max(config.min_width, grid_right + config.right_padding)
    height = max(config.min_height, vacation_legend_y + legend_height)

    layout = TimelineLayout(width=int(width), height=int(height),
                            from_date=from_date, to_date=to_date, days=days,
                            grid_left=grid_left, grid_top=grid_top,
                            grid_right=grid_right, grid_bottom=grid_bottom,
                            legends=legends)

    for offset in range(days):
        d = from_date + timedelta(days=offset)
        month_label = MONTH_ABBR[d.month - 1] if (d.day == 1 or offset == 0) else ""
        layout.columns.append(DayColumn(offset=offset, day=d,
                                        x=grid_left + offset * config.day_width,
                                        weekend=is_weekend(d),
                                        holiday=d in holiday_days,
                                        month_label=month_label))

    by_employee = {}
    for vac, start, end in visible:
        by_employee.setdefault(vac.employee_id, []).append((vac, start, end))

    for i, emp in enumerate(request.employees):
        row_y = grid_top + i * config.row_height
        name, color = _employee_identity(emp)
        layout.rows.append(EmployeeRow(employee_id=emp.id, name=name, color=color, y=row_y))
        for vac, start, end in by_employee.get(emp.id, []):
            start_offset = (start - from_date).days
            end_offset = (end - from_date).days
            layout.bars.append(Bar(
                employee_id=emp.id, vacation_id=vac.id,
                start=start, end=end,
                start_offset=start_offset, end_offset=end_offset,
                x=grid_left + start_offset * config.day_width + config.bar_inset_x,
                y=row_y + config.bar_inset_y,
                width=(end_offset - start_offset + 1) * config.day_width - 2 * config.bar_inset_x,
                height=config.row_height - 2 * config.bar_inset_y,
                color=color,
            ))
    return layout


def pack_dots(cell_x, cell_y, away, config=DEFAULT_CONFIG):
    """Place vacation dots under the day number.

    away is an ordered list of (employee_key, colour). At most
    max_dots_per_row * max_dot_rows dots are placed; returns (dots, overflow).
    """
    per_row = config.max_dots_per_row
    visible = away[:config.dot_capacity]
    center_x = cell_x + config.cell_size / 2
    dots = []
    for row_idx in range(config.max_dot_rows):
        chunk = visible[row_idx * per_row:(row_idx + 1) * per_row]
        if not chunk:
            break
        xs = center_x + (np.arange(len(chunk)) - (len(chunk) - 1) / 2) * config.dot_spacing
        y = cell_y + config.dot_top + row_idx * config.dot_row_spacing
        for x, (key, color) in zip(xs, chunk):
            dots.append(Dot(x=float(x), y=float(y), color=color, employee_key=key))
    return dots, len(away) > config.dot_capacity


def _away_by_day(request, visible, lookup):
    """date -> ordered [(employee_key, colour)] of distinct employees away that day."""
    rank = {}
    for i, emp in enumerate(request.employees):
        rank.setdefault(emp.id, i)
    unknown_rank = len(rank)
    away = {}
    for vac, start, end in visible:
        key = vac.employee_id
        if key not in rank:
            rank[key] = unknown_rank
            unknown_rank += 1
        _, color = _employee_identity(lookup.get(key))
        d = start
        while d <= end:
            away.setdefault(d, {}).setdefault(key, color)
            d += timedelta(days=1)
    return {d: sorted(people.items(), key=lambda item: rank[item[0]])
            for d, people in away.items()}


def _cell_background(in_range, holiday, weekend):
    if not in_range:
        return "dimmed"
    if holiday:
        return "holiday"
    if weekend:
        return "weekend"
    return "plain"


def _plan_month_tile(year, month, x, y, request, away, holiday_by_day, config):
    title = f"{MONTH_NAMES[month - 1]} {year}"
    first_weekday = date(year, month, 1).weekday()
    num_days = monthrange(year, month)[1]
    week_rows = math.ceil((first_weekday + num_days) / 7)
    tile = MonthTile(year=year, month=month, x=x, y=y,
                     width=config.tile_width, height=config.tile_height,
                     title=title, week_rows=week_rows)
    cells_top = y + config.month_title_height + config.weekday_header_height
    size = config.cell_size

    for slot in range(week_rows * 7):
        cell_x = x + (slot % 7) * size
        cell_y = cells_top + (slot // 7) * size
        day_number = slot - first_weekday + 1
        if day_number < 1 or day_number > num_days:
            tile.cells.append(DayCell(day=None, x=cell_x, y=cell_y, size=size,
                                      background="padding"))
            continue
        d = date(year, month, day_number)
        in_range = request.from_date <= d <= request.to_date
        weekend = is_weekend(d)
        holiday = in_range and d in holiday_by_day
        cell = DayCell(day=d, x=cell_x, y=cell_y, size=size,
                       background=_cell_background(in_range, holiday, weekend),
                       in_range=in_range, weekend=weekend, holiday=holiday,
                       holiday_name=holiday_by_day[d].name if holiday else "")
        if in_range:
            people = away.get(d, [])
            cell.away = len(people)
            cell.dots, cell.overflow = pack_dots(cell_x, cell_y, people, config)
            if cell.overflow:
                cell.overflow_at = (cell_x + size - 5, cell_y + size - 6)
        tile.cells.append(cell)
    return tile


def plan_monthly(request, config=DEFAULT_CONFIG):
    """Compute the full Monthly Grid geometry for a request."""
    from_date, to_date = request.from_date, request.to_date
    lookup = _index_employees(request.employees)
    visible = visible_vacations(request.vacations, from_date, to_date)
    holidays = holidays_in_window(request.holidays, from_date, to_date)
    holiday_by_day = {h.date: h for h in holidays}
    away = _away_by_day(request, visible, lookup)

    months = months_in_range(from_date, to_date)
    tiles_per_row = min(config.months_per_row, len(months))
    tile_rows = math.ceil(len(months) / config.months_per_row)
    grid_width = tiles_per_row * config.tile_width + (tiles_per_row - 1) * config.month_gap_x
    grid_height = tile_rows * config.tile_height + (tile_rows - 1) * config.month_gap_y

    vacation_legend_y = config.top_margin + grid_height + config.bottom_padding
    legends = _legends(build_grouped_legend, visible, lookup, holidays,
                       request.country_label, vacation_legend_y, config)
    legend_height = sum(block.height for block in legends)

    width = max(config.monthly_min_width, grid_width + 2 * config.month_margin)
    height = max(config.monthly_min_height, vacation_legend_y + legend_height)
    grid_left = (width - grid_width) / 2

    layout = MonthlyLayout(width=int(width), height=int(height),
                           from_date=from_date, to_date=to_date,
                           days=count_days(from_date, to_date),
                           tiles_per_row=tiles_per_row, tile_rows=tile_rows,
                           grid_left=grid_left, grid_top=config.top_margin,
                           grid_width=grid_width, grid_height=grid_height,
                           legends=legends)
    for i, (year, month) in enumerate(months):
        col, row = i % config.months_per_row, i // config.months_per_row
        tile_x = grid_left + col * (config.tile_width + config.month_gap_x)
        tile_y = config.top_margin + row * (config.tile_height + config.month_gap_y)
        layout.tiles.append(_plan_month_tile(year, month, tile_x, tile_y, request,
                                             away, holiday_by_day, config))
    return layout


# ── Renderers ────────────────────────────────────────────────────────────────

def _draw_frame(surface, layout):
    """Solid background, centred title and the window subtitle."""
    surface.fill_rect(0, 0, layout.width, layout.height, STYLE["bg_color"],
                      zorder=LAYERS["background"])
    surface.text(layout.width / 2, 25, CALENDAR_TITLE, STYLE["title_size"],
                 ha="center", weight="bold", zorder=LAYERS["title"])
    subtitle = f"{format_long_date(layout.from_date)} - {format_long_date(layout.to_date)}"
    surface.text(layout.width / 2, 45, subtitle, STYLE["subtitle_size"],
                 color=STYLE["text_muted"], ha="center", zorder=LAYERS["title"])


def draw_timeline(surface, layout, config=DEFAULT_CONFIG):
    """Draw the day-column x employee-row chart."""
    _draw_frame(surface, layout)
    grid_height = layout.grid_bottom - layout.grid_top

    for col in layout.columns:
        if col.weekend:
            surface.fill_rect(col.x, layout.grid_top, config.day_width, grid_height,
                              STYLE["weekend_color"], zorder=LAYERS["weekend"])

    for col in layout.columns:
        if col.holiday:
            surface.fill_rect(col.x, layout.grid_top, config.day_width, grid_height,
                              STYLE["holiday_color"], alpha=STYLE["holiday_alpha"],
                              zorder=LAYERS["holiday"])
            surface.fill_rect(col.x, layout.grid_top, config.day_width,
                              STYLE["holiday_accent_height"], STYLE["holiday_edge_color"],
                              zorder=LAYERS["holiday"])

    for col in layout.columns:
        center_x = col.x + config.day_width / 2
        surface.text(center_x, config.top_margin + 15, str(col.day.day), STYLE["label_size"],
                     color=STYLE["holiday_edge_color"] if col.holiday else STYLE["text_primary"],
                     ha="center", zorder=LAYERS["header"])
        if col.month_label:
            surface.text(center_x, config.top_margin + 35, col.month_label, STYLE["label_size"],
                         ha="center", zorder=LAYERS["header"])

    name_width = config.left_margin - 20
    for row in layout.rows:
        name = surface.fit_text(row.name, name_width, STYLE["label_size"])
        surface.text(config.left_margin - 10, row.y + config.row_height / 2, name,
                     STYLE["label_size"], ha="right", zorder=LAYERS["rows"])

    for bar in layout.bars:
        surface.rounded_rect(bar.x, bar.y, bar.width, bar.height, bar.color,
                             STYLE["bar_radius"], zorder=LAYERS["rows"])

    segments = []
    for i in range(layout.days + 1):
        x = layout.grid_left + i * config.day_width
        segments.append(((x, layout.grid_top), (x, layout.grid_bottom)))
    for i in range(len(layout.rows) + 1):
        y = layout.grid_top + i * config.row_height
        segments.append(((layout.grid_left, y), (layout.grid_right, y)))
    surface.lines(segments, STYLE["grid_color"], linewidth=STYLE["grid_linewidth"],
                  zorder=LAYERS["grid"])


_CELL_FILLS = {
    "padding": STYLE["cell_padding_color"],
    "dimmed": STYLE["cell_dimmed_color"],
    "weekend": STYLE["weekend_color"],
    "plain": STYLE["cell_color"],
    "holiday": STYLE["cell_color"],
}


def _draw_day_cell(surface, cell, config):
    z = LAYERS["rows"]
    surface.fill_rect(cell.x, cell.y, cell.size, cell.size, _CELL_FILLS[cell.background],
                      edgecolor=STYLE["cell_border_color"], linewidth=0.5, zorder=z)
    if cell.background == "holiday":
        surface.fill_rect(cell.x, cell.y, cell.size, cell.size, STYLE["holiday_color"],
                          alpha=STYLE["holiday_alpha"], zorder=z)
        surface.fill_rect(cell.x + 1, cell.y + 1, cell.size - 2, cell.size - 2, "none",
                          edgecolor=STYLE["holiday_edge_color"], linewidth=1.5, zorder=z)
    if cell.day is None:
        return

    if not cell.in_range:
        color, weight = STYLE["text_dimmed"], "normal"
    elif cell.holiday:
        color, weight = STYLE["holiday_edge_color"], "bold"
    else:
        color, weight = STYLE["text_primary"], "normal"
    surface.text(cell.x + 4, cell.y + 4, str(cell.day.day), STYLE["day_number_size"],
                 color=color, weight=weight, va="top", zorder=z)

    for dot in cell.dots:
        surface.circle(dot.x, dot.y, config.dot_radius, dot.color, zorder=z)
    if cell.overflow:
        ox, oy = cell.overflow_at
        surface.text(ox, oy, "+", STYLE["overflow_size"], color=STYLE["text_secondary"],
                     ha="center", weight="bold", zorder=z)


def draw_monthly(surface, layout, config=DEFAULT_CONFIG):
    """Draw one mini-calendar per month, three per row."""
    _draw_frame(surface, layout)
    for tile in layout.tiles:
        surface.text(tile.x + tile.width / 2, tile.y + config.month_title_height / 2,
                     tile.title, STYLE["month_title_size"], ha="center", weight="bold",
                     zorder=LAYERS["header"])
        header_y = tile.y + config.month_title_height + config.weekday_header_height / 2
        for i, name in enumerate(WEEKDAY_ABBR):
            surface.text(tile.x + (i + 0.5) * config.cell_size, header_y, name,
                         STYLE["weekday_size"],
                         color=STYLE["text_muted"] if i >= 5 else STYLE["text_secondary"],
                         ha="center", weight="bold", zorder=LAYERS["header"])
        for cell in tile.cells:
            _draw_day_cell(surface, cell, config)


# ── Legend Composer ──────────────────────────────────────────────────────────

def _draw_legend_header(surface, block, config):
    z = LAYERS["legend"]
    surface.line(config.legend_margin, block.y, surface.width - config.legend_margin, block.y,
                 STYLE["grid_color"], linewidth=1, zorder=z)
    surface.text(config.legend_margin, block.y + config.legend_title_offset, block.title,
                 STYLE["legend_title_size"], weight="bold", zorder=z)


def draw_flat_legend(surface, block, config=DEFAULT_CONFIG):
    """Badge, bold name, date range and italic description per vacation."""
    _draw_legend_header(surface, block, config)
    z = LAYERS["legend"]
    size = STYLE["label_size"]
    badge = config.legend_badge_size
    right = surface.width - config.legend_margin
    for row in block.rows:
        x = config.legend_margin
        surface.rounded_rect(x, row.y - badge / 2, badge, badge, row.color,
                             STYLE["badge_radius"], zorder=z)
        x += badge + 10
        surface.text(x, row.y, row.label, size, weight="bold", zorder=z)
        x += surface.text_width(row.label, size, weight="bold") + config.legend_gap
        surface.text(x, row.y, row.detail, size, color=STYLE["text_secondary"], zorder=z)
        x += surface.text_width(row.detail, size) + config.legend_gap
        if row.note:
            note = surface.fit_text(f"- {row.note}", right - x, size, style="italic")
            surface.text(x, row.y, note, size, color=STYLE["text_muted"], style="italic", zorder=z)


def draw_grouped_legend(surface, block, config=DEFAULT_CONFIG):
    """Dot, bold name and comma-joined ranges per employee."""
    _draw_legend_header(surface, block, config)
    z = LAYERS["legend"]
    size = STYLE["label_size"]
    badge = config.legend_badge_size
    right = surface.width - config.legend_margin
    for row in block.rows:
        x = config.legend_margin
        surface.circle(x + badge / 2, row.y, badge / 2 - 1, row.color, zorder=z)
        x += badge + 10
        surface.text(x, row.y, row.label, size, weight="bold", zorder=z)
        x += surface.text_width(row.label, size, weight="bold") + config.legend_gap
        detail = surface.fit_text(row.detail, right - x, size)
        surface.text(x, row.y, detail, size, color=STYLE["text_secondary"], zorder=z)


def draw_holiday_legend(surface, block, config=DEFAULT_CONFIG):
    """Tinted badge with accent border, short date and holiday name."""
    _draw_legend_header(surface, block, config)
    z = LAYERS["legend"]
    size = STYLE["label_size"]
    badge = config.legend_badge_size
    for row in block.rows:
        x = config.legend_margin
        surface.rounded_rect(x, row.y - badge / 2, badge, badge, row.color,
                             STYLE["badge_radius"], edgecolor=STYLE["holiday_edge_color"],
                             linewidth=1, zorder=z)
        x += badge + 10
        surface.text(x, row.y, row.label, size, weight="bold", zorder=z)
        x += surface.text_width(row.label, size, weight="bold") + config.legend_gap
        surface.text(x, row.y, row.detail, size, color=STYLE["text_secondary"], zorder=z)


LEGEND_DRAWERS = {
    "flat": draw_flat_legend,
    "grouped": draw_grouped_legend,
    "holiday": draw_holiday_legend,
}


def compose_legends(surface, layout, config=DEFAULT_CONFIG):
    for block in layout.legends:
        LEGEND_DRAWERS[block.kind](surface, block, config)


# ── View Selector ────────────────────────────────────────────────────────────

class TimelineView:
    """Day-by-day bars for short windows."""
    name = "timeline"

    def plan(self, request, config=DEFAULT_CONFIG):
        return plan_timeline(request, config)

    def draw(self, surface, layout, config=DEFAULT_CONFIG):
        draw_timeline(surface, layout, config)


class MonthlyGridView:
    """Mini-calendars with vacation dots for long windows."""
    name = "monthly"

    def plan(self, request, config=DEFAULT_CONFIG):
        return plan_monthly(request, config)

    def draw(self, surface, layout, config=DEFAULT_CONFIG):
        draw_monthly(surface, layout, config)


def select_view(from_date, to_date, config=DEFAULT_CONFIG):
    """Timeline up to the threshold (inclusive), Monthly Grid above it."""
    days = count_days(from_date, to_date)
    if days < 1:
        raise InvalidRangeError(
            f"'to' date {to_date.isoformat()} is before 'from' date {from_date.isoformat()}")
    if days > config.view_threshold_days:
        return MonthlyGridView()
    return TimelineView()


# ── Render ───────────────────────────────────────────────────────────────────

def _coerce(items, cls):
    coerced = []
    for item in items or ():
        coerced.append(item if isinstance(item, cls) else cls.from_dict(item))
    return tuple(coerced)


def render(from_date, to_date, employees, vacations, holidays=(), country_label="",
           config=None):
    """Render the vacation calendar for [from_date, to_date] (inclusive).

    Employees, vacations and holidays may be dataclass instances or mappings
    using the backup key names. Raises InvalidRangeError for a bad window;
    bad colours and unknown employee ids are rendered with defaults.
    """
    config = config or DEFAULT_CONFIG
    try:
        start = parse_date(from_date, context="from")
        end = parse_date(to_date, context="to")
    except (ValueError, TypeError) as e:
        raise InvalidRangeError(str(e)) from e
    view = select_view(start, end, config)

    request = RenderRequest(from_date=start, to_date=end,
                            employees=_coerce(employees, Employee),
                            vacations=_coerce(vacations, Vacation),
                            holidays=_coerce(holidays, Holiday),
                            country_label=clean_str(country_label))
    layout = view.plan(request, config)

    family = ensure_fonts()
    surface = Surface(layout.width, layout.height, config, family)
    view.draw(surface, layout, config)
    compose_legends(surface, layout, config)

    pixels = surface.to_pixels()
    return RenderResult(image=encode_png(pixels, config.dpi),
                        width=layout.width, height=layout.height,
                        view=view.name, layout=layout, pixels=pixels)


def save_render(result, output_path):
    """Write the PNG bytes of a render to disk."""
    out_dir = os.path.dirname(output_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    with open(output_path, "wb") as f:
        f.write(result.image)
    return output_path


# ── Template Generation ─────────────────────────────────────────────────────

def generate_template(output_path):
    """Create an Excel template with 3 sheets (Employees, Vacations, Public Holidays)
    containing example data, colour previews and an employee dropdown."""
    wb = Workbook()

    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color="2E3B4E", end_color="2E3B4E", fill_type="solid")
    header_alignment = Alignment(horizontal="center", vertical="center")
    centered = Alignment(horizontal="center", vertical="center")
    thin_border = Border(
        left=Side(style="thin"), right=Side(style="thin"),
        top=Side(style="thin"), bottom=Side(style="thin"),
    )

    def style_header(ws, row=1):
        for cell in ws[row]:
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = header_alignment
            cell.border = thin_border

    def style_data_rows(ws, start_row=2):
        for row in ws.iter_rows(min_row=start_row, max_row=ws.max_row):
            for cell in row:
                cell.border = thin_border
                cell.alignment = Alignment(vertical="center")

    # ── Sheet 1: Employees ──
    ws_emp = wb.active
    ws_emp.title = "Employees"
    ws_emp.append(["ID", "Name", "Color"])
    for emp_id, name, color in EXAMPLE_EMPLOYEES:
        ws_emp.append([emp_id, name, color])
    ws_emp.column_dimensions["A"].width = 8
    ws_emp.column_dimensions["B"].width = 25
    ws_emp.column_dimensions["C"].width = 12
    style_header(ws_emp)
    style_data_rows(ws_emp)
    ws_emp.freeze_panes = "A2"

    # Colour preview fills
    for row_idx in range(2, ws_emp.max_row + 1):
        color_cell = ws_emp.cell(row=row_idx, column=3)
        hex_color = normalize_color(color_cell.value).lstrip("#").upper()
        color_cell.fill = PatternFill(start_color=hex_color, end_color=hex_color, fill_type="solid")

    # ── Sheet 2: Vacations ──
    ws_vac = wb.create_sheet("Vacations")
    ws_vac.append(["ID", "Employee ID", "Start Date", "End Date", "Description"])
    example_vacations = [
        [1, 1, "2026-07-06", "2026-07-17", "Summer trip"],
        [2, 2, "2026-07-13", "2026-07-15", ""],
        [3, 3, "2026-07-20", "2026-07-31", "Family visit"],
        [4, 4, "2026-08-03", "2026-08-07", ""],
        [5, 1, "2026-08-24", "2026-08-25", "Long weekend"],
    ]
    for vac in example_vacations:
        ws_vac.append(vac)
    ws_vac.column_dimensions["A"].width = 8
    ws_vac.column_dimensions["B"].width = 13
    ws_vac.column_dimensions["C"].width = 14
    ws_vac.column_dimensions["D"].width = 14
    ws_vac.column_dimensions["E"].width = 35
    style_header(ws_vac)
    style_data_rows(ws_vac)
    ws_vac.freeze_panes = "A2"

    for row_idx in range(2, ws_vac.max_row + 1):
        ws_vac.cell(row=row_idx, column=3).alignment = centered
        ws_vac.cell(row=row_idx, column=4).alignment = centered

    max_vacation_row = 200

    # Employee ID dropdown (range-based)
    dv_employee = DataValidation(type="list", formula1="=Employees!$A$2:$A$100", allow_blank=False)
    dv_employee.error = "Please select an employee ID from the Employees sheet"
    dv_employee.errorTitle = "Invalid Employee"
    ws_vac.add_data_validation(dv_employee)
    dv_employee.add(f"B2:B{max_vacation_row}")

    # ── Sheet 3: Public Holidays ──
    ws_hol = wb.create_sheet("Public Holidays")
    ws_hol.append(["Date", "Name", "Country", "Type"])
    example_holidays = [
        ["2026-08-15", "Assumption Day", "AT", "Public"],
        ["2026-10-26", "National Day", "AT", "Public"],
        ["2026-12-25", "Christmas Day", "", "Public"],
    ]
    for hol in example_holidays:
        ws_hol.append(hol)
    ws_hol.column_dimensions["A"].width = 14
    ws_hol.column_dimensions["B"].width = 30
    ws_hol.column_dimensions["C"].width = 10
    ws_hol.column_dimensions["D"].width = 12
    style_header(ws_hol)
    style_data_rows(ws_hol)
    ws_hol.freeze_panes = "A2"
    for row_idx in range(2, ws_hol.max_row + 1):
        ws_hol.cell(row=row_idx, column=1).alignment = centered

    out_dir = os.path.dirname(output_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    wb.save(output_path)
    print(f"Template created: {output_path}")
    print("  - Sheet 'Employees': ID, display name and hex colour per person")
    print("  - Sheet 'Vacations': inclusive date ranges per employee ID, optional description")
    print("  - Sheet 'Public Holidays': dates shaded on the calendar (Country blank = all)")
    print("\nEdit the file, then run again with --from/--to to render a calendar.")


# ── Data Loading ─────────────────────────────────────────────────────────────

def normalize_columns(df, expected):
    """Rename columns to their canonical spelling (case/whitespace-insensitive).
    Returns the set of expected columns still missing."""
    df.columns = [str(c).strip() for c in df.columns]
    canonical = {name.lower(): name for name in expected}
    renames = {}
    for col in df.columns:
        target = canonical.get(col.lower())
        if target and target != col:
            renames[col] = target
    if renames:
        df.rename(columns=renames, inplace=True)
    return {name for name in expected if name not in df.columns}


def _read_sheet(filepath, sheet_name, required, optional=(), missing_ok=False):
    """Read one sheet; returns a DataFrame or None (with a printed reason)."""
    try:
        df = pd.read_excel(filepath, sheet_name=sheet_name)
    except ValueError:
        # Sheet doesn't exist
        if not missing_ok:
            print(f"  WARNING: Workbook has no '{sheet_name}' sheet.")
        return None
    except Exception as e:
        print(f"  WARNING: Could not read {sheet_name} sheet: {e}")
        return None
    if df.empty:
        return None
    missing = normalize_columns(df, set(required) | set(optional)) & set(required)
    if missing:
        print(f"  ERROR: {sheet_name} sheet is missing column(s): {', '.join(sorted(missing))}. "
              f"Found: {', '.join(df.columns)}")
        return None
    return df


def load_employees(filepath):
    """Load employees from the 'Employees' sheet."""
    df = _read_sheet(filepath, "Employees", {"ID", "Name"}, optional={"Color"})
    if df is None:
        return []
    employees = []
    for idx, row in df.iterrows():
        name = clean_str(row["Name"])
        if not name:
            continue  # skip blank rows
        emp_id = parse_id(row["ID"])
        if emp_id is None:
            print(f"  WARNING: Employees row {idx + 2}: '{name}' has no ID, skipping.")
            continue
        color = clean_str(row.get("Color", "")) or DEFAULT_COLOR
        employees.append(Employee(id=emp_id, name=name, color=color))
    return employees


def load_vacations(filepath):
    """Load vacations from the 'Vacations' sheet."""
    df = _read_sheet(filepath, "Vacations", {"Employee ID", "Start Date", "End Date"},
                     optional={"ID", "Description"}, missing_ok=True)
    if df is None:
        return []
    vacations = []
    for idx, row in df.iterrows():
        row_num = idx + 2
        try:
            employee_id = parse_id(row["Employee ID"])
            if employee_id is None:
                continue  # skip blank rows
            vac_id = parse_id(row["ID"]) if "ID" in df.columns else None
            vacations.append(Vacation(
                id=vac_id if vac_id is not None else row_num,
                employee_id=employee_id,
                start_date=parse_date(row["Start Date"], context=f"Vacations row {row_num}, 'Start Date'"),
                end_date=parse_date(row["End Date"], context=f"Vacations row {row_num}, 'End Date'"),
                description=clean_str(row.get("Description", "")),
            ))
        except (ValueError, TypeError) as e:
            print(f"  WARNING: Could not parse vacation row {row_num}: {e}")
    return vacations


def load_public_holidays(filepath):
    """Load public holidays. Returns [] if the sheet is missing."""
    df = _read_sheet(filepath, "Public Holidays", {"Date"},
                     optional={"Name", "Country", "Type"}, missing_ok=True)
    if df is None:
        return []
    holidays = []
    for idx, row in df.iterrows():
        if pd.isna(row["Date"]):
            continue
        try:
            holidays.append(Holiday(
                date=parse_date(row["Date"], context=f"Public Holidays row {idx + 2}, 'Date'"),
                name=clean_str(row.get("Name", "")) or "Holiday",
                country_code=clean_str(row.get("Country", "")).upper(),
                type=clean_str(row.get("Type", "")) or "Public",
            ))
        except (ValueError, TypeError) as e:
            print(f"  WARNING: Could not parse public holiday row {idx + 2}: {e}")
    return holidays


def validate_backup(data):
    """Check a parsed backup snapshot. Returns an error message or None."""
    if not isinstance(data, dict):
        return "Invalid JSON structure"
    version = data.get("version", BACKUP_VERSION)
    if not isinstance(version, int) or isinstance(version, bool):
        return "Invalid version"
    if not isinstance(data.get("employees"), list):
        return "Missing or invalid employees array"
    if not isinstance(data.get("vacations"), list):
        return "Missing or invalid vacations array"
    for emp in data["employees"]:
        if not isinstance(emp, dict) or not isinstance(emp.get("id"), int) or not emp.get("name"):
            return "Invalid employee data: missing id or name"
    for vac in data["vacations"]:
        if (not isinstance(vac, dict)
                or not isinstance(vac.get("id"), int)
                or not isinstance(vac.get("employee_id"), int)
                or not vac.get("start_date")
                or not vac.get("end_date")):
            return "Invalid vacation data: missing required fields"
    employee_ids = {emp["id"] for emp in data["employees"]}
    for vac in data["vacations"]:
        if vac["employee_id"] not in employee_ids:
            return f"Vacation references non-existent employee ID: {vac['employee_id']}"
    if "holidays" in data and not isinstance(data["holidays"], list):
        return "Invalid holidays array"
    return None


def load_backup(filepath):
    """Load a JSON backup snapshot ({version, employees, vacations[, holidays]})."""
    with open(filepath, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid backup {filepath}: {e}") from e
    error = validate_backup(data)
    if error:
        raise ValueError(f"Invalid backup {filepath}: {error}")
    if data.get("version", BACKUP_VERSION) > BACKUP_VERSION:
        print(f"  WARNING: Backup version {data['version']} is newer than supported ({BACKUP_VERSION}).")
    return {
        "employees": [Employee.from_dict(e) for e in data["employees"]],
        "vacations": [Vacation.from_dict(v) for v in data["vacations"]],
        "holidays": [Holiday.from_dict(h) for h in data.get("holidays", [])],
    }


def load_data(filepath):
    """Load employees, vacations and holidays from a workbook or a JSON backup."""
    if filepath.lower().endswith(".json"):
        data = load_backup(filepath)
    else:
        data = {
            "employees": load_employees(filepath),
            "vacations": load_vacations(filepath),
            "holidays": load_public_holidays(filepath),
        }
    if data["holidays"]:
        print(f"  Public holidays: {len(data['holidays'])}")
    return data


# ── Data Access ──────────────────────────────────────────────────────────────

def list_employees(data):
    return list(data["employees"])


def list_vacations_overlapping(data, from_date, to_date):
    """Vacations with at least one day inside [from_date, to_date]."""
    return [v for v in data["vacations"]
            if clip_range(v.start_date, v.end_date, from_date, to_date) is not None]


def list_holidays(data, country_code, from_date, to_date):
    """Holidays inside the window; with a country, also those tagged for it or untagged."""
    code = clean_str(country_code).upper()
    return [h for h in data["holidays"]
            if from_date <= h.date <= to_date
            and (not code or not h.country_code or h.country_code.upper() == code)]


# ── Data Validation ──────────────────────────────────────────────────────────

def validate_data(employees, vacations, holidays=None):
    """Validate loaded data. Returns (errors, warnings) lists."""
    errors = []
    warnings = []

    seen_ids = set()
    for emp in employees:
        if emp.id in seen_ids:
            errors.append(f"Employee ID {emp.id} is used more than once ('{emp.name}').")
        seen_ids.add(emp.id)
        if clean_str(emp.color) and not is_valid_color(emp.color):
            warnings.append(f"Employee '{emp.name}': color '{emp.color}' is not a valid hex code "
                            f"(e.g. #2196F3), using {DEFAULT_COLOR}.")

    for vac in vacations:
        if vac.end_date < vac.start_date:
            errors.append(f"Vacation {vac.id}: end date {vac.end_date.isoformat()} is before "
                          f"start date {vac.start_date.isoformat()}.")
        if vac.employee_id not in seen_ids:
            warnings.append(f"Vacation {vac.id}: employee ID {vac.employee_id} not found, "
                            f"shown as '{UNKNOWN_LABEL}'.")

    if holidays:
        seen_days = {}
        for hol in holidays:
            if hol.date in seen_days:
                warnings.append(f"Public holiday {hol.date.isoformat()}: '{hol.name}' duplicates "
                                f"'{seen_days[hol.date]}', only the first is shown.")
            else:
                seen_days[hol.date] = hol.name

    return errors, warnings


# ── Summary ──────────────────────────────────────────────────────────────────

def print_summary(result, employees, vacations, holidays=None):
    """Print the render outcome and working days away per employee."""
    layout = result.layout
    holiday_days = {h.date for h in holidays_in_window(holidays or (), layout.from_date, layout.to_date)}
    lookup = _index_employees(employees)
    print()
    print("=" * 60)
    print(f"  {CALENDAR_TITLE}: {format_long_date(layout.from_date)} - {format_long_date(layout.to_date)}")
    print("=" * 60)
    view_name = "Timeline" if result.view == "timeline" else "Monthly grid"
    print(f"  View: {view_name} ({layout.days} day{'s' if layout.days != 1 else ''})")
    print(f"  Canvas: {result.width} x {result.height} "
          f"({result.pixel_width} x {result.pixel_height} px)")

    away_days = {}
    for vac, start, end in visible_vacations(vacations, layout.from_date, layout.to_date):
        away_days.setdefault(vac.employee_id, set())
        d = start
        while d <= end:
            if not is_weekend(d) and d not in holiday_days:
                away_days[vac.employee_id].add(d)
            d += timedelta(days=1)
    if away_days:
        print("\n  Working days away:")
        for employee_id, days in away_days.items():
            name, _ = _employee_identity(lookup.get(employee_id))
            print(f"    {name:<25} {len(days):>3}d")
    else:
        print("\n  No vacations in this window.")
    if holiday_days:
        print(f"\n  Public holidays in window: {len(holiday_days)}")
    print("=" * 60)
    print()


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Team Vacation Calendar - render employee vacations for a date window as a PNG"
    )
    parser.add_argument(
        "--template", action="store_true",
        help="Generate an Excel template with example data"
    )
    parser.add_argument(
        "--input", default=DEFAULT_INPUT,
        help="Excel workbook or JSON backup (default: vacation_data.xlsx)"
    )
    parser.add_argument(
        "--outdir", default=DEFAULT_OUTDIR,
        help="Output directory (default: output/)"
    )
    parser.add_argument(
        "--output-name", default=DEFAULT_OUTPUT_NAME,
        help="Output file name (default: vacation_calendar.png)"
    )
    parser.add_argument(
        "--from", dest="date_from", default=None,
        help="First day of the window (YYYY-MM-DD, default: first day of this month)"
    )
    parser.add_argument(
        "--to", dest="date_to", default=None,
        help="Last day of the window (YYYY-MM-DD, default: last day of this month)"
    )
    parser.add_argument(
        "--country", default="",
        help="ISO country code for the holiday legend and holiday filtering (e.g. AT)"
    )
    parser.add_argument(
        "--scale", type=int, default=DEFAULT_CONFIG.scale,
        help="Device pixels per logical pixel (default: 2)"
    )
    args = parser.parse_args(argv)

    if args.template:
        generate_template(args.input)
        return

    if not os.path.exists(args.input):
        print(f"Error: Input file not found: {args.input}")
        print("Run with --template first to create a template.")
        sys.exit(1)

    if args.scale < 1:
        print(f"  ERROR: Invalid --scale {args.scale}. Use a positive integer.")
        sys.exit(1)

    # Parse date window
    today = date.today()
    date_from = today.replace(day=1)
    date_to = today.replace(day=monthrange(today.year, today.month)[1])
    if args.date_from:
        try:
            date_from = datetime.strptime(args.date_from, "%Y-%m-%d").date()
        except ValueError:
            print(f"  ERROR: Invalid --from date '{args.date_from}'. Use YYYY-MM-DD format.")
            sys.exit(1)
    if args.date_to:
        try:
            date_to = datetime.strptime(args.date_to, "%Y-%m-%d").date()
        except ValueError:
            print(f"  ERROR: Invalid --to date '{args.date_to}'. Use YYYY-MM-DD format.")
            sys.exit(1)
    if date_to < date_from:
        print(f"  ERROR: --to ({date_to.isoformat()}) is before --from ({date_from.isoformat()}).")
        sys.exit(1)

    # Load
    print(f"Loading data from: {args.input}")
    try:
        data = load_data(args.input)
    except (OSError, ValueError) as e:
        print(f"  ERROR: {e}")
        sys.exit(1)
    print(f"  Employees: {len(data['employees'])}")
    print(f"  Vacations: {len(data['vacations'])}")

    # Validate
    errors, warnings = validate_data(data["employees"], data["vacations"], data["holidays"])
    for w in warnings:
        print(f"  WARNING: {w}")
    if errors:
        for e in errors:
            print(f"  ERROR: {e}")
        sys.exit(1)

    employees = list_employees(data)
    vacations = list_vacations_overlapping(data, date_from, date_to)
    holidays = list_holidays(data, args.country, date_from, date_to)
    print(f"  Window: {format_long_date(date_from)} - {format_long_date(date_to)} "
          f"({len(vacations)} vacation(s), {len(holidays)} holiday(s))")

    config = replace(DEFAULT_CONFIG, scale=args.scale)
    result = render(date_from, date_to, employees, vacations, holidays,
                    country_label=args.country, config=config)
    output_path = save_render(result, os.path.join(args.outdir, args.output_name))
    print_summary(result, employees, vacations, holidays)

    print("  Output:")
    print(f"    {os.path.abspath(output_path)}")
    print("\nDone.")


if __name__ == "__main__":
    main()
