import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

from shapely.geometry import MultiPolygon, Polygon
from shapely.validation import explain_validity

from ee_pollutant_flow.errors import InvalidRegionError, InvalidWindowError

"""
Plain value types passed between configuration, query building, the Earth Engine
backend and presentation. None of these hold ee proxy objects except
RasterComposite.image, which is whatever the backend handed back.
"""

DATE_FMT = '%Y-%m-%d'


def _to_date(value, date_fmt=DATE_FMT):
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    try:
        return dt.datetime.strptime(value, date_fmt).date()
    except (TypeError, ValueError):
        raise InvalidWindowError(
            f"Could not parse date {value!r}; expected format {date_fmt}")


@dataclass(frozen=True)
class TimeWindow:
    """Half-open date interval [start, end)."""
    start: dt.date
    end: dt.date

    def __post_init__(self):
        object.__setattr__(self, 'start', _to_date(self.start))
        object.__setattr__(self, 'end', _to_date(self.end))
        if not self.start < self.end:
            raise InvalidWindowError(
                f"Window end {self.end} must be after start {self.start}")

    @classmethod
    def from_strings(cls, start, end, date_fmt=DATE_FMT):
        return cls(_to_date(start, date_fmt), _to_date(end, date_fmt))

    @property
    def days(self):
        return (self.end - self.start).days

    def __str__(self):
        return f"{self.start.strftime(DATE_FMT)} to {self.end.strftime(DATE_FMT)}"


@dataclass(frozen=True)
class MonthlyBucket:
    """One calendar month; its window always spans exactly that month."""
    year: int
    month: int

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise InvalidWindowError(f"Month must be in 1-12; received {self.month}")

    @property
    def label(self):
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def window(self):
        start = dt.date(self.year, self.month, 1)
        end = dt.date(self.year + self.month // 12, self.month % 12 + 1, 1)
        return TimeWindow(start, end)


@dataclass(frozen=True)
class AggregatedSample:
    """
    Scalar statistic for one bucket. value is None when the backend had no
    imagery for the bucket; it is never replaced by 0.
    """
    label: str
    value: Optional[float]
    window: Optional[TimeWindow] = None

    @property
    def is_missing(self):
        return self.value is None


@dataclass(frozen=True)
class PollutantBand:
    name: str
    unit: str = ''
    valid_range: Optional[Tuple[float, float]] = None
    reducers: Tuple[str, ...] = ('mean',)

    def supports(self, reducer):
        return reducer in self.reducers


@dataclass(frozen=True)
class Region:
    """
    Area of interest as one or more closed (lon, lat) rings. More than one ring
    is treated as a multi-polygon.
    """
    rings: Tuple[Tuple[Tuple[float, float], ...], ...]

    def __post_init__(self):
        if not self.rings:
            raise InvalidRegionError("Region has no rings")
        rings = []
        for ring in self.rings:
            ring = tuple((float(lon), float(lat)) for lon, lat in ring)
            if len(ring) < 4:
                raise InvalidRegionError(
                    f"Ring needs at least 4 vertices (closed triangle); got {len(ring)}")
            if ring[0] != ring[-1]:
                raise InvalidRegionError(
                    f"Ring is not closed: first vertex {ring[0]} != last {ring[-1]}")
            rings.append(ring)
        object.__setattr__(self, 'rings', tuple(rings))

        shape = self.to_shapely()
        if shape.is_empty or not shape.is_valid:
            raise InvalidRegionError(f"Invalid region geometry: {explain_validity(shape)}")

    @classmethod
    def from_coords(cls, coords):
        """
        Build from a single ring ([[lon, lat], ...]) or a list of rings
        ([[[lon, lat], ...], ...]), as written in roi_configs.
        """
        if not coords:
            raise InvalidRegionError("Region coordinates are empty")
        if isinstance(coords[0][0], (int, float)):
            coords = [coords]
        return cls(tuple(tuple(tuple(v) for v in ring) for ring in coords))

    @property
    def is_multi(self):
        return len(self.rings) > 1

    def to_shapely(self):
        polygons = [Polygon(ring) for ring in self.rings]
        if len(polygons) == 1:
            return polygons[0]
        return MultiPolygon(polygons)

    def centroid(self):
        """(lat, lon) of the region centroid, in the order folium expects."""
        c = self.to_shapely().centroid
        return [c.y, c.x]

    def coordinates(self):
        return [[list(v) for v in ring] for ring in self.rings]


@dataclass(frozen=True)
class RasterComposite:
    """A temporally reduced image clipped to a region, ready for map display."""
    collection: str
    bands: Tuple[str, ...]
    reducer: str
    window: TimeWindow
    region: Region
    image: Any = field(compare=False, repr=False)
    vis_params: dict = field(default_factory=dict, compare=False)
