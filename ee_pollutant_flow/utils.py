import re

import ee

from ee_pollutant_flow.errors import InvalidWindowError
from ee_pollutant_flow.models import DATE_FMT, MonthlyBucket, TimeWindow

"""
Collection of stateless functions: calendar bucketing, date window parsing and
small Earth Engine helpers shared by the query backend.
"""

SUPPORTED_CADENCES = ['month']


def monthIndex(date):
    """Months elapsed since year 0, January; integer arithmetic only."""
    return date.year * 12 + (date.month - 1)


def bucketFor(index, anchorYear):
    """
    Calendar month `index` months after January of anchorYear, as a full-month
    TimeWindow. E.g. bucketFor(11, 2019) spans 2019-12-01 to 2020-01-01.
    """
    year, month0 = divmod(anchorYear * 12 + index, 12)
    return MonthlyBucket(year, month0 + 1).window


def bucketLabel(year, month):
    return f"{year:04d}-{month:02d}"


def countBuckets(window):
    """
    Number of calendar months touched by the half-open window. A trailing month
    counts when the exclusive end lies after its first day.
    """
    n = monthIndex(window.end) - monthIndex(window.start)
    if window.end.day > 1:
        n += 1
    return n


def _check_cadence(cadence):
    if cadence not in SUPPORTED_CADENCES:
        raise InvalidWindowError(
            f"cadence must be in {SUPPORTED_CADENCES}; received {cadence}")


def monthlyBuckets(window, cadence='month'):
    """MonthlyBucket for every calendar month touched by window, in order."""
    _check_cadence(cadence)
    n = countBuckets(window)
    if n < 1:
        raise InvalidWindowError(f"Window {window} spans zero buckets")

    first = monthIndex(window.start)
    return [MonthlyBucket(*_year_month(first + i)) for i in range(n)]


def listBuckets(window, cadence='month'):
    """
    Partition window into consecutive, non-overlapping monthly windows whose
    union is exactly window. Inner buckets are whole calendar months; the first
    and last are clipped to the window edges when it starts or ends mid-month.
    """
    buckets = []
    for bucket in monthlyBuckets(window, cadence):
        full = bucket.window
        buckets.append(TimeWindow(max(full.start, window.start), min(full.end, window.end)))
    return buckets


def _year_month(month_index):
    year, month0 = divmod(month_index, 12)
    return year, month0 + 1


def parseWindow(window_cfg, date_fmt=DATE_FMT):
    """TimeWindow from a roi_configs entry {'date_start', 'date_end'}."""
    try:
        start = window_cfg['date_start']
        end = window_cfg['date_end']
    except (KeyError, TypeError):
        raise InvalidWindowError(
            f"Date window must contain 'date_start' and 'date_end'; got {window_cfg}")
    return TimeWindow.from_strings(start, end, date_fmt)


def linearRescale(value, scale, offset):
    """Raw digital number to physical units; works on scalars and numpy arrays."""
    return value * scale + offset


def matchingBands(band_names, pattern):
    """Bands fully matching an Earth Engine select() style regex."""
    regex = re.compile(pattern)
    return [b for b in band_names if regex.fullmatch(b)]


def get_date_range_overlap(range1, range2):
    overlap_start = max(range1.start, range2.start)
    overlap_end = min(range1.end, range2.end)

    if overlap_start >= overlap_end: return None

    return TimeWindow(overlap_start, overlap_end)


# ------- EarthEngine functions ------- #

def regionToGeometry(region):
    if region.is_multi:
        return ee.Geometry.MultiPolygon([[list(ring)] for ring in region.coordinates()])
    return ee.Geometry.Polygon(region.coordinates())


def dateToEeDate(date):
    return ee.Date(date.strftime(DATE_FMT))


def buildFilters(filter_cfgs):
    """
    Turn [{'type': ..., 'args': [...]}, ...] (config/datasets.py) into ee.Filters.
    """
    filters = []
    for f in filter_cfgs:
        assert hasattr(ee.Filter, f['type']), f"Invalid filter type: {f['type']}"
        filter_class = getattr(ee.Filter, f['type'])
        filters.append(filter_class(*f['args']))
    return filters


def genRescaleFunction(rescale_groups):
    """
    Bind the per-band-group scale factors to a function that can be mapped over
    an ee.ImageCollection. Rescaled bands overwrite the raw ones in place.
    """
    def applyScaleFactors(image):
        image = ee.Image(image)
        for group in rescale_groups:
            scaled = image.select(group['pattern']) \
                .multiply(group['scale']).add(group['offset'])
            image = image.addBands(scaled, None, True)
        return image

    return applyScaleFactors


def temporalReduce(collection, reducer):
    """Pixel-wise reduction of an ee.ImageCollection over time."""
    supported = {
        'mean': collection.mean,
        'max': collection.max,
        'median': collection.median,
    }
    if reducer not in supported:
        raise ValueError(f"reducer must be in {list(supported)}; received {reducer}")
    return supported[reducer]()
