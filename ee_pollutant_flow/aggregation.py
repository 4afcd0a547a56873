import logging
from concurrent.futures import ThreadPoolExecutor, as_completed

from tqdm import tqdm

from ee_pollutant_flow.errors import MissingDataError
from ee_pollutant_flow.models import AggregatedSample, MonthlyBucket, RasterComposite
from ee_pollutant_flow.queries import (
    DEFAULT_BEST_EFFORT, DEFAULT_MAX_PIXELS, DEFAULT_SCALE, buildQuery, getBand)
from ee_pollutant_flow.utils import bucketFor, bucketLabel, listBuckets, monthlyBuckets

"""
Monthly aggregation and period compositing.

Both operate on a backend exposing execute(QuerySpec); in production this is
eeBackendInterface, in tests a fake. Region and windows are always passed in
explicitly, nothing is read from module-level configuration.
"""

logger = logging.getLogger(__name__)

__all__ = [
    'aggregate',
    'aggregateSeries',
    'bucketFor',
    'composite',
    'countImages',
    'listBuckets',
    'missingBuckets',
    'monthlyBuckets',
]


def _bucketWindowAndLabel(bucket):
    if isinstance(bucket, MonthlyBucket):
        return bucket.window, bucket.label
    return bucket, bucketLabel(bucket.start.year, bucket.start.month)


def aggregate(
        band,
        collection_id,
        region,
        bucket,
        backend,
        scale=DEFAULT_SCALE,
        max_pixels=DEFAULT_MAX_PIXELS,
        best_effort=DEFAULT_BEST_EFFORT
    ):
    """
    Areal mean of the monthly mean composite of one band.

    Args:
        - band (str): band name, e.g. 'CO_column_number_density'
        - collection_id (str): Earth Engine collection id
        - region (Region)
        - bucket (MonthlyBucket or TimeWindow): a TimeWindow is labelled by the
            month it starts in
        - backend: object with execute(QuerySpec)
        - scale (m), max_pixels, best_effort: reduceRegion parameters

    Returns: AggregatedSample; value is None when no imagery covers the bucket.
    """
    window, label = _bucketWindowAndLabel(bucket)
    spec = buildQuery('spatial', collection_id, region, window, bands=[band],
                      reducer='mean', scale=scale, max_pixels=max_pixels,
                      best_effort=best_effort)
    try:
        value = backend.execute(spec)
    except MissingDataError:
        logger.warning("No %s imagery for %s; recording a missing sample", band, label)
        return AggregatedSample(label, None, window)

    valid_range = getBand(collection_id, band).valid_range
    if valid_range and not valid_range[0] <= value <= valid_range[1]:
        logger.warning("%s mean %s for %s outside expected range %s",
                       band, value, label, valid_range)
    return AggregatedSample(label, value, window)


def aggregateSeries(
        band,
        collection_id,
        region,
        window,
        backend,
        cadence='month',
        max_workers=1,
        progress=True,
        **reduce_kwargs
    ):
    """
    One AggregatedSample per calendar month of window, in chronological order.

    Buckets are independent, so with max_workers > 1 they are queried from a
    thread pool; completion order never affects the returned order.
    """
    buckets = monthlyBuckets(window, cadence)
    windows = listBuckets(window, cadence)

    # Validate band/reducer before anything reaches the backend
    buildQuery('spatial', collection_id, region, windows[0], bands=[band], reducer='mean')

    def run(i):
        sample = aggregate(band, collection_id, region, windows[i], backend, **reduce_kwargs)
        # Label by calendar month even when the bucket is clipped to the window
        return AggregatedSample(buckets[i].label, sample.value, sample.window)

    desc = f"{band} monthly"
    samples = [None] * len(windows)
    if max_workers <= 1:
        for i in tqdm(range(len(windows)), desc=desc, disable=not progress):
            samples[i] = run(i)
        return samples

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {executor.submit(run, i): i for i in range(len(windows))}
        for future in tqdm(as_completed(futures), total=len(futures), desc=desc,
                           disable=not progress):
            samples[futures[future]] = future.result()
    return samples


def missingBuckets(samples):
    """Labels of samples without data, in series order."""
    return [s.label for s in samples if s.is_missing]


def composite(
        band,
        collection_id,
        region,
        window,
        reducer,
        backend,
        vis_params=None
    ):
    """
    Temporal composite of one or more bands over window, clipped to region.

    Args:
        - band (str or list[str]): band(s) to keep in the composite
        - collection_id (str)
        - region (Region)
        - window (TimeWindow)
        - reducer (str): 'mean' or 'max' ('median' where the band allows it)
        - backend: object with execute(QuerySpec)
        - vis_params (dict): min/max/palette/bands used when the composite is
            displayed

    Raises:
        - MissingDataError: no image survives the window, region and metadata
            filters, so there is nothing to display
    """
    spec = buildQuery('temporal', collection_id, region, window,
                      bands=band, reducer=reducer)
    image = backend.execute(spec)
    return RasterComposite(
        collection=collection_id,
        bands=spec.bands,
        reducer=reducer,
        window=window,
        region=region,
        image=image,
        vis_params=dict(vis_params or {}))


def countImages(collection_id, region, window, backend):
    """Number of images left after the dataset's date, bounds and metadata filters."""
    return backend.execute(buildQuery('count', collection_id, region, window))
