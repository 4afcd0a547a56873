import ee
import time
import logging

import ee_pollutant_flow.utils as utils
from ee_pollutant_flow.errors import (
    BackendUnavailableError, InvalidRegionError, MissingDataError, UnsupportedBandError)

logger = logging.getLogger(__name__)

# Fragments of EEException messages worth retrying
TRANSIENT_ERROR_MARKERS = [
    'too many',
    'capacity exceeded',
    'rate limit',
    'quota',
    'deadline',
    'timed out',
    'timeout',
    'service unavailable',
    'internal error',
    'backend error',
    '429',
    '503',
]

GEOMETRY_ERROR_MARKERS = ['geometry', 'polygon', 'self-intersect', 'loop']
BAND_ERROR_MARKERS = ['did not match any bands', 'band not found']


class eeBackendInterface:
    """
    Evaluate QuerySpecs against Google Earth Engine.

    This is the second phase of the two-phase query design: queries.buildQuery()
    describes the work, execute() turns the description into ee proxy objects and,
    where a number is needed, asks Earth Engine for it. Everything heavy (filtering,
    compositing, reduction) happens on Google's backend
    (https://developers.google.com/earth-engine/guides/client_server).

    'spatial' and 'count' queries block until their number arrives. 'temporal'
    queries only ask for the image count, then return a lazy ee.Image that is
    evaluated when its map tiles are requested.

    Each blocking call runs under an Earth Engine request deadline and is retried
    with exponential backoff on transient failures.

    Attributes:
        - project (str): Google Cloud project used to initialize ee (or None)
        - deadline_ms (int): per-request deadline passed to ee.data.setDeadline
        - max_retries (int): retries after the first attempt
        - backoff_seconds (float): first retry delay; doubles on each retry
    """
    def __init__(
            self,
            project=None,
            initialize=True,
            deadline_ms=120000,
            max_retries=3,
            backoff_seconds=2.0
        ):
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0; received {max_retries}")
        self.project = project
        self.deadline_ms = deadline_ms
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds

        # --- Initialize ee client --- #
        if initialize:
            if project: ee.Initialize(project=project)
            else: ee.Initialize()
        if deadline_ms:
            ee.data.setDeadline(deadline_ms)


    def __str__(self):
        return (f"eeBackendInterface(project={self.project}, deadline={self.deadline_ms}ms, "
                f"retries={self.max_retries}, backoff={self.backoff_seconds}s)")


    def execute(self, spec):
        """
        Evaluate one QuerySpec.

        Returns:
            - 'spatial': float, areal statistic of the temporal composite
            - 'temporal': ee.Image clipped to the region
            - 'count': int, number of images matching the filters

        Raises:
            - MissingDataError: 'spatial' or 'temporal' query found no imagery
                in the window and region ('spatial' also when only masked
                pixels remain)
            - BackendUnavailableError: transient failures outlasted the retries
        """
        logger.debug("Executing %s", spec.describe())
        if spec.kind == 'spatial':
            return self._executeSpatial(spec)
        if spec.kind == 'temporal':
            return self._executeTemporal(spec)
        if spec.kind == 'count':
            return self._executeCount(spec)
        raise ValueError(f"Unknown query kind {spec.kind}")


    def thresholdImage(self, image, value):
        """Binary mask of pixels strictly above value (e.g. fire points)."""
        return ee.Image(image).gt(value)


    def tileUrl(self, image, vis_params):
        """XYZ tile URL template for an image styled with vis_params."""
        map_id = self._withRetry(
            lambda: ee.Image(image).getMapId(vis_params), 'getMapId')
        return map_id['tile_fetcher'].url_format


    # ------- Query evaluation ------- #

    def _baseCollection(self, spec):
        """Date, bounds and metadata filters, plus band-group rescaling."""
        roi = utils.regionToGeometry(spec.region)
        coll = (ee.ImageCollection(spec.collection)
            .filterBounds(roi)
            .filterDate(utils.dateToEeDate(spec.window.start),
                        utils.dateToEeDate(spec.window.end))
        )
        for filt in utils.buildFilters(spec.filters):
            coll = coll.filter(filt)
        if spec.rescale:
            coll = coll.map(utils.genRescaleFunction(spec.rescale))
        return coll, roi


    def _executeSpatial(self, spec):
        band = spec.bands[0]
        coll, roi = self._baseCollection(spec)
        n_images = coll.size()

        # A fully masked placeholder keeps the composite's band present when the
        # window holds no imagery; reduceRegion then yields null instead of failing.
        placeholder = ee.Image.constant(0).toFloat().rename(band).updateMask(0)
        stack = coll.select([band]).merge(ee.ImageCollection([placeholder]))
        composite = utils.temporalReduce(stack, spec.reducer)

        stats = composite.reduceRegion(
            reducer=getattr(ee.Reducer, spec.spatial_reducer)(),
            geometry=roi,
            scale=spec.scale,
            bestEffort=spec.best_effort,
            maxPixels=spec.max_pixels
        )
        result = self._getInfo(
            ee.Dictionary({'count': n_images, 'value': stats.get(band)}),
            spec)

        if not result['count'] or result['value'] is None:
            raise MissingDataError(spec.collection, spec.window)
        return float(result['value'])


    def _executeTemporal(self, spec):
        coll, roi = self._baseCollection(spec)
        # The composite of an empty collection has no bands and cannot be displayed
        if not self._getInfo(coll.size(), spec):
            raise MissingDataError(spec.collection, spec.window)
        reduced = utils.temporalReduce(coll.select(list(spec.bands)), spec.reducer)
        return reduced.clip(roi)


    def _executeCount(self, spec):
        coll, _ = self._baseCollection(spec)
        return int(self._getInfo(coll.size(), spec))


    # ------- Retry handling ------- #

    def _getInfo(self, ee_obj, spec=None):
        what = spec.describe() if spec is not None else type(ee_obj).__name__
        return self._withRetry(ee_obj.getInfo, what)


    def _withRetry(self, call, what):
        delay = self.backoff_seconds
        last_error = None
        for attempt in range(self.max_retries + 1):
            try:
                return call()
            except ee.EEException as e:
                self._raiseIfPermanent(e, what)
                last_error = e
            except (ConnectionError, TimeoutError) as e:
                last_error = e

            if attempt < self.max_retries:
                logger.warning("Attempt %d/%d failed for %s (%s); retrying in %.1fs",
                               attempt + 1, self.max_retries + 1, what, last_error, delay)
                time.sleep(delay)
                delay *= 2

        raise BackendUnavailableError(
            f"Earth Engine unavailable for {what} after {self.max_retries + 1} attempts: "
            f"{last_error}",
            attempts=self.max_retries + 1,
            cause=last_error) from last_error


    def _raiseIfPermanent(self, error, what):
        msg = str(error).lower()
        if any(m in msg for m in BAND_ERROR_MARKERS):
            raise UnsupportedBandError(f"{what}: {error}") from error
        if any(m in msg for m in TRANSIENT_ERROR_MARKERS):
            return
        if any(m in msg for m in GEOMETRY_ERROR_MARKERS):
            raise InvalidRegionError(f"{what}: {error}") from error
        raise error
