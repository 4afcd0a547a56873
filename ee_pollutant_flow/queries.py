from dataclasses import dataclass
from typing import Optional, Tuple

from ee_pollutant_flow.config.datasets import datasets
from ee_pollutant_flow.errors import UnsupportedBandError
from ee_pollutant_flow.models import PollutantBand, Region, TimeWindow
from ee_pollutant_flow.utils import matchingBands

"""
Query construction, the first of two phases.

buildQuery() is pure: it validates a request against the dataset catalog and
returns a QuerySpec describing exactly what the backend must compute. Nothing
here touches Earth Engine, so an invalid band or reducer is rejected before any
request is sent. eeBackendInterface.execute() is the second phase.
"""

QUERY_KINDS = ['spatial', 'temporal', 'count']
SPATIAL_REDUCERS = ['mean']

DEFAULT_SCALE = 5000
DEFAULT_MAX_PIXELS = 1e8
DEFAULT_BEST_EFFORT = True


@dataclass(frozen=True)
class QuerySpec:
    """
    Everything needed to evaluate one backend request.

    Attributes:
        - kind (str): 'spatial' (temporal reduce then areal reduce to a scalar),
            'temporal' (temporal reduce to a clipped raster) or 'count' (number
            of images after filtering)
        - collection (str): Earth Engine ImageCollection id
        - region (Region)
        - window (TimeWindow)
        - bands (tuple[str])
        - reducer (str): temporal reducer, or None for 'count'
        - spatial_reducer (str): areal reducer for 'spatial' queries
        - scale, max_pixels, best_effort: reduceRegion parameters
        - filters (tuple[dict]): metadata filters in config/datasets.py format
        - rescale (tuple[dict]): band groups rescaled before reduction
    """
    kind: str
    collection: str
    region: Region
    window: TimeWindow
    bands: Tuple[str, ...] = ()
    reducer: Optional[str] = None
    spatial_reducer: Optional[str] = None
    scale: Optional[float] = None
    max_pixels: Optional[float] = None
    best_effort: Optional[bool] = None
    filters: Tuple[dict, ...] = ()
    rescale: Tuple[dict, ...] = ()

    def describe(self):
        return (f"{self.kind} {self.collection} [{', '.join(self.bands)}] "
                f"{self.reducer or ''} {self.window}").strip()


def datasetForCollection(collection_id):
    """Catalog entry registered for an Earth Engine collection id."""
    for cfg in datasets.values():
        if cfg['collection'] == collection_id:
            return cfg
    raise UnsupportedBandError(f"Collection {collection_id} is not in the dataset catalog")


def getBand(collection_id, band):
    cfg = datasetForCollection(collection_id)
    if band not in cfg['bands']:
        raise UnsupportedBandError(
            f"Band {band} not available in {collection_id}; "
            f"expected one of {sorted(cfg['bands'])}")
    band_cfg = cfg['bands'][band]
    valid_range = band_cfg.get('valid_range')
    return PollutantBand(
        name=band,
        unit=band_cfg.get('unit', ''),
        valid_range=tuple(valid_range) if valid_range else None,
        reducers=tuple(band_cfg.get('reducers', ['mean'])))


def buildQuery(
        kind,
        collection_id,
        region,
        window,
        bands=(),
        reducer=None,
        scale=DEFAULT_SCALE,
        max_pixels=DEFAULT_MAX_PIXELS,
        best_effort=DEFAULT_BEST_EFFORT
    ):
    """
    Validate a request and describe it as a QuerySpec.

    Args:
        - kind (str): one of QUERY_KINDS
        - collection_id (str): Earth Engine collection id registered in datasets
        - region (Region)
        - window (TimeWindow)
        - bands (str or list[str]): exact band names; one band for 'spatial'
        - reducer (str): temporal reducer; must be in every band's contract
        - scale, max_pixels, best_effort: only used by 'spatial' queries

    Raises:
        - UnsupportedBandError: unknown collection or band, or reducer outside a
            band's aggregation contract
        - ValueError: unknown kind or malformed request
    """
    if kind not in QUERY_KINDS:
        raise ValueError(f"kind must be in {QUERY_KINDS}; received {kind}")
    if not isinstance(region, Region):
        raise TypeError(f"region must be a Region; received {type(region)}")
    if not isinstance(window, TimeWindow):
        raise TypeError(f"window must be a TimeWindow; received {type(window)}")

    cfg = datasetForCollection(collection_id)
    if isinstance(bands, str): bands = [bands]
    bands = tuple(bands)

    if kind != 'count':
        if not bands:
            raise ValueError(f"{kind} query on {collection_id} needs at least one band")
        if reducer is None:
            raise ValueError(f"{kind} query on {collection_id} needs a reducer")
        for band in bands:
            pollutant_band = getBand(collection_id, band)
            if not pollutant_band.supports(reducer):
                raise UnsupportedBandError(
                    f"Band {band} of {collection_id} only supports "
                    f"{list(pollutant_band.reducers)} aggregation; received {reducer}")

    if kind == 'spatial' and len(bands) != 1:
        raise ValueError(f"spatial query reduces exactly one band; received {list(bands)}")

    rescale = tuple(
        group for group in cfg.get('rescale', [])
        if matchingBands(bands, group['pattern'])
    )

    spatial = kind == 'spatial'
    return QuerySpec(
        kind=kind,
        collection=collection_id,
        region=region,
        window=window,
        bands=bands,
        reducer=reducer if kind != 'count' else None,
        spatial_reducer=SPATIAL_REDUCERS[0] if spatial else None,
        scale=scale if spatial else None,
        max_pixels=max_pixels if spatial else None,
        best_effort=best_effort if spatial else None,
        filters=tuple(cfg.get('filters', [])),
        rescale=rescale
    )
