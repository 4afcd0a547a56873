import math
import logging
from collections import namedtuple

import folium
import matplotlib.pyplot as plt

from ee_pollutant_flow.aggregation import missingBuckets

"""
Rendering of pipeline results: line charts for monthly series, a folium map of
Earth Engine tile layers and a plain-text summary report. Nothing here talks to
Earth Engine directly; tile URLs come from the backend's tileUrl().
"""

logger = logging.getLogger(__name__)

EE_ATTRIBUTION = 'Map Data &copy; Google Earth Engine'

# (composite, vis_params, name, shown, opacity)
MapLayer = namedtuple('MapLayer', ['composite', 'vis_params', 'name', 'shown', 'opacity'])


def seriesValues(samples):
    """Chart y-values; missing samples become NaN so they plot as gaps, not zeros."""
    return [math.nan if s.value is None else s.value for s in samples]


def plotMonthlySeries(samples, title, ylabel, color='blue', path=None):
    """
    Line chart of AggregatedSamples, one point per month.

    Returns the matplotlib Figure. When path is given the figure is saved there
    and closed.
    """
    labels = [s.label for s in samples]
    values = seriesValues(samples)

    fig, ax = plt.subplots(figsize=(12, 5))
    ax.plot(labels, values, color=color, linewidth=2, marker='o', markersize=5)
    ax.set_title(title)
    ax.set_xlabel('Month')
    ax.set_ylabel(ylabel)
    ax.tick_params(axis='x', labelrotation=45)
    ax.grid(True, alpha=0.3)
    fig.tight_layout()

    if path is not None:
        fig.savefig(path, dpi=150)
        plt.close(fig)
        logger.info("Saved chart '%s' to %s", title, path)
    return fig


def buildMap(layers, center, zoom, tile_url_fn):
    """
    folium.Map with one tile overlay per MapLayer, in the order given.

    Args:
        - layers (list[MapLayer])
        - center ([lat, lon])
        - zoom (int)
        - tile_url_fn (callable): (image, vis_params) -> XYZ tile URL template
    """
    m = folium.Map(location=center, zoom_start=zoom)
    for layer in layers:
        url = tile_url_fn(layer.composite.image, layer.vis_params)
        folium.raster_layers.TileLayer(
            tiles=url,
            attr=EE_ATTRIBUTION,
            name=layer.name,
            overlay=True,
            control=True,
            show=layer.shown,
            opacity=layer.opacity
        ).add_to(m)
        logger.debug("Added map layer %s", layer.name)
    folium.LayerControl().add_to(m)
    return m


def summaryReport(
        description,
        region,
        periods,
        dataset_descriptions,
        series=None,
        image_counts=None,
        skipped_layers=None
    ):
    """
    Plain-text summary of a run.

    Args:
        - description (str): study area name
        - region (Region)
        - periods (dict): {label: TimeWindow}, printed in insertion order
        - dataset_descriptions (list[str])
        - series (dict): {name: list[AggregatedSample]}
        - image_counts (dict): {label: int}
        - skipped_layers (list[str]): map layers left out for lack of imagery
    """
    series = series or {}
    image_counts = image_counts or {}
    skipped_layers = skipped_layers or []

    lines = ['=== SUMMARY ===']
    lines.append(f"Study Area: {description}")
    for label, window in periods.items():
        lines.append(f"{label}: {window} ({window.days} days, end exclusive)")
    lines.append(f"AOI Coordinates: {region.coordinates()}")

    if series:
        lines.append('')
        lines.append('MONTHLY SERIES:')
        for name, samples in series.items():
            missing = missingBuckets(samples)
            lines.append(
                f"- {name}: {len(samples)} months "
                f"({samples[0].label} to {samples[-1].label}), "
                f"{len(samples) - len(missing)} with data")
            if missing:
                lines.append(f"  missing data: {', '.join(missing)}")

    if image_counts:
        lines.append('')
        lines.append('IMAGE COUNTS:')
        for label, count in image_counts.items():
            lines.append(f"- {label}: {count}")

    if skipped_layers:
        lines.append('')
        lines.append('SKIPPED MAP LAYERS (no imagery in window):')
        for name in skipped_layers:
            lines.append(f"- {name}")

    lines.append('')
    lines.append('DATASETS ANALYZED:')
    for i, name in enumerate(dataset_descriptions, start=1):
        lines.append(f"{i}. {name}")

    return '\n'.join(lines)
