import os
import logging
import warnings
from dataclasses import replace

import ee_pollutant_flow.utils as utils
import ee_pollutant_flow.presentation as presentation
from ee_pollutant_flow import aggregation
from ee_pollutant_flow.config.datasets import datasets
from ee_pollutant_flow.config.roi_configs import roi_configs
from ee_pollutant_flow.eeBackendInterface import eeBackendInterface
from ee_pollutant_flow.errors import MissingDataError
from ee_pollutant_flow.models import Region
from ee_pollutant_flow.queries import buildQuery

logger = logging.getLogger(__name__)

PERIOD_KEYS = ['time_series', 'fire_period', 'aerosol_period']
PERIOD_LABELS = {
    'time_series': 'Time Series Period',
    'fire_period': 'Fire Period',
    'aerosol_period': 'Aerosol Index Period',
}


class PollutantFlowAnalysis:
    """
    Monthly pollutant series and fire-period map composites for one RoI.

    The RoI configuration (config/roi_configs.py) is validated entirely on init:
    region geometry, date windows, and every series/layer request is run through
    queries.buildQuery so that a bad band or reducer fails before Earth Engine is
    contacted. The region and windows are then passed explicitly to every
    aggregation call.

    Attributes:
        - roi_name (str): Name of region of interest (roi_configs entry)
        - config (dict): Configuration dictionary for the given RoI
        - region (Region): validated area of interest
        - periods (dict): {period key: TimeWindow}
        - backend: object with execute(QuerySpec), thresholdImage() and tileUrl()
        - max_workers (int): thread pool size for the monthly queries
        - skipped_layers (list[str]): map layers left out of the last mapLayers()
            call because their window held no imagery
    """
    def __init__(self, roi, backend=None, max_workers=1, progress=True):
        """
        Args:
            - roi (str): key in config.roi_configs
            - backend: defaults to an eeBackendInterface (initializes ee)
            - max_workers (int: default 1): parallel monthly queries
            - progress (bool: default True): show tqdm progress bars
        """
        # --- Input checking --- #
        roi = roi.lower()
        if roi not in roi_configs:
            raise ValueError(f"'{roi}' is not registered in roi_configs")
        self.roi_name = roi
        self.config = roi_configs[roi]

        if 'roi_coords' not in self.config:
            raise ValueError(
                "roi_coords (list of [lon, lat]) should be specified in roi_configs")
        self.region = Region.from_coords(self.config['roi_coords'])

        self.periods = {
            key: utils.parseWindow(self.config[key])
            for key in PERIOD_KEYS if key in self.config
        }
        for key in ['time_series', 'fire_period']:
            if key not in self.periods:
                raise ValueError(f"'{key}' date window missing for {roi} in roi_configs")
        if 'aerosol_period' not in self.periods:
            self.periods['aerosol_period'] = self.periods['fire_period']

        if utils.get_date_range_overlap(
                self.periods['fire_period'], self.periods['time_series']) is None:
            warnings.warn(f"fire_period for {roi} lies outside its time_series window")

        self.reduction = self.config.get('reduction', {})
        self.max_workers = max_workers
        self.progress = progress
        self.skipped_layers = []

        self._validateRequests()

        if backend is None:
            backend = eeBackendInterface()
        self.backend = backend


    def __str__(self):
        lines = [f"PollutantFlowAnalysis for {self.roi_name};"]
        for key, window in self.periods.items():
            lines.append(f"> {key}: {window}")
        lines.append(f"> series: {', '.join(s['name'] for s in self.config.get('series', []))}")
        lines.append(f"> layers: {', '.join(l['name'] for l in self.config.get('layers', []))}")
        return '\n'.join(lines)


    def _dataset(self, key):
        if key not in datasets:
            raise ValueError(f"Dataset '{key}' for {self.roi_name} is not in config.datasets")
        return datasets[key]


    def _validateRequests(self):
        ts = self.periods['time_series']
        for series_cfg in self.config.get('series', []):
            coll = self._dataset(series_cfg['dataset'])['collection']
            buildQuery('spatial', coll, self.region, ts,
                       bands=[series_cfg['band']], reducer='mean')
        for layer_cfg in self.config.get('layers', []):
            coll = self._dataset(layer_cfg['dataset'])['collection']
            buildQuery('temporal', coll, self.region, self._layerWindow(layer_cfg),
                       bands=layer_cfg['bands'], reducer=layer_cfg['reducer'])
        for key in self.config.get('count_datasets', []):
            self._dataset(key)


    def _layerWindow(self, layer_cfg):
        period = layer_cfg.get('period', 'fire_period')
        if period not in self.periods:
            raise ValueError(f"Layer {layer_cfg['name']} uses unknown period '{period}'")
        return self.periods[period]


    # ------- Monthly series ------- #

    def monthlySeries(self, name):
        """AggregatedSamples for one configured series (e.g. 'co')."""
        matches = [s for s in self.config.get('series', []) if s['name'] == name]
        if not matches:
            raise ValueError(f"Series '{name}' not configured for {self.roi_name}")
        series_cfg = matches[0]

        coll = self._dataset(series_cfg['dataset'])['collection']
        logger.info("Aggregating %s monthly over %s", name, self.periods['time_series'])
        return aggregation.aggregateSeries(
            series_cfg['band'],
            coll,
            self.region,
            self.periods['time_series'],
            self.backend,
            max_workers=self.max_workers,
            progress=self.progress,
            **self._reduceKwargs()
        )


    def allSeries(self):
        return {s['name']: self.monthlySeries(s['name']) for s in self.config.get('series', [])}


    def _reduceKwargs(self):
        kwargs = {}
        if 'scale' in self.reduction: kwargs['scale'] = self.reduction['scale']
        if 'max_pixels' in self.reduction: kwargs['max_pixels'] = self.reduction['max_pixels']
        if 'best_effort' in self.reduction: kwargs['best_effort'] = self.reduction['best_effort']
        return kwargs


    # ------- Map layers ------- #

    def layerComposite(self, layer_cfg):
        """RasterComposite for one configured layer, thresholded if requested."""
        coll = self._dataset(layer_cfg['dataset'])['collection']
        comp = aggregation.composite(
            layer_cfg['bands'],
            coll,
            self.region,
            self._layerWindow(layer_cfg),
            layer_cfg['reducer'],
            self.backend,
            vis_params=layer_cfg.get('vis')
        )
        if layer_cfg.get('threshold') is not None:
            comp = replace(
                comp, image=self.backend.thresholdImage(comp.image, layer_cfg['threshold']))
        return comp


    def mapLayers(self):
        """
        MapLayers in configured order. Layers whose window holds no imagery are
        left out and recorded in self.skipped_layers.
        """
        layers = []
        self.skipped_layers = []
        for layer_cfg in self.config.get('layers', []):
            try:
                comp = self.layerComposite(layer_cfg)
            except MissingDataError as e:
                logger.warning("Skipping map layer %s: %s", layer_cfg['name'], e)
                self.skipped_layers.append(layer_cfg['name'])
                continue
            layers.append(presentation.MapLayer(
                composite=comp,
                vis_params=comp.vis_params,
                name=layer_cfg['name'],
                shown=layer_cfg.get('shown', True),
                opacity=layer_cfg.get('opacity', 1.0)))
        return layers


    def mapCenter(self):
        return self.config.get('map_center') or self.region.centroid()


    def buildMap(self, layers=None):
        if layers is None: layers = self.mapLayers()
        return presentation.buildMap(
            layers, self.mapCenter(), self.config.get('map_zoom', 7), self.backend.tileUrl)


    # ------- Summary ------- #

    def imageCounts(self):
        counts = {}
        fire = self.periods['fire_period']
        for key in self.config.get('count_datasets', []):
            cfg = self._dataset(key)
            label = f"{cfg['description']} image count"
            counts[label] = aggregation.countImages(
                cfg['collection'], self.region, fire, self.backend)
        return counts


    def datasetDescriptions(self):
        keys = [s['dataset'] for s in self.config.get('series', [])]
        keys += [l['dataset'] for l in self.config.get('layers', [])]
        descriptions = []
        for key in keys:
            desc = self._dataset(key)['description']
            if desc not in descriptions: descriptions.append(desc)
        return descriptions


    def summary(self, series=None, image_counts=None):
        return presentation.summaryReport(
            self.config.get('description', self.roi_name),
            self.region,
            {PERIOD_LABELS[k]: w for k, w in self.periods.items()},
            self.datasetDescriptions(),
            series=series,
            image_counts=image_counts,
            skipped_layers=self.skipped_layers)


    # ------- Full run ------- #

    def run(self, output_dir, charts=True, make_map=True):
        """
        Produce every artifact for the RoI in output_dir.

        Returns: dict with 'series', 'image_counts', 'summary' and the paths written
        under 'files'.
        """
        os.makedirs(output_dir, exist_ok=True)
        files = {}

        series = self.allSeries()
        if charts:
            for series_cfg in self.config.get('series', []):
                name = series_cfg['name']
                path = os.path.join(output_dir, f"{name}_timeseries.png")
                presentation.plotMonthlySeries(
                    series[name],
                    series_cfg.get('title', name),
                    series_cfg.get('ylabel', ''),
                    color=series_cfg.get('color', 'blue'),
                    path=path)
                files[f"{name}_chart"] = path

        if make_map:
            path = os.path.join(output_dir, 'fire_period_map.html')
            self.buildMap().save(path)
            files['map'] = path

        image_counts = self.imageCounts()
        report = self.summary(series=series, image_counts=image_counts)
        path = os.path.join(output_dir, 'summary.txt')
        with open(path, 'w') as f:
            f.write(report + '\n')
        files['summary'] = path

        return {
            'series': series,
            'image_counts': image_counts,
            'summary': report,
            'files': files
        }
