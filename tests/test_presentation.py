"""
Tests for charts, map assembly and the summary report.
"""

import math
import os
import tempfile
from unittest import TestCase

import folium
import matplotlib.pyplot as plt

from ee_pollutant_flow.models import AggregatedSample, RasterComposite, Region, TimeWindow
from ee_pollutant_flow.presentation import (
    MapLayer, buildMap, plotMonthlySeries, seriesValues, summaryReport)

SQUARE = [[146.0, -38.5], [153.6, -38.5], [153.6, -28.2], [146.0, -28.2], [146.0, -38.5]]


def samples():
    return [
        AggregatedSample('2019-11', 0.024),
        AggregatedSample('2019-12', None),
        AggregatedSample('2020-01', 0.0),
    ]


class ChartTest(TestCase):

    def test_missing_values_are_gaps(self):
        values = seriesValues(samples())
        self.assertEqual(values[0], 0.024)
        self.assertTrue(math.isnan(values[1]))
        self.assertEqual(values[2], 0.0)

    def test_chart_saved(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'co.png')
            fig = plotMonthlySeries(samples(), 'CO', 'CO Level (mol/m²)', path=path)

            self.assertTrue(os.path.getsize(path) > 0)
            ax = fig.axes[0]
            self.assertEqual(ax.get_title(), 'CO')
            self.assertEqual(ax.get_ylabel(), 'CO Level (mol/m²)')
            ydata = ax.get_lines()[0].get_ydata()
            self.assertTrue(math.isnan(ydata[1]))
            self.assertFalse(plt.fignum_exists(fig.number))

    def test_chart_without_path_stays_open(self):
        fig = plotMonthlySeries(samples(), 'CO', 'CO Level (mol/m²)')
        self.assertTrue(plt.fignum_exists(fig.number))
        plt.close(fig)


class MapTest(TestCase):

    def test_layers_in_order(self):
        region = Region.from_coords(SQUARE)
        window = TimeWindow.from_strings('2019-12-15', '2020-01-10')
        comp = RasterComposite('MODIS/061/MOD14A1', ('MaxFRP',), 'max', window, region,
                               image='frp-image')
        layers = [
            MapLayer(comp, {'palette': ['red']}, 'MODIS Fire Points', True, 1.0),
            MapLayer(comp, {'min': 0, 'max': 500}, 'MODIS Fire Radiative Power', False, 0.7),
        ]
        requested = []

        def tile_url(image, vis):
            requested.append((image, vis))
            return f"https://tiles.example.com/{len(requested)}/{{z}}/{{x}}/{{y}}"

        m = buildMap(layers, region.centroid(), 7, tile_url)

        self.assertIsInstance(m, folium.Map)
        self.assertEqual(requested, [('frp-image', {'palette': ['red']}),
                                     ('frp-image', {'min': 0, 'max': 500})])
        html = m.get_root().render()
        self.assertIn('MODIS Fire Points', html)
        self.assertIn('MODIS Fire Radiative Power', html)
        self.assertLess(html.index('MODIS Fire Points'), html.index('MODIS Fire Radiative Power'))


class SummaryTest(TestCase):

    def test_summary_lists_missing_buckets(self):
        region = Region.from_coords(SQUARE)
        report = summaryReport(
            'Australian Bushfire Region',
            region,
            {'Fire Period': TimeWindow.from_strings('2019-12-15', '2020-01-10')},
            ['Sentinel-5P: Carbon Monoxide (CO)', 'MODIS: Fire Radiative Power and fire points'],
            series={'co': samples()},
            image_counts={'Landsat 8 image count': 5})

        self.assertIn('Study Area: Australian Bushfire Region', report)
        self.assertIn('Fire Period: 2019-12-15 to 2020-01-10 (26 days', report)
        self.assertIn('- co: 3 months (2019-11 to 2020-01), 2 with data', report)
        self.assertIn('missing data: 2019-12', report)
        self.assertIn('- Landsat 8 image count: 5', report)
        self.assertIn('2. MODIS: Fire Radiative Power and fire points', report)

    def test_summary_lists_skipped_layers(self):
        region = Region.from_coords(SQUARE)
        report = summaryReport('Area', region, {}, [], skipped_layers=['Landsat 8 RGB'])
        self.assertIn('SKIPPED MAP LAYERS (no imagery in window):\n- Landsat 8 RGB', report)

    def test_summary_without_series(self):
        region = Region.from_coords(SQUARE)
        report = summaryReport('Area', region, {}, [])
        self.assertNotIn('MONTHLY SERIES', report)
        self.assertNotIn('missing data', report)
