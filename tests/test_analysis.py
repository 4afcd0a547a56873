"""
Tests for the end-to-end analysis of a configured RoI, against a fake backend.
"""

import datetime as dt
import os
import tempfile
from unittest import TestCase
from unittest.mock import patch

import numpy as np

from ee_pollutant_flow.analysis import PollutantFlowAnalysis
from ee_pollutant_flow.config.datasets import datasets
from ee_pollutant_flow.errors import InvalidRegionError, InvalidWindowError, UnsupportedBandError
from ee_pollutant_flow.scripts.run_analysis import main, parse_args

from fakes import FakeBackend, constantImage

ROI = 'australia_bushfire_2019'


def collection(key):
    return datasets[key]['collection']


def monthly(band, value, skip=()):
    images = []
    for year in (2019, 2020):
        for month in range(1, 13):
            if (year, month) not in skip:
                images.append(constantImage(dt.date(year, month, 10), **{band: value}))
    return images


def fake_backend():
    return FakeBackend({
        collection('S5P_CO_OFFL'): monthly('CO_column_number_density', 0.03, skip=[(2020, 2)]),
        collection('S5P_NO2_OFFL'): monthly('NO2_column_number_density', 0.00004),
        collection('S5P_CO_NRTI'): [constantImage('2019-12-20', CO_column_number_density=0.04)],
        collection('S5P_NO2_NRTI'): [constantImage('2019-12-20', NO2_column_number_density=0.0001)],
        collection('S5P_AER_AI'): [
            constantImage('2019-12-05', absorbing_aerosol_index=1.0),
            constantImage('2019-12-22', absorbing_aerosol_index=2.0),
        ],
        collection('L8_SR'): [
            constantImage('2019-12-18', props={'CLOUD_COVER': 5},
                          SR_B2=20000, SR_B3=20000, SR_B4=20000, SR_B6=20000, SR_B7=20000),
            constantImage('2019-12-26', props={'CLOUD_COVER': 80},
                          SR_B2=9000, SR_B3=9000, SR_B4=9000, SR_B6=9000, SR_B7=9000),
        ],
        collection('MODIS_FIRE'): [
            {'date': dt.date(2019, 12, 31), 'props': {},
             'bands': {'MaxFRP': np.array([[0.0, 35.0], [410.0, 0.0]])}},
        ],
    })


def bad_config(**overrides):
    from ee_pollutant_flow.config.roi_configs import roi_configs
    cfg = dict(roi_configs[ROI])
    cfg.update(overrides)
    return {**roi_configs, 'broken': cfg}


class ConfigValidationTest(TestCase):

    def test_unknown_roi(self):
        with self.assertRaises(ValueError):
            PollutantFlowAnalysis('atlantis', backend=FakeBackend())

    def test_roi_name_is_case_insensitive(self):
        analysis = PollutantFlowAnalysis(ROI.upper(), backend=FakeBackend())
        self.assertEqual(analysis.roi_name, ROI)

    def test_periods_kept_distinct(self):
        analysis = PollutantFlowAnalysis(ROI, backend=FakeBackend())
        self.assertEqual(analysis.periods['fire_period'].start, dt.date(2019, 12, 15))
        self.assertEqual(analysis.periods['aerosol_period'].start, dt.date(2019, 12, 1))
        self.assertEqual(analysis.periods['aerosol_period'].end,
                         analysis.periods['fire_period'].end)

    def test_bad_window_rejected(self):
        configs = bad_config(fire_period={'date_start': '2020-01-10', 'date_end': '2019-12-15'})
        with patch('ee_pollutant_flow.analysis.roi_configs', configs):
            with self.assertRaises(InvalidWindowError):
                PollutantFlowAnalysis('broken', backend=FakeBackend())

    def test_bad_region_rejected(self):
        configs = bad_config(roi_coords=[[146.0, -38.5], [153.6, -38.5], [153.6, -28.2]])
        with patch('ee_pollutant_flow.analysis.roi_configs', configs):
            with self.assertRaises(InvalidRegionError):
                PollutantFlowAnalysis('broken', backend=FakeBackend())

    def test_bad_layer_reducer_rejected_before_backend_call(self):
        from ee_pollutant_flow.config.roi_configs import roi_configs
        layers = [dict(l) for l in roi_configs[ROI]['layers']]
        layers[0]['reducer'] = 'max'
        backend = FakeBackend()
        with patch('ee_pollutant_flow.analysis.roi_configs', bad_config(layers=layers)):
            with self.assertRaises(UnsupportedBandError):
                PollutantFlowAnalysis('broken', backend=backend)
        self.assertEqual(backend.calls, [])

    def test_unknown_dataset_rejected(self):
        series = [{'name': 'so2', 'dataset': 'S5P_SO2', 'band': 'SO2_column_number_density'}]
        with patch('ee_pollutant_flow.analysis.roi_configs', bad_config(series=series)):
            with self.assertRaises(ValueError):
                PollutantFlowAnalysis('broken', backend=FakeBackend())


class AnalysisTest(TestCase):

    def setUp(self):
        self.backend = fake_backend()
        self.analysis = PollutantFlowAnalysis(ROI, backend=self.backend, progress=False)

    def test_monthly_series(self):
        co = self.analysis.monthlySeries('co')

        self.assertEqual(len(co), 24)
        self.assertEqual(co[0].label, '2019-01')
        self.assertEqual(co[-1].label, '2020-12')
        self.assertIsNone(co[13].value)
        self.assertAlmostEqual(co[12].value, 0.03)
        self.assertEqual(self.backend.calls[0].scale, 5000)

    def test_unknown_series(self):
        with self.assertRaises(ValueError):
            self.analysis.monthlySeries('so2')

    def test_map_layers(self):
        layers = self.analysis.mapLayers()
        names = [l.name for l in layers]

        self.assertEqual(names, [
            'S5P CO (Fire Period)',
            'S5P NO2 (Fire Period)',
            'S5P Aerosol Index',
            'Landsat 8 RGB',
            'Landsat 8 False Color (Fire)',
            'MODIS Fire Points',
            'MODIS Fire Radiative Power',
        ])
        self.assertEqual([l.shown for l in layers], [True, False, True, False, True, True, False])

        by_name = {l.name: l for l in layers}
        np.testing.assert_allclose(by_name['S5P Aerosol Index'].composite.image['absorbing_aerosol_index'], 1.5)
        np.testing.assert_allclose(by_name['Landsat 8 RGB'].composite.image['SR_B4'], 0.35)
        np.testing.assert_allclose(by_name['MODIS Fire Points'].composite.image['MaxFRP'],
                                   [[0.0, 1.0], [1.0, 0.0]])
        np.testing.assert_allclose(by_name['MODIS Fire Radiative Power'].composite.image['MaxFRP'],
                                   [[0.0, 35.0], [410.0, 0.0]])
        self.assertEqual(by_name['S5P CO (Fire Period)'].opacity, 0.7)

    def test_map_center_from_region(self):
        lat, lon = self.analysis.mapCenter()
        self.assertAlmostEqual(lat, -33.35)
        self.assertAlmostEqual(lon, 149.8)

    def test_image_counts_use_cloud_filter(self):
        counts = self.analysis.imageCounts()
        self.assertEqual(list(counts.values()), [1])

    def test_run_writes_artifacts(self):
        with tempfile.TemporaryDirectory() as tmp:
            result = self.analysis.run(tmp)

            for key in ['co_chart', 'no2_chart', 'map', 'summary']:
                self.assertTrue(os.path.exists(result['files'][key]), key)
            self.assertEqual(len(self.backend.tile_requests), 7)

            with open(result['files']['summary']) as f:
                summary = f.read()
        self.assertIn('missing data: 2020-02', summary)
        self.assertIn('Fire Period: 2019-12-15 to 2020-01-10', summary)
        self.assertIn('Aerosol Index Period: 2019-12-01 to 2020-01-10', summary)
        self.assertIn('Landsat 8: High-resolution fire imagery image count: 1', summary)
        self.assertIn('5. MODIS: Fire Radiative Power and fire points', summary)

    def test_run_without_map_or_charts(self):
        with tempfile.TemporaryDirectory() as tmp:
            result = self.analysis.run(tmp, charts=False, make_map=False)
        self.assertEqual(list(result['files']), ['summary'])
        self.assertEqual(self.backend.tile_requests, [])

    def test_layer_without_imagery_is_skipped(self):
        # Only the cloudy Landsat scene is left in the fire period
        self.backend.images[collection('L8_SR')] = [
            constantImage('2019-12-26', props={'CLOUD_COVER': 80}, SR_B4=9000),
        ]

        with tempfile.TemporaryDirectory() as tmp:
            result = self.analysis.run(tmp, charts=False)
            self.assertTrue(os.path.exists(result['files']['map']))
            self.assertTrue(os.path.exists(result['files']['summary']))

        self.assertEqual(self.analysis.skipped_layers,
                         ['Landsat 8 RGB', 'Landsat 8 False Color (Fire)'])
        self.assertEqual(len(self.backend.tile_requests), 5)
        self.assertIn('SKIPPED MAP LAYERS', result['summary'])
        self.assertIn('- Landsat 8 False Color (Fire)', result['summary'])

    def test_str(self):
        text = str(self.analysis)
        self.assertIn(ROI, text)
        self.assertIn('co, no2', text)


class ParseArgsTest(TestCase):

    def test_defaults(self):
        args = parse_args(['--roi', ROI])
        self.assertEqual(args['roi'], ROI)
        self.assertEqual(args['workers'], 4)
        self.assertEqual(args['deadline_ms'], 120000)
        self.assertTrue(args['charts'])
        self.assertTrue(args['map'])

    def test_skip_flags(self):
        args = parse_args(['--roi', ROI, '--skip-map', '--skip-charts', '-w', '2'])
        self.assertFalse(args['map'])
        self.assertFalse(args['charts'])
        self.assertEqual(args['workers'], 2)

    @patch("ee_pollutant_flow.scripts.run_analysis.PollutantFlowAnalysis")
    @patch("ee_pollutant_flow.scripts.run_analysis.eeBackendInterface")
    @patch("ee_pollutant_flow.scripts.run_analysis.matplotlib.use")
    def test_main_selects_file_backend(self, mock_use, mock_backend, mock_analysis):
        mock_analysis.return_value.run.return_value = {'summary': '', 'files': {}}

        main(['--roi', ROI, '-o', 'out', '-p', 'ee-fires'])

        mock_use.assert_called_once_with('Agg')
        mock_backend.assert_called_once_with(project='ee-fires', deadline_ms=120000, max_retries=3)
        mock_analysis.return_value.run.assert_called_once_with('out', charts=True, make_map=True)
