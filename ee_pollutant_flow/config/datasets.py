"""
Catalog of the Earth Engine collections used by the pollutant-flow analysis.

Each dataset is registered under a nickname and describes:

    - 'collection': str, the Earth Engine ImageCollection identifier

    - 'description': str, human-readable name used in the summary report

    - 'bands': dict, {band_name: {'unit', 'valid_range', 'reducers'}}. 'reducers'
        is the aggregation contract for the band: only the listed temporal
        reducers may be requested for it (e.g. MaxFRP is only ever reduced with
        'max'). 'valid_range' is informational; aggregated values outside it are
        logged, never altered.

    - 'filters': list of metadata filters applied after the date/bounds filters.
        Each filter is a dict with:
            - 'type': str, an attribute of ee.Filter (assert hasattr(ee.Filter, type))
            - 'args': list, positional arguments to the ee.Filter (order matters!)

    - 'rescale': list of band groups converted from raw digital numbers before
        compositing, each {'pattern': band regex, 'scale': float, 'offset': float}.
        Groups are applied in order; a band only ever matches one group.

Time-series analysis uses the offline (OFFL) Sentinel-5P products while the
fire-period maps use the near-real-time (NRTI) products.
"""

S5P_REDUCERS = ['mean']

# Landsat 8 Collection 2 Level 2 scale factors
LANDSAT_C2_L2_RESCALE = [
    {'pattern': 'SR_B.', 'scale': 0.0000275, 'offset': -0.2},  # optical reflectance
    {'pattern': 'ST_B.*', 'scale': 0.00341802, 'offset': 149.0},  # surface temperature (K)
]

LANDSAT_CLOUD_FILTERS = [
    {
        'type': 'lt',
        'args': ['CLOUD_COVER', 30]
    }
]

_co_band = {
    'CO_column_number_density': {
        'unit': 'mol/m^2',
        'valid_range': (-0.01, 0.1),
        'reducers': S5P_REDUCERS
    }
}

_no2_band = {
    'NO2_column_number_density': {
        'unit': 'mol/m^2',
        'valid_range': (-0.0005, 0.0015),
        'reducers': S5P_REDUCERS
    }
}

_landsat_bands = {
    **{
        f'SR_B{i}': {
            'unit': 'reflectance',
            'valid_range': (-0.2, 1.6),
            'reducers': ['mean', 'median']
        } for i in range(1, 8)
    },
    'ST_B10': {
        'unit': 'K',
        'valid_range': (149.0, 373.0),
        'reducers': ['mean', 'median']
    }
}

datasets = {
    'S5P_CO_OFFL': {
        'collection': 'COPERNICUS/S5P/OFFL/L3_CO',
        'description': 'Sentinel-5P: Carbon Monoxide (CO)',
        'bands': _co_band,
        'filters': []
    },
    'S5P_NO2_OFFL': {
        'collection': 'COPERNICUS/S5P/OFFL/L3_NO2',
        'description': 'Sentinel-5P: Nitrogen Dioxide (NO2)',
        'bands': _no2_band,
        'filters': []
    },
    'S5P_CO_NRTI': {
        'collection': 'COPERNICUS/S5P/NRTI/L3_CO',
        'description': 'Sentinel-5P: Carbon Monoxide (CO)',
        'bands': _co_band,
        'filters': []
    },
    'S5P_NO2_NRTI': {
        'collection': 'COPERNICUS/S5P/NRTI/L3_NO2',
        'description': 'Sentinel-5P: Nitrogen Dioxide (NO2)',
        'bands': _no2_band,
        'filters': []
    },
    'S5P_AER_AI': {
        'collection': 'COPERNICUS/S5P/OFFL/L3_AER_AI',
        'description': 'Sentinel-5P: Aerosol Index (PM proxy)',
        'bands': {
            'absorbing_aerosol_index': {
                'unit': '',
                'valid_range': (-5.0, 10.0),
                'reducers': S5P_REDUCERS
            }
        },
        'filters': []
    },
    'L8_SR': {
        'collection': 'LANDSAT/LC08/C02/T1_L2',
        'description': 'Landsat 8: High-resolution fire imagery',
        'bands': _landsat_bands,
        'filters': LANDSAT_CLOUD_FILTERS,
        'rescale': LANDSAT_C2_L2_RESCALE
    },
    'MODIS_FIRE': {
        'collection': 'MODIS/061/MOD14A1',
        'description': 'MODIS: Fire Radiative Power and fire points',
        'bands': {
            'MaxFRP': {
                'unit': 'MW',
                'valid_range': (0.0, 20000.0),
                'reducers': ['max']
            }
        },
        'filters': []
    }
}
