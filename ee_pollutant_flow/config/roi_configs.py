"""
This file configures regions of interest (RoI) for the pollutant-flow analysis.
RoIs are registered by an entry (key: dict) in 'roi_configs' below. Each RoI
describes the following:

    1. Geographical extent (list of lon/lat coords drawing a closed polygon, or a
        list of such rings for a multi-polygon)

    2. Map display settings ('map_zoom', optional 'map_center' as [lat, lon];
        the polygon centroid is used when no center is given)

    3. Date windows, each {'date_start', 'date_end'} with an exclusive end:
        a. 'time_series': multi-year window bucketed into calendar months
        b. 'fire_period': short peak-fire window used for the map composites
        c. 'aerosol_period': window for the aerosol index composite. It starts
            earlier than the fire period on purpose; keep the two separate.

    4. Spatial reduction settings for the monthly series ('reduction')

    5. 'series': monthly time series to chart, referencing datasets by nickname
        (see config/datasets.py)

    6. 'layers': map layers in display order. 'period' names one of the date
        windows above; 'threshold', when set, turns the composite into a binary
        mask of pixels above that value.
"""

POLLUTANT_PALETTE = ['black', 'blue', 'purple', 'cyan', 'green', 'yellow', 'red']
FRP_PALETTE = ['yellow', 'orange', 'red', 'darkred']

roi_configs = {
    # Add your RoI as a new dict item: 'roi_name': { ... }

    'australia_bushfire_2019': {
        'description': 'Australian Bushfire Region (New South Wales/Victoria)',
        'roi_coords': [
            [146.0, -38.5],
            [153.6, -38.5],
            [153.6, -28.2],
            [146.0, -28.2],
            [146.0, -38.5]
        ],
        'map_zoom': 7,

        'time_series': {
            'date_start': '2019-01-01',
            'date_end': '2020-12-31'
        },
        'fire_period': {
            'date_start': '2019-12-15',
            'date_end': '2020-01-10'
        },
        'aerosol_period': {
            'date_start': '2019-12-01',
            'date_end': '2020-01-10'
        },

        'reduction': {
            'scale': 5000,  # 5km resolution to reduce computation
            'max_pixels': 1e8,
            'best_effort': True
        },

        'series': [
            {
                'name': 'co',
                'dataset': 'S5P_CO_OFFL',
                'band': 'CO_column_number_density',
                'title': 'Sentinel-5P: CO Levels During Australian Bushfires (2019-2020)',
                'ylabel': 'CO Level (mol/m²)',
                'color': 'blue'
            },
            {
                'name': 'no2',
                'dataset': 'S5P_NO2_OFFL',
                'band': 'NO2_column_number_density',
                'title': 'Sentinel-5P: NO2 Levels During Australian Bushfires (2019-2020)',
                'ylabel': 'NO2 Level (mol/m²)',
                'color': 'green'
            }
        ],

        'layers': [
            {
                'name': 'S5P CO (Fire Period)',
                'dataset': 'S5P_CO_NRTI',
                'bands': ['CO_column_number_density'],
                'reducer': 'mean',
                'period': 'fire_period',
                'vis': {'min': 0, 'max': 0.05, 'palette': POLLUTANT_PALETTE},
                'shown': True,
                'opacity': 0.7
            },
            {
                'name': 'S5P NO2 (Fire Period)',
                'dataset': 'S5P_NO2_NRTI',
                'bands': ['NO2_column_number_density'],
                'reducer': 'mean',
                'period': 'fire_period',
                'vis': {'min': 0, 'max': 0.0002, 'palette': POLLUTANT_PALETTE},
                'shown': False,
                'opacity': 0.7
            },
            {
                'name': 'S5P Aerosol Index',
                'dataset': 'S5P_AER_AI',
                'bands': ['absorbing_aerosol_index'],
                'reducer': 'mean',
                'period': 'aerosol_period',
                'vis': {'min': -1, 'max': 3.0, 'palette': POLLUTANT_PALETTE},
                'shown': True,
                'opacity': 0.7
            },
            {
                'name': 'Landsat 8 RGB',
                'dataset': 'L8_SR',
                'bands': ['SR_B4', 'SR_B3', 'SR_B2'],
                'reducer': 'mean',
                'period': 'fire_period',
                'vis': {'min': 0, 'max': 0.3, 'bands': ['SR_B4', 'SR_B3', 'SR_B2']},
                'shown': False,
                'opacity': 1.0
            },
            {
                # SWIR-NIR-Red: active fires appear bright red/orange, burn scars dark
                'name': 'Landsat 8 False Color (Fire)',
                'dataset': 'L8_SR',
                'bands': ['SR_B7', 'SR_B6', 'SR_B4'],
                'reducer': 'mean',
                'period': 'fire_period',
                'vis': {'min': 0, 'max': 0.5, 'bands': ['SR_B7', 'SR_B6', 'SR_B4']},
                'shown': True,
                'opacity': 1.0
            },
            {
                'name': 'MODIS Fire Points',
                'dataset': 'MODIS_FIRE',
                'bands': ['MaxFRP'],
                'reducer': 'max',
                'period': 'fire_period',
                'threshold': 0,
                'vis': {'palette': ['red']},
                'shown': True,
                'opacity': 1.0
            },
            {
                'name': 'MODIS Fire Radiative Power',
                'dataset': 'MODIS_FIRE',
                'bands': ['MaxFRP'],
                'reducer': 'max',
                'period': 'fire_period',
                'vis': {'min': 0, 'max': 500, 'palette': FRP_PALETTE},
                'shown': False,
                'opacity': 1.0
            }
        ],

        # Dataset whose image count over the fire period goes into the summary
        'count_datasets': ['L8_SR']
    }
}
