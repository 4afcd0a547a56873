import os
import time
import logging
import argparse

import matplotlib

from ee_pollutant_flow.analysis import PollutantFlowAnalysis
from ee_pollutant_flow.eeBackendInterface import eeBackendInterface


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='Pollutant Flow Analysis',
        description='Monthly CO/NO2 series and fire-period map layers for a '
                    'region of interest, computed on Google Earth Engine'
    )
    parser.add_argument('--roi', required=True,
                        help='Entry in config.roi_configs')

    parser.add_argument('--project', '-p', default=os.environ.get('EE_PROJECT'),
                        help='Google Cloud project for Earth Engine '
                            '(default: $EE_PROJECT)')

    parser.add_argument('--output-dir', '-o', default='./output',
                        help='Directory for charts, map and summary')

    parser.add_argument('--workers', '-w', type=int, default=4,
                        help='Parallel monthly queries')

    parser.add_argument('--retries', type=int, default=3,
                        help='Retries per Earth Engine request on transient errors')

    parser.add_argument('--deadline', type=int, default=120,
                        help='Earth Engine request deadline in seconds')

    parser.add_argument('--skip-charts', action='store_true',
                        help="Don't render the monthly series charts")

    parser.add_argument('--skip-map', action='store_true',
                        help="Don't build the fire-period map")

    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Debug logging')

    args = parser.parse_args(argv)
    if args.workers < 1:
        parser.error('--workers must be at least 1')

    return {
        'roi': args.roi,
        'project': args.project,
        'output_dir': args.output_dir,
        'workers': args.workers,
        'retries': args.retries,
        'deadline_ms': args.deadline * 1000,
        'charts': not args.skip_charts,
        'map': not args.skip_map,
        'verbose': args.verbose
    }


def main(argv=None):
    args = parse_args(argv)
    # Charts are only written to files
    matplotlib.use('Agg')

    logging.basicConfig(
        level=logging.DEBUG if args['verbose'] else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s')

    backend = eeBackendInterface(
        project=args['project'],
        deadline_ms=args['deadline_ms'],
        max_retries=args['retries'])

    analysis = PollutantFlowAnalysis(
        args['roi'], backend=backend, max_workers=args['workers'])
    print(analysis)

    start = time.time()
    result = analysis.run(
        args['output_dir'], charts=args['charts'], make_map=args['map'])

    print(result['summary'])
    print(f"\nFinished in {time.time() - start:.1f} seconds. Files written:")
    for name, path in result['files'].items():
        print(f"> {name}: {path}")
    return result


if __name__ == "__main__":
    main()
