# taxi_backend\etl\pipeline.py
# Import Pipeline Orchestrator: Coordinates passenger imports from ingestion and normalization to storage,
# and seeds sample requests for a fresh database.

import argparse
import logging

from taxi_backend.config import get_settings, configure_logging
from taxi_backend.dal.taxi_dal import TaxiDAL
from taxi_backend.etl.ingestion.loaders import get_loader
from taxi_backend.etl.processing.passenger_normalizer import PassengerNormalizer

logger = logging.getLogger("Import-Pipeline")


def load_passenger_file(file_path):
    """Reads a CSV/XLS/XLSX file into normalized passenger records"""
    df = get_loader(file_path).load()
    return PassengerNormalizer.records_from_frame(df)


def import_passengers(dal, passengers, commit=True):
    """
    Classifies records against the stored passengers and, in commit mode, inserts only the unique ones.
    Preview mode (commit=False) runs the same classification without writing.
    """
    result = PassengerNormalizer.classify(passengers, dal.list_passengers())
    result['imported'] = []
    if commit and result['unique']:
        result['imported'] = dal.create_passengers(result['unique'])

    summary = result['summary']
    logger.info(
        f"{'Import' if commit else 'Preview'}: {summary['total']} records, {summary['invalid']} invalid, "
        f"{summary['duplicates']} duplicates, {len(result['imported'])} inserted."
    )
    return result


def create_sample_requests(dal):
    """Creates three demo requests spread over three cars"""
    passengers = dal.list_passengers()
    if not passengers:
        logger.warning("No passengers found. Import passengers first.")
        return []

    ids = [p['id'] for p in passengers]
    sample_requests = [
        {"date": "2024-01-15", "requester": "FABIO ARAUJO", "origin": "CASA", "destination": "ERICSSON",
         "time": "14:00", "car_number": "Carro 1", "cost_center": "4088", "passengerIds": ids[0:3]},
        {"date": "2024-01-15", "requester": "FABIO ARAUJO", "origin": "ERICSSON", "destination": "CASA",
         "time": "18:00", "car_number": "Carro 2", "cost_center": "4088", "passengerIds": ids[3:6]},
        {"date": "2024-01-16", "requester": "FABIO ARAUJO", "origin": "CASA", "destination": "ERICSSON",
         "time": "07:00", "car_number": "Carro 3", "cost_center": "4088", "passengerIds": ids[6:10]},
    ]

    created = []
    for request in sample_requests:
        created.append(dal.create_request(request))
        logger.info(f"Request created: {request['origin']} -> {request['destination']} at {request['time']}")
    return created


def run_pipeline(file_path, db_path=None, sample_requests=False):
    dal = TaxiDAL(db_path or get_settings()['DATABASE_PATH']).open()
    try:
        logger.info("--- Importing passengers ---")
        result = import_passengers(dal, load_passenger_file(file_path))
        for entry in result['invalid']:
            logger.warning(f"Row {entry['index']} skipped: {'; '.join(entry['errors'])}")

        if sample_requests:
            logger.info("--- Creating sample requests ---")
            create_sample_requests(dal)

        logger.info("Import pipeline execution complete.")
        return result
    finally:
        dal.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Import passengers from a CSV/XLS/XLSX file")
    parser.add_argument('file', help="passenger list to import")
    parser.add_argument('--db', help="database path (defaults to DATABASE_PATH)")
    parser.add_argument('--sample-requests', action='store_true', help="also create demo requests")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings['LOG_DIR'], settings['LOG_LEVEL'])
    run_pipeline(args.file, args.db, args.sample_requests)
