# taxi_backend\etl\processing\passenger_normalizer.py
# Passenger Normalization Module: Maps imported columns to passenger fields, normalizes the area tag,
# validates records and separates duplicates of existing passengers. Never writes to the database.

import logging

import numpy as np

from taxi_backend.dal.taxi_dal import PASSENGER_FIELDS, VALID_AREAS, DEFAULT_AREA
from taxi_backend.logic.text_repair import repair_text

logger = logging.getLogger("PassengerImport")

# Header synonyms (Portuguese and English), compared lower-cased and trimmed
COLUMN_MAPPING = {
    'nome': 'name',
    'name': 'name',
    'endereco': 'address',
    'endereço': 'address',
    'address': 'address',
    'bairro': 'neighborhood',
    'neighborhood': 'neighborhood',
    'cidade': 'city',
    'city': 'city',
    'telefone': 'phone',
    'phone': 'phone',
    'centro_custo': 'cost_center',
    'centro de custo': 'cost_center',
    'cost_center': 'cost_center',
    'turno': 'shift',
    'shift': 'shift',
    'area': 'area',
    'área': 'area',
}

AREA_SYNONYMS = {
    'producao': 'Produção',
    'produção': 'Produção',
    'production': 'Produção',
    'warehouse': 'Warehouse',
    'armazem': 'Warehouse',
    'armazém': 'Warehouse',
    'rcb': 'RCB',
    'sar': 'SAR',
}

MIN_NAME_LENGTH = 2


class PassengerNormalizer:
    """Turns raw imported rows into validated, de-duplicated passenger records"""

    @staticmethod
    def normalize_area(area):
        """Returns the canonical area tag for a known spelling, else None"""
        if not area:
            return None
        if area in VALID_AREAS:
            return area
        return AREA_SYNONYMS.get(str(area).strip().lower())

    @staticmethod
    def empty_passenger():
        passenger = {field: '' for field in PASSENGER_FIELDS}
        passenger['area'] = DEFAULT_AREA
        return passenger

    @staticmethod
    def records_from_frame(df):
        """
        Maps a loaded DataFrame to passenger dicts.
        Rows whose first column or name is blank are skipped; unknown areas fall back to the default tag.
        """
        df = df.dropna(how='all')
        df = df.replace({np.nan: None})
        headers = [str(h).strip().lower() for h in df.columns]

        passengers = []
        for row in df.itertuples(index=False, name=None):
            if not row or row[0] is None or not str(row[0]).strip():
                continue

            passenger = PassengerNormalizer.empty_passenger()
            for header, value in zip(headers, row):
                field = COLUMN_MAPPING.get(header)
                if field and value is not None:
                    passenger[field] = repair_text(str(value).strip())

            if passenger['area'] not in VALID_AREAS:
                passenger['area'] = PassengerNormalizer.normalize_area(passenger['area']) or DEFAULT_AREA

            if passenger['name']:
                passengers.append(passenger)

        logger.info(f"Parsed {len(passengers)} passengers from {len(df)} rows.")
        return passengers

    @staticmethod
    def prepare_record(record):
        """
        Normalizes a passenger supplied directly (JSON import).
        A missing area gets the default tag; an unrecognized one is kept so validation reports it.
        """
        passenger = PassengerNormalizer.empty_passenger()
        for field in PASSENGER_FIELDS:
            value = record.get(field)
            if value is not None:
                passenger[field] = repair_text(str(value).strip())

        if passenger['area']:
            passenger['area'] = PassengerNormalizer.normalize_area(passenger['area']) or passenger['area']
        else:
            passenger['area'] = DEFAULT_AREA
        return passenger

    @staticmethod
    def validate(passenger):
        errors = []
        name = passenger.get('name')
        if not name or len(name.strip()) < MIN_NAME_LENGTH:
            errors.append(f"Nome é obrigatório e deve ter pelo menos {MIN_NAME_LENGTH} caracteres")

        area = passenger.get('area')
        if area and area not in VALID_AREAS:
            errors.append(f"Área deve ser uma das seguintes: {', '.join(VALID_AREAS)}")
        return errors

    @staticmethod
    def identity(passenger):
        return ((passenger.get('name') or '').strip().lower(), passenger.get('area') or DEFAULT_AREA)

    @staticmethod
    def classify(passengers, existing_passengers):
        """
        Splits records into valid/invalid, then valid ones into unique/duplicates.
        A duplicate shares trimmed, case-insensitive name and area with an existing passenger
        or with an earlier record of the same batch.
        """
        valid = []
        invalid = []
        for index, passenger in enumerate(passengers, start=1):
            errors = PassengerNormalizer.validate(passenger)
            if errors:
                invalid.append({"index": index, "passenger": passenger, "errors": errors})
            else:
                valid.append(passenger)

        seen = {PassengerNormalizer.identity(p) for p in existing_passengers}
        unique = []
        duplicates = []
        for passenger in valid:
            key = PassengerNormalizer.identity(passenger)
            if key in seen:
                duplicates.append(passenger)
            else:
                seen.add(key)
                unique.append(passenger)

        return {
            "valid": valid,
            "invalid": invalid,
            "unique": unique,
            "duplicates": duplicates,
            "summary": {
                "total": len(passengers),
                "valid": len(valid),
                "invalid": len(invalid),
                "unique": len(unique),
                "duplicates": len(duplicates)
            }
        }
