# taxi_backend\dal\repair_encoding.py
# One-off Data Cleanup: Rewrites stored passenger/request text that was saved with broken accents.
# Rows imported from cp1252 CSVs read as UTF-8 lost their accented letters to U+FFFD; those are only
# recoverable through the known word list below. The source of such files should be fixed instead.

import sqlite3
import logging

from taxi_backend.config import get_settings, configure_logging
from taxi_backend.logic.text_repair import repair_text

logger = logging.getLogger("EncodingRepair")

R = '�'

# Longest targets first so phrase fixes win over the single words they contain
LEGACY_REPLACEMENTS = [
    (f'PALMEIRAS DE S{R}O JOS{R}', 'PALMEIRAS DE SÃO JOSÉ'),
    (f'BOSQUE DOS EUCAL{R}PTOS', 'BOSQUE DOS EUCALIPTOS'),
    (f'VILA DOS COMERCI{R}RIOS', 'VILA DOS COMERCIÁRIOS'),
    (f'JARDIM SANTA J{R}LIA', 'JARDIM SANTA JÚLIA'),
    (f'Vila S{R}o Geraldo', 'Vila São Geraldo'),
    (f'BOSQUE DOS IP{R}S', 'BOSQUE DOS IPÊS'),
    (f'JARDIM ISM{R}NIA', 'JARDIM ISMÊNIA'),
    (f'S{R}O GON{R}ALO', 'SÃO GONÇALO'),
    (f'C{R}LIO RODRIGO', 'CÉLIO RODRIGO'),
    (f'JD. COL{R}NIA', 'JD. COLÔNIA'),
    (f'JD ISM{R}NIA', 'JD ISMÊNIA'),
    (f'Jd S{R}telite', 'Jd Satélite'),
    (f'COMERCI{R}RIOS', 'COMERCIÁRIOS'),
    (f'EUCAL{R}PTOS', 'EUCALIPTOS'),
    (f'Magalh{R}es', 'Magalhães'),
    (f'TAUBAT{R}', 'TAUBATÉ'),
    (f'JACARE{R}', 'JACAREÍ'),
    (f'GON{R}ALO', 'GONÇALO'),
    (f'CA{R}APAVA', 'CAÇAPAVA'),
    (f'ISM{R}NIA', 'ISMÊNIA'),
    (f'COL{R}NIA', 'COLÔNIA'),
    (f'Tubar{R}o', 'Tubarão'),
    (f'S{R}telite', 'Satélite'),
    (f'J{R}LIA', 'JÚLIA'),
    (f'C{R}LIO', 'CÉLIO'),
    (f'IP{R}S', 'IPÊS'),
    (f'JOS{R}', 'JOSÉ'),
    (f'S{R}o', 'São'),
]

TEXT_COLUMNS = {
    'passengers': ['name', 'address', 'neighborhood', 'city', 'phone', 'cost_center', 'shift', 'area'],
    'taxi_requests': ['requester', 'origin', 'destination', 'time', 'car_number', 'cost_center'],
}


def repair_stored_value(text):
    if not isinstance(text, str):
        return text
    fixed = repair_text(text)
    for target, replacement in LEGACY_REPLACEMENTS:
        if target in fixed:
            fixed = fixed.replace(target, replacement)
    return fixed


def repair_database(db_path):
    """Rewrites every text column that needs repair. Returns the number of rows changed per table."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    changed = {}
    try:
        with conn:
            for table, columns in TEXT_COLUMNS.items():
                changed[table] = 0
                rows = conn.execute(f"SELECT id, {', '.join(columns)} FROM {table}").fetchall()
                for row in rows:
                    updates = {}
                    for column in columns:
                        fixed = repair_stored_value(row[column])
                        if fixed != row[column]:
                            updates[column] = fixed
                    if not updates:
                        continue
                    assignments = ', '.join(f"{column} = ?" for column in updates)
                    conn.execute(f"UPDATE {table} SET {assignments} WHERE id = ?", [*updates.values(), row['id']])
                    changed[table] += 1
    finally:
        conn.close()

    for table, count in changed.items():
        if count:
            logger.warning(f"Repaired {count} rows in '{table}'. The data source is producing mis-encoded text.")
        else:
            logger.info(f"No encoding problems found in '{table}'.")
    return changed


if __name__ == "__main__":
    configure_logging()
    repair_database(get_settings()['DATABASE_PATH'])
