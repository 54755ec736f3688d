# taxi_backend\etl\ingestion\loaders.py
# Data Ingestion Module: Provides classes for loading passenger spreadsheets from CSV and Excel files.

import os
import logging

import pandas as pd

logger = logging.getLogger("PassengerImport")


class DataLoader:
    """Base class for data ingestion"""
    def __init__(self, file_path):
        self.file_path = file_path

    def load(self):
        raise NotImplementedError("Subclasses must implement load()")


class CSVLoader(DataLoader):
    """Loads ';'-separated passenger lists. Excel exports in cp1252 are decoded as such instead of as UTF-8."""
    encodings = ('utf-8-sig', 'cp1252')

    def load(self):
        logger.info(f"Loading CSV from: {self.file_path}")
        for encoding in self.encodings:
            try:
                return pd.read_csv(
                    self.file_path,
                    sep=';',
                    dtype=str,
                    encoding=encoding,
                    skip_blank_lines=True,
                    on_bad_lines='skip'
                )
            except UnicodeDecodeError:
                logger.warning(f"{os.path.basename(self.file_path)} is not valid {encoding}, trying next encoding")
        raise ValueError(f"Não foi possível decodificar o arquivo CSV {os.path.basename(self.file_path)}")


class ExcelLoader(DataLoader):
    """Loads the first sheet of an .xlsx/.xls workbook"""
    def load(self):
        logger.info(f"Loading Excel from: {self.file_path}")
        df = pd.read_excel(self.file_path, sheet_name=0, dtype=str)
        if df.empty:
            raise ValueError("O arquivo Excel deve ter pelo menos 2 linhas (cabeçalho + dados)")
        return df


LOADERS = {
    '.csv': CSVLoader,
    '.xlsx': ExcelLoader,
    '.xls': ExcelLoader,
}


def get_loader(file_path):
    """Picks the loader from the file extension"""
    ext = os.path.splitext(file_path)[1].lower()
    loader_class = LOADERS.get(ext)
    if loader_class is None:
        raise ValueError("Formato de arquivo não suportado. Use CSV, XLS ou XLSX")
    return loader_class(file_path)
