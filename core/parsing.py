"""
CSV file reading for bank and credit card exports.
Produces untyped rows (column name -> string) for the row normalizer.
"""
import io
from pathlib import Path
from typing import BinaryIO, Dict, List, Union

import pandas as pd

from core.exceptions import ParsingError
from core.logger import setup_logger

logger = setup_logger(__name__)

CSVSource = Union[str, Path, bytes, BinaryIO]


def read_csv_rows(source: CSVSource, filename: str = "") -> List[Dict[str, str]]:
    """
    Read a CSV export with a required header row.
    
    Blank lines and rows with more cells than the header are skipped;
    every cell is kept as a string and missing cells become empty strings.
    
    Args:
        source: File path, raw bytes, or binary file object
        filename: Display name used in logs and error details
    
    Returns:
        List of rows keyed by (whitespace-trimmed) header names
    
    Raises:
        ParsingError: If the file is empty, unreadable, or not valid CSV
    """
    name = filename or (str(source) if isinstance(source, (str, Path)) else "<upload>")
    if isinstance(source, bytes):
        source = io.BytesIO(source)
    
    try:
        df = pd.read_csv(
            source,
            dtype=str,
            index_col=False,
            keep_default_na=False,
            skip_blank_lines=True,
            on_bad_lines="skip",
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError as e:
        raise ParsingError(
            "CSV file is empty",
            details={"file": name, "error": str(e)}
        )
    except Exception as e:
        logger.error(f"Failed to parse {name}: {str(e)}")
        raise ParsingError(
            f"CSV parsing failed: {e}",
            details={"file": name, "error": str(e)}
        )
    
    df.columns = [str(col).strip() for col in df.columns]
    df = df.fillna("")
    
    logger.info(f"Read {len(df)} rows from {name} (columns: {list(df.columns)})")
    
    return df.to_dict(orient="records")
