"""
Data ingestion module.
Reads the incident table from an HTTPS endpoint or a local CSV file
into memory in one pass and extracts basic metadata.
"""
import io
from pathlib import Path
from typing import Union

import pandas as pd
import requests

from incident_pipeline.utils.exceptions import FetchError
from incident_pipeline.utils.logger import get_logger
from incident_pipeline.utils.timer import Timer

log = get_logger(__name__)

REMOTE_SCHEMES = ("http://", "https://")


class DataIngestion:
    """Load the source table from a URL or a local CSV path.

    The remote resource is read fully and the connection closed before
    parsing; there is no streaming and no retry.

    Example:
        >>> ingestion = DataIngestion(timeout=60)
        >>> df, meta = ingestion.load("https://data.cityofnewyork.us/api/views/833y-fsy8/rows.csv")
    """

    def __init__(
        self,
        timeout: float = 60.0,
        encoding: str = "utf-8",
        sep: str = ",",
    ) -> None:
        self.timeout = timeout
        self.encoding = encoding
        self.sep = sep

    def load(self, source: Union[str, Path]) -> tuple[pd.DataFrame, dict]:
        """Load data, returning (DataFrame, metadata).

        Raises:
            FetchError: On any network, file or CSV parsing failure.
        """
        source_str = str(source)
        log.info(f"Loading data from: {source_str}")
        with Timer("ingest"):
            if source_str.startswith(REMOTE_SCHEMES):
                text = self._fetch(source_str)
            else:
                text = self._read_file(source_str)
            df = self._parse(text, source_str)

        metadata = self._extract_metadata(df, source_str)
        log.info(
            f"Data loaded successfully | shape={df.shape} "
            f"| memory={metadata['memory_mb']:.2f}MB"
        )
        return df, metadata

    # ── Private loaders ───────────────────────────────────────────────────────

    def _fetch(self, url: str) -> str:
        try:
            response = requests.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise FetchError(url, str(exc)) from exc
        try:
            response.raise_for_status()
            response.encoding = response.encoding or self.encoding
            return response.text
        except requests.RequestException as exc:
            raise FetchError(url, str(exc)) from exc
        finally:
            response.close()

    def _read_file(self, path: str) -> str:
        p = Path(path)
        if not p.is_file():
            raise FetchError(path, "file not found")
        try:
            return p.read_text(encoding=self.encoding)
        except (OSError, UnicodeDecodeError) as exc:
            raise FetchError(path, str(exc)) from exc

    def _parse(self, text: str, source: str) -> pd.DataFrame:
        try:
            df = pd.read_csv(io.StringIO(text), sep=self.sep, low_memory=False)
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
            raise FetchError(source, f"CSV parse failure: {exc}") from exc
        if df.empty:
            raise FetchError(source, "no data rows")
        return df

    @staticmethod
    def _extract_metadata(df: pd.DataFrame, source: str) -> dict:
        """Extract metadata from a loaded DataFrame."""
        return {
            "source": source,
            "n_rows": len(df),
            "n_cols": len(df.columns),
            "columns": list(df.columns),
            "dtypes": df.dtypes.astype(str).to_dict(),
            "memory_mb": df.memory_usage(deep=True).sum() / 1024 ** 2,
            "null_counts": df.isnull().sum().to_dict(),
            "duplicate_rows": int(df.duplicated().sum()),
        }


def load_data(source: Union[str, Path], timeout: float = 60.0) -> tuple[pd.DataFrame, dict]:
    """Convenience function to load data without instantiating DataIngestion."""
    return DataIngestion(timeout=timeout).load(source)
