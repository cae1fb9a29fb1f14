"""Utilities for loading company rows from spreadsheets."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, List, Mapping, MutableMapping, Optional, Sequence, Union

import pandas as pd

from ..models import WorkItem

LOGGER = logging.getLogger(__name__)

PathLike = Union[str, Path]

_FIELD_SYNONYMS: Mapping[str, Sequence[str]] = {
    "company": ("company", "company_name", "company name", "business", "business_name", "business name"),
    "website": ("website", "url", "site", "domain"),
    "country": ("country", "location"),
}


class UnsupportedFileTypeError(ValueError):
    """Raised when an unsupported file format is passed to the loader."""


def load_work_items(
    path: PathLike,
    *,
    column_mapping: Optional[Mapping[str, str]] = None,
    sheet_name: Union[str, int] = 0,
    loader_kwargs: Optional[MutableMapping[str, Any]] = None,
) -> List[WorkItem]:
    """Load company rows from a CSV/TSV/Excel file.

    Parameters
    ----------
    path:
        Path to the spreadsheet.
    column_mapping:
        Optional mapping of ``company``/``website``/``country`` to column names.
        Columns not mapped explicitly are recognised by common header names.
    sheet_name:
        Sheet selector passed to :func:`pandas.read_excel`. Ignored for CSV files.
    loader_kwargs:
        Extra keyword arguments forwarded to :func:`pandas.read_csv` or
        :func:`pandas.read_excel`.

    Rows without a company name are skipped and logged.
    """

    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(file_path)

    dataframe = _read_dataframe(file_path, sheet_name=sheet_name, loader_kwargs=loader_kwargs)
    mapping = dict(column_mapping or {})
    columns = {field: _resolve_column(field, dataframe.columns, mapping) for field in _FIELD_SYNONYMS}
    if columns["company"] is None:
        raise ValueError(f"{file_path} has no company column (looked for {list(_FIELD_SYNONYMS['company'])})")

    items: List[WorkItem] = []
    for position, (_, row) in enumerate(dataframe.iterrows(), start=2):
        company = _clean_text(row.get(columns["company"]))
        if not company:
            LOGGER.warning("Skipping row %s of %s: missing company name", position, file_path.name)
            continue
        items.append(
            WorkItem(
                company=company,
                website=_clean_text(row.get(columns["website"])) if columns["website"] else None,
                country=(_clean_text(row.get(columns["country"])) or "") if columns["country"] else "",
            )
        )

    LOGGER.info("Loaded %s records from %s", len(items), file_path)
    return items


def _read_dataframe(
    path: Path,
    *,
    sheet_name: Union[str, int] = 0,
    loader_kwargs: Optional[MutableMapping[str, Any]] = None,
) -> pd.DataFrame:
    loader_kwargs = dict(loader_kwargs or {})
    suffix = path.suffix.lower()

    if suffix in {".csv", ".tsv"}:
        if suffix == ".tsv":
            loader_kwargs.setdefault("sep", "\t")
        loader_kwargs.setdefault("dtype", str)
        loader_kwargs.setdefault("keep_default_na", False)
        loader_kwargs.setdefault("encoding", "utf-8-sig")
        return pd.read_csv(path, **loader_kwargs)

    if suffix in {".xls", ".xlsx", ".xlsm"}:
        engine = loader_kwargs.pop("engine", None) or ("openpyxl" if suffix != ".xls" else None)
        loader_kwargs.setdefault("dtype", str)
        return pd.read_excel(path, sheet_name=sheet_name, engine=engine, **loader_kwargs)

    raise UnsupportedFileTypeError(f"Unsupported file extension: {path.suffix}")


def _resolve_column(field: str, available_columns: Iterable[Any], mapping: Mapping[str, str]) -> Optional[str]:
    if field in mapping:
        return mapping[field]

    synonyms = _FIELD_SYNONYMS[field]
    for column in available_columns:
        column_lc = str(column).strip().lower()
        if column_lc in synonyms:
            return column
    return None


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str) and pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


__all__ = ["load_work_items", "UnsupportedFileTypeError"]
