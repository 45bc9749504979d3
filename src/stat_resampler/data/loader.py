import re
import pandas as pd
from pathlib import Path

from stat_resampler.errors import InvalidArgument


def clean_column_name(name: str) -> str:
    """Lower snake_case a column name ("Room Type" -> "room_type")."""
    name = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", str(name).strip())
    name = re.sub(r"[^0-9a-zA-Z]+", "_", name).strip("_").lower()
    if not name:
        return "x"
    if name[0].isdigit():
        name = f"x{name}"
    return name


def clean_names(df: pd.DataFrame) -> pd.DataFrame:
    """Return a copy of ``df`` with cleaned, de-duplicated column names."""
    seen: dict[str, int] = {}
    columns = []
    for col in df.columns:
        cleaned = clean_column_name(col)
        if cleaned in seen:
            seen[cleaned] += 1
            cleaned = f"{cleaned}_{seen[cleaned]}"
        else:
            seen[cleaned] = 1
        columns.append(cleaned)
    out = df.copy()
    out.columns = columns
    return out


def load_dataset(
    path: Path | str,
    columns: list[str] | None = None,
    dropna: bool = False,
    clean: bool = True,
    **read_kwargs,
) -> pd.DataFrame:
    """Load a delimited text file into a DataFrame.

    Args:
        path: CSV (or other delimited) file
        columns: Keep only these columns (after name cleaning)
        dropna: Drop rows with a missing value in the kept columns
        clean: Normalize column names to snake_case
        **read_kwargs: Passed through to ``pandas.read_csv``
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"No such dataset: {path}")

    df = pd.read_csv(path, **read_kwargs)
    if clean:
        df = clean_names(df)

    if columns is not None:
        missing = [c for c in columns if c not in df.columns]
        if missing:
            raise InvalidArgument(f"Columns not found in {path.name}: {missing}")
        df = df[list(columns)]

    if dropna:
        df = df.dropna().reset_index(drop=True)

    if df.empty:
        raise InvalidArgument(f"Dataset {path.name} has no rows")
    return df
