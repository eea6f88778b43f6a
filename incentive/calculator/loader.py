# ==============================================================================
# incentive/calculator/loader.py
# ------------------------------------------------------------------------------
# Adapts already-loaded tables (pandas DataFrames or row lists) to the
# uploaded-file table the engine consumes:
#     { filename: { 'data': [row, ...], 'columns': [name, ...] } }
# ==============================================================================

import pandas as pd


def _restore_integer_columns(df):
    # A single blank cell turns an integer column into float64, so 101 would read back as 101.0.
    restored = df.copy()
    for position in range(df.shape[1]):
        series = df.iloc[:, position]
        if not pd.api.types.is_float_dtype(series):
            continue
        present = series.dropna()
        if present.empty or (present.abs() >= 2 ** 53).any():
            continue
        if present.map(lambda value: float(value).is_integer()).all():
            restored.isetitem(position, series.astype('Int64'))
    return restored


def rows_from_dataframe(df):
    """
    Converts a DataFrame into a list of plain row dicts.

    Empty cells (NaN/NaT) become None so the engine sees them as missing.
    Float columns holding only whole numbers are read back as ints, which keeps
    numeric agent ids such as 101 from turning into '101.0'.
    """
    df = _restore_integer_columns(df)
    cleaned = df.astype(object).where(pd.notna(df), None)
    return cleaned.to_dict(orient='records')


def build_uploaded_files(dataframes):
    """
    Builds the uploaded-file table from a mapping of filename -> DataFrame.

    Args:
        dataframes (dict): e.g. {'SCH1.csv': sales_df, 'MH_DEC24.csv': hierarchy_df}

    Returns:
        dict: filename -> {'data': rows, 'columns': column names}
    """
    return {
        name: {'data': rows_from_dataframe(df), 'columns': [str(c) for c in df.columns]}
        for name, df in dataframes.items()
    }


def normalize_uploaded_file(entry):
    """
    Reads one uploaded-file entry into (rows, columns).

    Accepts {'data': rows, 'columns': [...]}, {'data': DataFrame}, a bare
    DataFrame or a bare list of rows.

    Returns:
        tuple or None: None when the entry holds no list of rows.
    """
    columns = None
    if isinstance(entry, dict):
        columns = entry.get('columns')
        data = entry.get('data')
    else:
        data = entry

    if isinstance(data, pd.DataFrame):
        columns = columns or [str(c) for c in data.columns]
        data = rows_from_dataframe(data)

    if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
        return None
    if columns is None and data:
        columns = list(data[0].keys())
    return data, list(columns or [])
