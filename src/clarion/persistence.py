"""
CSV export of fetched metrics and DCA rankings.

The pipeline itself keeps no state between runs; these files are snapshots
for offline inspection.
"""

from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from clarion.core.logging import logger
from clarion.data_fetcher import MetricData
from clarion.dca_ranker import DCARankingResult


def get_data_dir() -> Path:
    """
    Get the data directory path, creating it if it doesn't exist.
    """
    # Project root is 3 levels up from this file (src/clarion/persistence.py)
    project_root = Path(__file__).parent.parent.parent
    data_dir = project_root / "data"
    data_dir.mkdir(exist_ok=True)
    return data_dir


def _resolve(filename: str, data_dir: Optional[Path]) -> Path:
    return (data_dir or get_data_dir()) / filename


def save_metric_data(
    data: MetricData, filename: str = "metrics.csv", data_dir: Optional[Path] = None
) -> bool:
    """
    Save a MetricData snapshot as CSV (one row per date, one column per metric).

    Returns:
        True if successful, False otherwise
    """
    filepath = _resolve(filename, data_dir)
    try:
        df = data.to_frame()
        df.index = df.index.strftime("%Y-%m-%d")
        df.to_csv(filepath, index_label="date")
        logger.info(f"Saved {len(df)} rows x {len(df.columns)} metrics to {filepath}")
        return True
    except (OSError, ValueError) as e:
        logger.error(f"Error saving metrics to {filepath}: {e}")
        return False


def load_metric_data(
    filename: str = "metrics.csv", data_dir: Optional[Path] = None
) -> Optional[MetricData]:
    """
    Load a MetricData snapshot previously written by save_metric_data.

    Returns:
        MetricData, or None if the file doesn't exist or cannot be parsed
    """
    filepath = _resolve(filename, data_dir)
    if not filepath.exists():
        logger.info(f"No existing data file found at {filepath}")
        return None

    try:
        df = pd.read_csv(filepath)
        dates = df.pop("date").astype(str).tolist()
        metrics = {col: df[col].to_numpy(dtype=float) for col in df.columns}
        logger.info(f"Loaded {len(dates)} rows from {filepath}")
        return MetricData(dates=dates, metrics=metrics)
    except (OSError, KeyError, ValueError) as e:
        logger.error(f"Error loading data from {filepath}: {e}")
        return None


def save_rankings(
    rankings: Sequence[DCARankingResult],
    filename: str = "dca_rankings.csv",
    data_dir: Optional[Path] = None,
) -> bool:
    """
    Save DCA rankings as CSV, one row per result (per-day arrays excluded).

    Returns:
        True if successful, False otherwise
    """
    filepath = _resolve(filename, data_dir)
    try:
        df = pd.DataFrame([r.summary() for r in rankings])
        df.insert(0, "rank", np.arange(1, len(df) + 1))
        df.to_csv(filepath, index=False)
        logger.info(f"Saved {len(df)} rankings to {filepath}")
        return True
    except (OSError, ValueError) as e:
        logger.error(f"Error saving rankings to {filepath}: {e}")
        return False
