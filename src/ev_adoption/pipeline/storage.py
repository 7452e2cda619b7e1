# ========================
# src/ev_adoption/pipeline/storage.py
# ========================

"""
Data Storage Module

Writes the pipeline's tables and projections to files for the rendering layer.
"""

import csv
import json
import logging
from typing import Any, Dict, List
from pathlib import Path

logger = logging.getLogger(__name__)

TABLE_FILES = {
    'merged_registrations': 'merged_registrations.csv',
    'national_share_by_year': 'national_ev_share_by_year.csv',
    'national_share_by_quarter': 'national_ev_share_by_quarter.csv',
    'fuel_type_breakdown': 'fuel_type_breakdown.csv',
    'regional_ranking': 'regional_ev_ranking.csv',
    'global_share_by_year': 'global_ev_share_by_year.csv',
    'global_ranking': 'global_ev_ranking.csv',
}

# Column order used when a table is empty
TABLE_HEADERS = {
    'merged_registrations': ['geography', 'fuel_type', 'vehicle_type', 'count', 'year',
                             'quarter', 'period_date', 'source', 'classification'],
    'national_share_by_year': ['period', 'year', 'quarter', 'ev', 'non_ev', 'total', 'share', 'growth_rate'],
    'national_share_by_quarter': ['period', 'year', 'quarter', 'ev', 'non_ev', 'total', 'share', 'growth_rate'],
    'fuel_type_breakdown': ['year', 'fuel_type', 'classification', 'count', 'share_of_total', 'rank'],
    'regional_ranking': ['period', 'year', 'quarter', 'ev', 'non_ev', 'total', 'share', 'geography', 'rank'],
    'global_share_by_year': ['period', 'year', 'quarter', 'ev', 'non_ev', 'total', 'share', 'growth_rate'],
    'global_ranking': ['period', 'year', 'quarter', 'ev', 'non_ev', 'total', 'share', 'entity', 'rank'],
}


class DataSaver:
    """
    Saves the output tables, the saturation projections and a run summary.
    """

    def __init__(self, output_dir: str = "data/processed"):
        """
        Initialize the data saver.

        Args:
            output_dir (str): Directory to save output files
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"DataSaver initialized with output directory: {self.output_dir}")

    def save_all_data(self,
                      tables: Dict[str, List[Dict[str, Any]]],
                      projections: Dict[str, Any],
                      summary: Dict[str, Any]) -> Dict[str, str]:
        """
        Save all tables and projections.

        Returns:
            dict: Mapping of output name to saved file path
        """
        saved_files = {}

        for name, rows in tables.items():
            file_name = TABLE_FILES.get(name, f"{name}.csv")
            headers = list(rows[0].keys()) if rows else TABLE_HEADERS.get(name, [])
            saved_files[name] = self._write_csv(self.output_dir / file_name, headers, rows)

        saved_files['saturation_projection'] = self._write_json(
            self.output_dir / "saturation_projection.json", projections
        )
        saved_files['summary'] = self._write_json(self.output_dir / "pipeline_summary.json", summary)

        logger.info(f"All data saved successfully to {len(saved_files)} files")
        return saved_files

    def _write_json(self, file_path: Path, data: Any) -> str:
        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)
        logger.info(f"Saved {file_path}")
        return str(file_path)

    def _write_csv(self, file_path: Path, headers: List[str], data_items: List[Dict]) -> str:
        """Write data to CSV file; None values become empty cells."""
        try:
            with open(file_path, 'w', newline='', encoding='utf-8') as f:
                writer = csv.DictWriter(f, fieldnames=headers, extrasaction='ignore')
                writer.writeheader()
                writer.writerows(data_items)

            logger.info(f"Saved {len(data_items)} records to {file_path}")
            return str(file_path)

        except OSError as e:
            logger.error(f"Error writing CSV file {file_path}: {e}")
            raise

    def create_data_dictionary(self) -> str:
        """Create a data dictionary explaining all output files."""
        file_path = self.output_dir / "DATA_DICTIONARY.md"

        content = """# Data Dictionary

All counts are new vehicle registrations (national tables) or unit sales
(global tables). Empty cells mean "not reported", which is distinct from zero.

## Share tables

national_ev_share_by_year.csv, national_ev_share_by_quarter.csv and
global_ev_share_by_year.csv share one layout.

| Column | Type | Description |
|--------|------|-------------|
| period | string | "YYYY" or "YYYY-Qn" |
| year | integer | Calendar year |
| quarter | integer | Quarter 1-4, empty on the yearly axis |
| ev | integer | Battery electric + plug-in hybrid electric |
| non_ev | integer | All other concrete fuel types |
| total | integer | ev + non_ev |
| share | float | ev / total (0.0-1.0) |
| growth_rate | float | Percent change of share from the previous period; empty for the first period |

## regional_ev_ranking.csv / global_ev_ranking.csv

Share columns as above for the latest complete year, plus `geography` or
`entity` and `rank` (1 = highest share, ties share a rank, empty when the
share is unknown).

## fuel_type_breakdown.csv

| Column | Type | Description |
|--------|------|-------------|
| year | integer | Calendar year |
| fuel_type | string | Concrete fuel type ("All fuel types" excluded) |
| classification | string | EV or Non-EV |
| count | integer | Registrations |
| share_of_total | float | count / sum of the year's fuel types |
| rank | integer | Rank within the year by share |

## merged_registrations.csv

The yearly extract before the cutover year unioned with the quarterly
extract, excluded geographies removed, one row per geography, fuel type,
vehicle type and period. `source` is "yearly" or "quarterly".

## saturation_projection.json

For each series: current share, base year, and optimistic (mean growth) and
pessimistic (minimum growth) bounds with `years`, `year` or an `error`.

## pipeline_summary.json

Row counts, validation statistics and timing for the run.
"""

        with open(file_path, 'w', encoding='utf-8') as f:
            f.write(content)

        logger.info(f"Data dictionary created at {file_path}")
        return str(file_path)
