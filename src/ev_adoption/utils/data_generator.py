# ========================
# src/ev_adoption/utils/data_generator.py
# ========================

"""
Data Generation Utilities

Writes synthetic yearly, quarterly and global extracts in the layout of the
real source tables, with an exponential EV adoption curve, territories
whose values are suppressed and a few suppressed cells elsewhere.
"""

import csv
import random
import logging
from typing import Any, Dict, List, Optional
from pathlib import Path

logger = logging.getLogger(__name__)

REGISTRATION_HEADER = ['REF_DATE', 'GEO', 'DGUID', 'Fuel type', 'Vehicle type', 'UOM', 'VALUE', 'STATUS']
GLOBAL_HEADER = ['Entity', 'Code', 'Year', 'Electric cars sold', 'Non-electric car sales']

TOTAL_VEHICLE_TYPE = 'Total, vehicle type'
TOTAL_FUEL_TYPE = 'All fuel types'


class DataGenerator:
    """
    Generator for realistic test extracts.
    """

    def __init__(self, seed: Optional[int] = None):
        """
        Initialize data generator.

        Args:
            seed (int): Random seed for reproducible data generation
        """
        self.random = random.Random(seed)
        self._initialize_data_patterns()
        logger.info(f"DataGenerator initialized with seed: {seed}")

    def _initialize_data_patterns(self) -> None:
        """Initialize registration volumes and adoption patterns."""
        # Yearly registrations and EV uptake relative to the national curve
        self.provinces = [
            {"name": "Newfoundland and Labrador", "volume": 34000, "uptake": 0.3},
            {"name": "Prince Edward Island", "volume": 8000, "uptake": 0.5},
            {"name": "Nova Scotia", "volume": 52000, "uptake": 0.4},
            {"name": "New Brunswick", "volume": 42000, "uptake": 0.4},
            {"name": "Quebec", "volume": 430000, "uptake": 1.6},
            {"name": "Ontario", "volume": 800000, "uptake": 0.8},
            {"name": "Manitoba", "volume": 55000, "uptake": 0.3},
            {"name": "Saskatchewan", "volume": 50000, "uptake": 0.2},
            {"name": "Alberta", "volume": 230000, "uptake": 0.3},
            {"name": "British Columbia", "volume": 210000, "uptake": 1.8},
        ]
        self.territories = ["Yukon", "Northwest Territories", "Nunavut"]

        self.vehicle_mix = {
            "Passenger cars": 0.30,
            "Multi-purpose vehicles": 0.45,
            "Pickup trucks": 0.20,
            "Vans": 0.05,
        }
        self.ev_mix = {"Battery electric": 0.7, "Plug-in hybrid electric": 0.3}
        self.non_ev_mix = {
            "Gasoline": 0.86,
            "Diesel": 0.05,
            "Hybrid electric": 0.07,
            "Other fuel types": 0.02,
        }

        # Quarterly demand multipliers
        self.seasonal_patterns = {1: 0.8, 2: 1.15, 3: 1.1, 4: 0.95}

        self.global_entities = [
            {"name": "World", "code": "OWID_WRL", "volume": 75000000, "uptake": 1.0},
            {"name": "Europe", "code": "", "volume": 13000000, "uptake": 1.8},
            {"name": "China", "code": "CHN", "volume": 24000000, "uptake": 1.6},
            {"name": "United States", "code": "USA", "volume": 15000000, "uptake": 0.6},
            {"name": "Norway", "code": "NOR", "volume": 150000, "uptake": 8.0},
            {"name": "Canada", "code": "CAN", "volume": 1800000, "uptake": 0.7},
            {"name": "Germany", "code": "DEU", "volume": 3000000, "uptake": 2.0},
        ]

    def ev_share(self, year: float, base_year: int = 2011, initial: float = 0.003, growth: float = 0.4) -> float:
        """National EV share on a constant-growth curve, capped below 1."""
        return min(0.95, initial * (1 + growth) ** (year - base_year))

    def generate_dataset(self,
                         output_dir: str,
                         start_year: int = 2011,
                         quarterly_start_year: int = 2017,
                         end_year: int = 2023,
                         end_quarter: int = 4,
                         suppression_rate: float = 0.02) -> Dict[str, Any]:
        """
        Generate the three input extracts.

        Args:
            output_dir (str): Directory receiving the CSV files
            start_year (int): First year of the yearly extract
            quarterly_start_year (int): First year of the quarterly extract
            end_year (int): Last year of both extracts
            end_quarter (int): Last quarter reported in end_year
            suppression_rate (float): Fraction of province cells left unreported

        Returns:
            dict: File paths and generation statistics
        """
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)

        stats = {
            'yearly_file': str(output_path / "nmvr_yearly.csv"),
            'quarterly_file': str(output_path / "nmvr_quarterly.csv"),
            'global_file': str(output_path / "global_ev_sales.csv"),
            'suppressed_cells': 0,
        }

        yearly_periods = [(year, None) for year in range(start_year, end_year + 1)]
        quarterly_periods = [
            (year, quarter)
            for year in range(quarterly_start_year, end_year + 1)
            for quarter in range(1, 5)
            if year < end_year or quarter <= end_quarter
        ]

        stats['yearly_rows'] = self._write_registrations(
            stats['yearly_file'], yearly_periods, suppression_rate, stats
        )
        stats['quarterly_rows'] = self._write_registrations(
            stats['quarterly_file'], quarterly_periods, suppression_rate, stats
        )
        stats['global_rows'] = self._write_global(stats['global_file'], start_year - 1, end_year)

        logger.info(f"Synthetic extracts generated in {output_path}: {stats}")
        return stats

    def _write_registrations(self, file_path: str, periods: List[tuple], suppression_rate: float,
                             stats: Dict[str, Any]) -> int:
        rows = []
        for year, quarter in periods:
            if quarter is None:
                ref_date, fraction, point = str(year), 1.0, year + 0.5
            else:
                ref_date = f"{year}-{3 * (quarter - 1) + 1:02d}"
                fraction = self.seasonal_patterns[quarter] / 4
                point = year + (quarter - 0.5) / 4

            national: Dict[tuple, Optional[int]] = {}
            for province in self.provinces:
                share = min(0.95, self.ev_share(point) * province["uptake"])
                cells = self._province_cells(province["volume"] * fraction, share)
                for (fuel, vehicle), count in cells.items():
                    if count is not None and self.random.random() < suppression_rate and fuel != TOTAL_FUEL_TYPE:
                        count = None
                        stats['suppressed_cells'] += 1
                    rows.append(self._registration_row(ref_date, province["name"], fuel, vehicle, count))
                    if count is not None:
                        national[(fuel, vehicle)] = national.get((fuel, vehicle), 0) + count
                    else:
                        national.setdefault((fuel, vehicle), 0)

            for (fuel, vehicle), count in national.items():
                rows.append(self._registration_row(ref_date, "Canada", fuel, vehicle, count))

            for territory in self.territories:
                for fuel, vehicle in national:
                    rows.append(self._registration_row(ref_date, territory, fuel, vehicle, None))

        self._write_csv(file_path, REGISTRATION_HEADER, rows)
        return len(rows)

    def _province_cells(self, volume: float, share: float) -> Dict[tuple, Optional[int]]:
        """Counts for every (fuel type, vehicle type) pair, totals included."""
        cells: Dict[tuple, Optional[int]] = {}
        fuel_mix = {fuel: share * weight for fuel, weight in self.ev_mix.items()}
        fuel_mix.update({fuel: (1 - share) * weight for fuel, weight in self.non_ev_mix.items()})

        for vehicle, vehicle_weight in self.vehicle_mix.items():
            for fuel, fuel_weight in fuel_mix.items():
                noise = self.random.uniform(0.95, 1.05)
                cells[(fuel, vehicle)] = int(volume * vehicle_weight * fuel_weight * noise)

        for fuel in fuel_mix:
            cells[(fuel, TOTAL_VEHICLE_TYPE)] = sum(cells[(fuel, v)] for v in self.vehicle_mix)
        for vehicle in list(self.vehicle_mix) + [TOTAL_VEHICLE_TYPE]:
            cells[(TOTAL_FUEL_TYPE, vehicle)] = sum(cells[(f, vehicle)] for f in fuel_mix)
        return cells

    def _registration_row(self, ref_date: str, geography: str, fuel: str, vehicle: str,
                          count: Optional[int]) -> List[Any]:
        return [
            ref_date, geography, "", fuel, vehicle, "Units",
            "" if count is None else count,
            ".." if count is None else "",
        ]

    def _write_global(self, file_path: str, start_year: int, end_year: int) -> int:
        rows = []
        for entity in self.global_entities:
            for year in range(start_year, end_year + 1):
                share = min(0.95, self.ev_share(year + 0.5) * entity["uptake"])
                total = entity["volume"] * self.random.uniform(0.97, 1.03)
                ev = int(total * share)
                rows.append([entity["name"], entity["code"], year, ev, int(total) - ev])
        self._write_csv(file_path, GLOBAL_HEADER, rows)
        return len(rows)

    def _write_csv(self, file_path: str, header: List[str], rows: List[List[Any]]) -> None:
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(header)
            writer.writerows(rows)
        logger.info(f"Wrote {len(rows):,} rows to {file_path}")
