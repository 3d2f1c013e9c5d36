# ========================
# src/utils/data_generator.py
# ========================

"""
Data Generation Utilities

Generates people CSV files for demos, load tests and the test suite, with
optional malformed rows to exercise the failure path.
"""

import csv
import io
import random
import logging
from typing import List, Dict, Any, Optional, TextIO
from pathlib import Path

logger = logging.getLogger(__name__)

HEADER = ['id', 'firstname', 'lastname', 'email', 'email2', 'profession']


class DataGenerator:
    """
    Generator for synthetic people datasets.
    """

    def __init__(self, seed: Optional[int] = None):
        """
        Initialize data generator.

        Args:
            seed (int): Random seed for reproducible data generation
        """
        self._random = random.Random(seed)
        self._initialize_data_patterns()
        logger.info(f"DataGenerator initialized with seed: {seed}")

    def _initialize_data_patterns(self) -> None:
        """Initialize name and profession pools."""
        self.firstnames = [
            "Ana", "Bruno", "Carla", "Diego", "Elena", "Felipe", "Gabriela",
            "Hugo", "Isabel", "Javier", "Karen", "Luis", "Marta", "Nicolas",
            "Olga", "Pablo", "Rosa", "Sergio", "Teresa", "Victor"
        ]
        self.lastnames = [
            "Garcia", "Lopez", "Martinez", "Rodriguez", "Perez", "Gomez",
            "Sanchez", "Romero", "Torres", "Flores", "Rivera", "Castro"
        ]
        self.professions = [
            "engineer", "teacher", "doctor", "nurse", "developer", "designer",
            "accountant", "lawyer", "architect", "firefighter", "police officer"
        ]
        self.email_domains = ["example.com", "mail.test", "corp.example"]

    def generate_dataset(self,
                         file_path: str,
                         num_rows: int,
                         malformed_rate: float = 0.0) -> Dict[str, Any]:
        """
        Generate a people CSV file.

        Args:
            file_path (str): Output CSV file path
            num_rows (int): Number of data rows to generate
            malformed_rate (float): Fraction of rows written with a missing column

        Returns:
            dict: Generation statistics
        """
        logger.info(f"Generating {num_rows:,} rows ({malformed_rate:.1%} malformed)...")
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, 'w', newline='', encoding='utf-8') as f:
            stats = self._write_rows(f, num_rows, malformed_rate)

        logger.info(f"Dataset generated: {file_path}")
        return stats

    def generate_bytes(self, num_rows: int, malformed_rate: float = 0.0) -> bytes:
        """Generate a people CSV in memory and return it encoded as UTF-8."""
        buffer = io.StringIO(newline='')
        self._write_rows(buffer, num_rows, malformed_rate)
        return buffer.getvalue().encode('utf-8')

    def _write_rows(self, stream: TextIO, num_rows: int, malformed_rate: float) -> Dict[str, Any]:
        stats = {
            'total_rows': num_rows,
            'malformed_rate': malformed_rate,
            'malformed_rows': 0,
            'first_malformed_row': None
        }

        writer = csv.writer(stream)
        writer.writerow(HEADER)

        for i in range(num_rows):
            row = self._generate_single_record(i)
            if malformed_rate and self._random.random() < malformed_rate:
                row = row[:-1]
                stats['malformed_rows'] += 1
                if stats['first_malformed_row'] is None:
                    stats['first_malformed_row'] = i + 1
            writer.writerow(row)

            if (i + 1) % 100000 == 0:
                logger.debug(f"Generated {i + 1:,} records")

        return stats

    def _generate_single_record(self, index: int) -> List[str]:
        """Generate a single person row."""
        firstname = self._random.choice(self.firstnames)
        lastname = self._random.choice(self.lastnames)
        domain = self._random.choice(self.email_domains)
        email = f"{firstname}.{lastname}{index}@{domain}".lower()

        # Roughly a third of people have no secondary address.
        email2 = "" if self._random.random() < 0.33 else f"{firstname[0]}{lastname}{index}@mail.test".lower()

        return [str(index + 1), firstname, lastname, email, email2, self._random.choice(self.professions)]

    def generate_large_dataset_chunked(self,
                                       file_path: str,
                                       total_rows: int,
                                       chunk_size: int = 100000) -> Dict[str, Any]:
        """
        Generate very large datasets, logging progress every chunk.

        Args:
            file_path (str): Output file path
            total_rows (int): Total number of rows to generate
            chunk_size (int): Rows per progress step

        Returns:
            dict: Generation statistics
        """
        logger.info(f"Generating large dataset: {total_rows:,} rows in chunks of {chunk_size:,}")
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)

        chunks_written = 0
        rows_written = 0

        with open(file_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(HEADER)

            while rows_written < total_rows:
                chunk_rows = min(chunk_size, total_rows - rows_written)
                writer.writerows(
                    self._generate_single_record(rows_written + i) for i in range(chunk_rows)
                )
                rows_written += chunk_rows
                chunks_written += 1

                logger.info(f"Chunk {chunks_written} complete: {rows_written:,}/{total_rows:,} rows")

        logger.info(f"Large dataset generation complete: {file_path}")
        return {
            'total_rows': total_rows,
            'chunk_size': chunk_size,
            'chunks_written': chunks_written
        }
