# ========================
# src/ev_adoption/utils/job_metadata.py
# ========================

"""
Job Metadata Management

Handles persistent storage and discovery of pipeline job metadata.
"""

import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, Any

logger = logging.getLogger(__name__)

SUMMARY_FILE = "pipeline_summary.json"


class JobMetadataManager:
    """Manages persistent job metadata storage."""

    def __init__(self, metadata_file: str = "data/job_metadata.json", output_root: str = "data/processed"):
        self.metadata_file = Path(metadata_file)
        self.metadata_file.parent.mkdir(parents=True, exist_ok=True)
        self.output_root = Path(output_root)

    def save_job_metadata(self, job_status_dict: Dict[str, Dict[str, Any]]) -> None:
        """Save all job metadata to persistent storage."""
        try:
            with open(self.metadata_file, 'w') as f:
                json.dump(job_status_dict, f, indent=2, default=str)
            logger.debug(f"Saved job metadata for {len(job_status_dict)} jobs")
        except OSError as e:
            logger.error(f"Failed to save job metadata: {e}")

    def load_job_metadata(self) -> Dict[str, Dict[str, Any]]:
        """Load job metadata from persistent storage."""
        if not self.metadata_file.exists():
            return {}
        try:
            with open(self.metadata_file, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load job metadata: {e}")
            return {}
        logger.info(f"Loaded metadata for {len(data)} persisted jobs")
        return data

    def discover_existing_jobs(self) -> Dict[str, Dict[str, Any]]:
        """Discover completed jobs from per-job output directories."""
        discovered_jobs = {}
        if not self.output_root.exists():
            return discovered_jobs

        for job_dir in self.output_root.iterdir():
            if not (job_dir.is_dir() and self._is_valid_uuid(job_dir.name)):
                continue

            summary_file = job_dir / SUMMARY_FILE
            status = "completed" if summary_file.exists() else "unknown"
            reference = summary_file if summary_file.exists() else job_dir
            completed_at = datetime.fromtimestamp(reference.stat().st_mtime).isoformat()

            job = {
                'job_id': job_dir.name,
                'status': status,
                'type': 'discovered',
                'created_at': completed_at,
                'completed_at': completed_at,
                'output_dir': str(job_dir),
                'saved_files': self.get_saved_files(job_dir),
            }

            if summary_file.exists():
                try:
                    with open(summary_file, 'r') as f:
                        job['summary'] = json.load(f)
                except (OSError, json.JSONDecodeError) as e:
                    logger.warning(f"Could not read summary for job {job_dir.name}: {e}")

            discovered_jobs[job_dir.name] = job

        if discovered_jobs:
            logger.info(f"Discovered {len(discovered_jobs)} existing jobs from {self.output_root}")
        return discovered_jobs

    def _is_valid_uuid(self, uuid_string: str) -> bool:
        try:
            uuid.UUID(uuid_string)
            return True
        except ValueError:
            return False

    @staticmethod
    def get_saved_files(job_dir: Path) -> Dict[str, str]:
        """Map output names (file stem) to paths for a job directory."""
        return {
            path.stem: str(path)
            for pattern in ("*.csv", "*.json", "*.md")
            for path in sorted(Path(job_dir).glob(pattern))
        }
