# ========================
# api_server.py
# ========================

"""
FastAPI Server for the EV Adoption Pipeline

Provides REST API endpoints for uploading registration and global sales
extracts and running the pipeline as background jobs.
"""

import sys
import json
import shutil
import logging
import asyncio
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional

from fastapi import FastAPI, File, UploadFile, HTTPException, BackgroundTasks, Query
from fastapi.responses import FileResponse
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

sys.path.insert(0, str(Path(__file__).parent / 'src'))

from ev_adoption import __version__
from ev_adoption.pipeline import EVAdoptionPipeline
from ev_adoption.utils import Config, setup_logging, DataGenerator, JobMetadataManager, get_system_stats

# Configuration
config = Config()

setup_logging(log_level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

UPLOAD_DIR = Path(config.UPLOAD_DIR)
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
OUTPUT_ROOT = Path(config.DEFAULT_OUTPUT_DIR)
OUTPUT_ROOT.mkdir(parents=True, exist_ok=True)

JOB_NOT_FOUND_MSG = "Job not found"
JOB_NOT_COMPLETED_MSG = "Job not completed yet"

job_metadata_manager = JobMetadataManager(config.JOB_METADATA_FILE, str(OUTPUT_ROOT))

app = FastAPI(
    title="EV Adoption Pipeline API",
    description="Upload vehicle registration extracts and compute EV share, growth and saturation projections",
    version=__version__
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def initialize_job_status() -> Dict[str, Dict[str, Any]]:
    """Initialize job status by loading from metadata and discovering existing jobs."""
    status = job_metadata_manager.load_job_metadata()

    for job_id, job_data in job_metadata_manager.discover_existing_jobs().items():
        if job_id not in status:
            status[job_id] = job_data
            logger.info(f"Added discovered job {job_id}")

    if status:
        job_metadata_manager.save_job_metadata(status)
    return status


# Global state for tracking jobs
job_status: Dict[str, Dict[str, Any]] = initialize_job_status()


def persist_job_status():
    """Save current job status to persistent storage."""
    job_metadata_manager.save_job_metadata(job_status)


class PipelineJobManager:
    """Manages background pipeline jobs."""

    @staticmethod
    def run_pipeline(job_id: str, input_files: Dict[str, str], output_dir: str, chunk_size: int = 1000) -> None:
        """Run the pipeline for one job and record the outcome."""
        logger.info(f"Starting pipeline job {job_id}")
        job_status[job_id]['status'] = 'processing'
        job_status[job_id]['started_at'] = datetime.now().isoformat()

        try:
            pipeline = EVAdoptionPipeline(
                yearly_file=input_files['yearly'],
                quarterly_file=input_files['quarterly'],
                global_file=input_files['global'],
                output_dir=output_dir,
                chunk_size=chunk_size,
                config=config
            )

            if not pipeline.validate_input():
                raise ValueError("Input file validation failed")

            results = pipeline.run()

        except Exception as e:
            PipelineJobManager._mark_failed(job_id, e)
            return

        # Tables are on disk; keep the job record small
        job_status[job_id]['status'] = 'completed'
        job_status[job_id]['completed_at'] = datetime.now().isoformat()
        job_status[job_id]['results'] = {
            key: value for key, value in results.items() if key != 'tables'
        }
        persist_job_status()
        logger.info(f"Pipeline job {job_id} completed successfully")

    @staticmethod
    def _mark_failed(job_id: str, error: Exception) -> None:
        logger.error(f"Pipeline job {job_id} failed: {error}")
        job_status[job_id]['status'] = 'failed'
        job_status[job_id]['error'] = str(error)
        job_status[job_id]['error_type'] = type(error).__name__
        job_status[job_id]['failed_at'] = datetime.now().isoformat()
        persist_job_status()

    @staticmethod
    def run_sample_pipeline(job_id: str, input_dir: str, output_dir: str, end_year: int, chunk_size: int) -> None:
        """Generate synthetic extracts, then run the pipeline on them."""
        try:
            generation_stats = DataGenerator(seed=42).generate_dataset(input_dir, end_year=end_year)
        except Exception as e:
            PipelineJobManager._mark_failed(job_id, e)
            return
        job_status[job_id]['generation_stats'] = generation_stats

        input_files = {
            'yearly': generation_stats['yearly_file'],
            'quarterly': generation_stats['quarterly_file'],
            'global': generation_stats['global_file'],
        }
        job_status[job_id]['input_files'] = input_files
        PipelineJobManager.run_pipeline(job_id, input_files, output_dir, chunk_size)


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": "EV Adoption Pipeline API",
        "version": __version__,
        "endpoints": {
            "upload": "/upload - Upload yearly, quarterly and global CSV extracts",
            "run_pipeline": "/run-pipeline - Run the pipeline on generated sample data",
            "status": "/status/{job_id} - Check job status",
            "jobs": "/jobs - List all jobs",
            "projection": "/projection/{job_id} - Saturation projections for a job",
            "download": "/download/{job_id}?file_type=... - Download an output file",
            "health": "/health - Health check",
            "api_docs": "/docs - API documentation"
        },
        "api_docs_url": "/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "active_jobs": len([j for j in job_status.values() if j['status'] == 'processing']),
        "system": get_system_stats()
    }


@app.post("/upload")
async def upload_files(
    background_tasks: BackgroundTasks,
    yearly_file: UploadFile = File(..., description="Yearly registrations extract"),
    quarterly_file: UploadFile = File(..., description="Quarterly registrations extract"),
    global_file: UploadFile = File(..., description="Global EV sales extract"),
    chunk_size: int = Query(1000, description="Number of rows to read per chunk", ge=100, le=100000)
):
    """
    Upload the three extracts and queue a pipeline job.

    Returns:
        dict: Job ID and status information
    """
    uploads = {'yearly': yearly_file, 'quarterly': quarterly_file, 'global': global_file}
    for name, upload in uploads.items():
        if not upload.filename or not upload.filename.lower().endswith('.csv'):
            raise HTTPException(status_code=400, detail=f"{name} file must be a CSV file")

    job_id = str(uuid.uuid4())
    job_input_dir = UPLOAD_DIR / job_id
    job_input_dir.mkdir(parents=True, exist_ok=True)

    input_files = {}
    total_size = 0
    loop = asyncio.get_running_loop()
    for name, upload in uploads.items():
        file_path = job_input_dir / f"{name}_{Path(upload.filename).name}"
        content = await upload.read()
        total_size += len(content)
        await loop.run_in_executor(None, file_path.write_bytes, content)
        input_files[name] = str(file_path)

    output_dir = OUTPUT_ROOT / job_id

    job_status[job_id] = {
        'job_id': job_id,
        'type': 'upload',
        'filenames': {name: upload.filename for name, upload in uploads.items()},
        'status': 'queued',
        'created_at': datetime.now().isoformat(),
        'input_dir': str(job_input_dir),
        'input_files': input_files,
        'output_dir': str(output_dir),
        'chunk_size': chunk_size,
        'file_size': total_size
    }
    persist_job_status()

    background_tasks.add_task(
        PipelineJobManager.run_pipeline,
        job_id,
        input_files,
        str(output_dir),
        chunk_size
    )

    logger.info(f"Queued pipeline job {job_id} for {job_status[job_id]['filenames']}")

    return {
        "job_id": job_id,
        "status": "queued",
        "message": "Files uploaded successfully. Pipeline processing started.",
        "estimated_processing_info": "Use /status/{job_id} to check progress"
    }


@app.post("/run-pipeline")
async def run_sample_pipeline(
    background_tasks: BackgroundTasks,
    end_year: int = Query(2023, description="Last year of generated data", ge=2018, le=2035),
    chunk_size: int = Query(1000, description="Number of rows to read per chunk", ge=100, le=100000)
):
    """
    Run the pipeline on generated sample extracts (equivalent to main.py).

    Returns:
        dict: Job ID and status information
    """
    job_id = str(uuid.uuid4())
    input_dir = UPLOAD_DIR / job_id
    output_dir = OUTPUT_ROOT / job_id

    job_status[job_id] = {
        'job_id': job_id,
        'type': 'sample_pipeline',
        'status': 'queued',
        'created_at': datetime.now().isoformat(),
        'input_dir': str(input_dir),
        'output_dir': str(output_dir),
        'chunk_size': chunk_size,
        'end_year': end_year
    }
    persist_job_status()

    background_tasks.add_task(
        PipelineJobManager.run_sample_pipeline,
        job_id,
        str(input_dir),
        str(output_dir),
        end_year,
        chunk_size
    )

    logger.info(f"Queued sample pipeline job {job_id} ending {end_year}")

    return {
        "job_id": job_id,
        "type": "sample_pipeline",
        "status": "queued",
        "message": "Sample pipeline started successfully.",
        "parameters": {"end_year": end_year, "chunk_size": chunk_size},
        "estimated_processing_info": "Use /status/{job_id} to check progress"
    }


@app.get("/status/{job_id}")
async def get_job_status(job_id: str):
    """
    Get the status of a pipeline job.

    Returns:
        dict: Job status and results
    """
    if job_id not in job_status:
        raise HTTPException(status_code=404, detail=JOB_NOT_FOUND_MSG)

    job = job_status[job_id].copy()

    if job['status'] == 'completed' and 'results' in job:
        results = job['results']
        job['summary'] = {
            'records_processed': results.get('processing_stats', {}).get('records_processed', 0),
            'output_files': len(results.get('saved_files', {})),
            'rows_dropped': results.get('data_quality_stats', {}).get('rows_dropped', {}),
            'projections': {
                key: window.get('description')
                for key, window in results.get('projections', {}).items()
            }
        }

    return job


@app.get("/jobs")
async def list_jobs(
    status: Optional[str] = Query(None, description="Filter by status: queued, processing, completed, failed"),
    limit: int = Query(50, description="Maximum number of jobs to return", ge=1, le=100)
):
    """List pipeline jobs, newest first, with optional status filtering."""
    jobs = list(job_status.values())

    if status:
        jobs = [job for job in jobs if job['status'] == status]

    jobs.sort(key=lambda x: x.get('created_at') or '', reverse=True)
    jobs = jobs[:limit]

    return {
        "jobs": jobs,
        "total_count": len(job_status),
        "filtered_count": len(jobs)
    }


def _completed_job(job_id: str) -> Dict[str, Any]:
    if job_id not in job_status:
        raise HTTPException(status_code=404, detail=JOB_NOT_FOUND_MSG)
    job = job_status[job_id]
    if job['status'] != 'completed':
        raise HTTPException(status_code=400, detail=JOB_NOT_COMPLETED_MSG)
    return job


@app.get("/projection/{job_id}")
async def get_projection(job_id: str):
    """Saturation projections of a completed job."""
    job = _completed_job(job_id)
    projections = job.get('results', {}).get('projections')
    if projections is None:
        summary_file = Path(job['output_dir']) / "saturation_projection.json"
        if not summary_file.exists():
            raise HTTPException(status_code=404, detail="No projections available")
        projections = json.loads(summary_file.read_text(encoding='utf-8'))
    return {"job_id": job_id, "projections": projections}


@app.get("/download/{job_id}")
async def download_results(job_id: str, file_type: str = Query(..., description="Output name to download")):
    """
    Download an output file of a completed job.

    Args:
        job_id: Unique job identifier
        file_type: Output name, e.g. 'national_share_by_year' or 'saturation_projection'

    Returns:
        FileResponse: The requested file
    """
    job = _completed_job(job_id)
    saved_files = job.get('results', {}).get('saved_files') or job.get('saved_files') or {}
    if file_type not in saved_files:
        raise HTTPException(
            status_code=404,
            detail=f"File type '{file_type}' not found. Available types: {sorted(saved_files)}"
        )

    file_path = Path(saved_files[file_type])
    if not file_path.exists():
        raise HTTPException(status_code=404, detail="File not found on disk")

    return FileResponse(
        path=file_path,
        filename=f"{job_id}_{file_path.name}",
        media_type='application/octet-stream'
    )


@app.delete("/jobs/{job_id}")
async def delete_job(job_id: str):
    """Delete a job and its input and output files."""
    if job_id not in job_status:
        raise HTTPException(status_code=404, detail=JOB_NOT_FOUND_MSG)
    job = job_status[job_id]
    if job['status'] == 'processing':
        raise HTTPException(status_code=409, detail="Job is still processing")

    for key in ('input_dir', 'output_dir'):
        path = job.get(key)
        if path and Path(path).exists():
            shutil.rmtree(path)

    del job_status[job_id]
    persist_job_status()
    logger.info(f"Deleted job {job_id} and associated files")

    return {"message": f"Job {job_id} and associated files deleted successfully"}


def start_server(host: str = "0.0.0.0", port: int = config.API_PORT, reload: bool = False):
    """Start the FastAPI server."""
    logger.info(f"Starting EV Adoption Pipeline API server on {host}:{port}")
    uvicorn.run(
        "api_server:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )


if __name__ == "__main__":
    start_server(reload=True)
