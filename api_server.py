# ========================
# api_server.py
# ========================

"""
FastAPI Server for Record Ingestion

Provides REST API endpoints for uploading CSV files into the record store
and listing the most recently stored records.
"""

import asyncio
import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, File, HTTPException, Query, UploadFile
import uvicorn

from src.ingest import IngestOptions, IngestionPipeline, RecordStore, SQLiteRecordStore, StoreError
from src.utils.config import Config
from src.utils.logging_setup import setup_logging

# Setup logging
config = Config()
setup_logging(log_level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

UPLOAD_DIR = Path(config.UPLOAD_DIR)
UPLOAD_CHUNK_BYTES = 1024 * 1024

# Initialize FastAPI app
app = FastAPI(
    title="Record Ingestion API",
    description="Upload CSV files and stream their records into the record store",
    version="1.0.0"
)

# Each upload is one independent ingestion run on its own thread.
executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix='ingest-run')

_record_store: Optional[RecordStore] = None
active_uploads = 0


def get_record_store() -> RecordStore:
    """Dependency returning the process-wide record store."""
    global _record_store
    if _record_store is None:
        _record_store = SQLiteRecordStore(config.DB_PATH)
    return _record_store


def delete_temp_file(file_path: Path) -> None:
    """Remove an uploaded temp file; failures are only logged."""
    try:
        file_path.unlink()
        logger.info(f"Temp file {file_path} was deleted.")
    except OSError as e:
        logger.error(f"Error deleting temp file {file_path}: {e}")


async def save_upload(file: UploadFile) -> Path:
    """Stream an upload to a temp file under UPLOAD_DIR without holding it in memory."""
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    file_path = UPLOAD_DIR / f"{uuid.uuid4()}_{Path(file.filename).name}"
    loop = asyncio.get_running_loop()

    with open(file_path, "wb") as buffer:
        while True:
            chunk = await file.read(UPLOAD_CHUNK_BYTES)
            if not chunk:
                break
            await loop.run_in_executor(None, buffer.write, chunk)

    return file_path


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": "Record Ingestion API",
        "version": "1.0.0",
        "endpoints": {
            "upload": "/upload - Upload a CSV file and store its records",
            "records": "/records - Most recently stored records",
            "health": "/health - Health check",
            "api_docs": "/docs - API documentation"
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "active_uploads": active_uploads
    }


@app.post("/upload")
async def upload_file(
    file: Optional[UploadFile] = File(None),
    batch_size: Optional[int] = Query(None, description="Records per storage write", ge=1, le=100000),
    max_concurrent_writes: Optional[int] = Query(None, description="Storage writes in flight at once", ge=1, le=64),
    store: RecordStore = Depends(get_record_store),
):
    """
    Upload a CSV file and ingest it into the record store.

    Args:
        file: CSV file to upload
        batch_size: Records per storage write (defaults to configuration)
        max_concurrent_writes: Concurrent storage writes (defaults to configuration)

    Returns:
        dict: Ingestion summary. Responds 500 if any batch failed.
    """
    global active_uploads

    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded.")
    if not file.filename or not file.filename.lower().endswith('.csv'):
        raise HTTPException(status_code=400, detail="Only CSV files are supported")

    options = IngestOptions.from_config(config,
                                        batch_capacity=batch_size,
                                        concurrency_limit=max_concurrent_writes)
    file_path = None
    active_uploads += 1
    try:
        file_path = await save_upload(file)
        pipeline = IngestionPipeline(store, options)

        loop = asyncio.get_running_loop()
        outcome = await loop.run_in_executor(executor, pipeline.run_path, file_path)
    except OSError as e:
        logger.error(f"Error during file upload/processing: {e}")
        raise HTTPException(status_code=500, detail="Error processing file.")
    finally:
        active_uploads -= 1
        if file_path is not None:
            delete_temp_file(file_path)

    if not outcome.succeeded:
        logger.error(f"Error during file upload/processing: {outcome.error}")
        raise HTTPException(status_code=500, detail="Error processing file.")

    return {
        "message": "File processed and data saved to database successfully.",
        "filename": file.filename,
        **outcome.to_dict()
    }


@app.get("/records")
async def list_records(store: RecordStore = Depends(get_record_store)):
    """Return the most recently stored records, newest first."""
    try:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, store.list_recent, config.RECENT_RECORDS_LIMIT)
    except StoreError as e:
        logger.error(f"Error listing records: {e}")
        raise HTTPException(status_code=500, detail="Error retrieving records.")


def start_server(host: str = "0.0.0.0", port: int = config.API_PORT, reload: bool = False):
    """Start the FastAPI server."""
    logger.info(f"Starting Record Ingestion API server on {host}:{port}")
    uvicorn.run(
        "api_server:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )


if __name__ == "__main__":
    start_server(reload=True)
