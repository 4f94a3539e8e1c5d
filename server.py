"""
bunload Flask Server

Features:
- Executable uploads
- Real-time SSE streaming for job progress
- Background extraction jobs with manifest and ZIP download
- Periodic cleanup of old jobs
"""

import os
import io
import uuid
import shutil
import threading
import queue
import time
import json
import zipfile
from pathlib import Path
from typing import Dict, Optional
from dataclasses import dataclass, field
from flask import Flask, request, jsonify, send_file, Response, stream_with_context

from werkzeug.utils import secure_filename

from bunload_py import __version__
from bunload_py.config import Config
from bunload_py.errors import BunloadError
from bunload_py.formats.container import Container
from bunload_py.output.extractor import ContentExtractor, MANIFEST_NAME

app = Flask(__name__)

# Configuration
app.config['MAX_CONTENT_LENGTH'] = 500 * 1024 * 1024  # 500MB max upload
app.config['UPLOAD_FOLDER'] = '/tmp/bunload_uploads'
app.config['OUTPUT_FOLDER'] = '/tmp/bunload_outputs'

# Cleanup settings
JOB_RETENTION_SECONDS = 30 * 60  # 30 minutes
CLEANUP_INTERVAL_SECONDS = 60  # Check every minute


@dataclass
class Job:
    """Represents an extraction job."""
    id: str
    status: str = 'created'  # created, uploaded, processing, completed, failed
    progress: int = 0
    error: Optional[str] = None
    created: float = field(default_factory=time.time)
    filename: str = ''
    upload_dir: str = ''
    output_dir: str = ''
    executable_path: Optional[str] = None
    output_files: list = field(default_factory=list)
    module_errors: list = field(default_factory=list)
    event_queue: queue.Queue = field(default_factory=queue.Queue)

    def send_event(self, event_type: str, **data):
        """Send an event to connected SSE clients."""
        event = {'type': event_type, **data}
        try:
            self.event_queue.put_nowait(event)
        except queue.Full:
            pass  # Drop event if queue is full

    def log(self, level: str, message: str):
        """Send a log event; usable directly as a bunload log callback."""
        self.send_event('log', level=level, message=message)

    def update_progress(self, progress: int, message: str = ''):
        """Update job progress."""
        self.progress = progress
        self.send_event('progress', progress=progress, message=message)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'status': self.status,
            'progress': self.progress,
            'error': self.error,
            'filename': self.filename,
            'files': self.output_files,
            'module_errors': self.module_errors,
            'created': self.created,
        }


# Job storage
jobs: Dict[str, Job] = {}
jobs_lock = threading.Lock()


def ensure_dirs():
    """Ensure upload and output directories exist."""
    Path(app.config['UPLOAD_FOLDER']).mkdir(parents=True, exist_ok=True)
    Path(app.config['OUTPUT_FOLDER']).mkdir(parents=True, exist_ok=True)


def get_job(job_id: str) -> Optional[Job]:
    """Get a job by ID with validation."""
    try:
        uuid.UUID(job_id)
    except ValueError:
        return None

    with jobs_lock:
        return jobs.get(job_id)


def process_extract_job(job: Job, config: Optional[Config] = None):
    """Decode and extract the uploaded executable, streaming updates."""
    try:
        job.status = 'processing'
        config = config or Config.load(None)
        job.update_progress(5, 'Decoding container...')

        container = Container.open(job.executable_path, log=job.log,
                                   chunk_size=config.chunk_size)
        job.log('success', f'Found {container.module_count} modules')
        job.update_progress(30, 'Extracting modules...')

        report = ContentExtractor(container, config, job.log).extract_all(job.output_dir)
        job.module_errors = [str(e) for e in report.errors]

        job.update_progress(90, 'Finalizing...')
        root = Path(job.output_dir)
        job.output_files = sorted(
            p.relative_to(root).as_posix() for p in root.rglob('*') if p.is_file()
        )
        job.log('success', f'Extracted {report.count} modules')

        job.status = 'completed'
        job.progress = 100
        job.send_event('completed', files=job.output_files, module_errors=job.module_errors)

    except (BunloadError, OSError) as e:
        job.status = 'failed'
        job.error = str(e)
        job.log('error', f'Extraction failed: {e}')
        job.send_event('failed', error=str(e))


# ============== Job API ==============

@app.route('/api/jobs', methods=['POST'])
def create_job():
    """Create a job by uploading an executable."""
    ensure_dirs()

    upload = request.files.get('file')
    if upload is None or not upload.filename:
        return jsonify({'error': 'No file provided'}), 400

    safe_filename = secure_filename(upload.filename)
    if not safe_filename:
        return jsonify({'error': 'Invalid filename'}), 400

    job_id = str(uuid.uuid4())
    job = Job(
        id=job_id,
        filename=safe_filename,
        upload_dir=str(Path(app.config['UPLOAD_FOLDER']) / job_id),
        output_dir=str(Path(app.config['OUTPUT_FOLDER']) / job_id)
    )
    Path(job.upload_dir).mkdir(parents=True, exist_ok=True)
    Path(job.output_dir).mkdir(parents=True, exist_ok=True)

    job.executable_path = str(Path(job.upload_dir) / safe_filename)
    upload.save(job.executable_path)
    job.status = 'uploaded'

    with jobs_lock:
        jobs[job_id] = job

    return jsonify({'job_id': job_id, 'filename': safe_filename})


@app.route('/api/jobs/<job_id>/start', methods=['POST'])
def start_job(job_id: str):
    """Start processing a job."""
    job = get_job(job_id)
    if not job:
        return jsonify({'error': 'Job not found'}), 404

    if job.status != 'uploaded':
        return jsonify({'error': f'Job cannot be started (status: {job.status})'}), 400

    thread = threading.Thread(target=process_extract_job, args=(job,), daemon=True)
    thread.start()

    return jsonify({'status': 'started'})


@app.route('/api/jobs/<job_id>/stream')
def stream_job(job_id: str):
    """SSE endpoint for job events."""
    job = get_job(job_id)
    if not job:
        return jsonify({'error': 'Job not found'}), 404

    def generate():
        """Generate SSE events."""
        yield f"data: {json.dumps({'type': 'status', 'status': job.status, 'progress': job.progress})}\n\n"

        while True:
            try:
                event = job.event_queue.get(timeout=1.0)
                yield f"data: {json.dumps(event)}\n\n"

                if event.get('type') in ('completed', 'failed'):
                    break

            except queue.Empty:
                # Send comment as keepalive
                yield ":keepalive\n\n"

                # Job finished and its final event was already consumed
                if job.status == 'completed':
                    yield f"data: {json.dumps({'type': 'completed', 'files': job.output_files})}\n\n"
                    break
                elif job.status == 'failed':
                    yield f"data: {json.dumps({'type': 'failed', 'error': job.error})}\n\n"
                    break

    return Response(
        stream_with_context(generate()),
        mimetype='text/event-stream',
        headers={
            'Cache-Control': 'no-cache',
            'X-Accel-Buffering': 'no',
            'Connection': 'keep-alive',
        }
    )


@app.route('/api/jobs/<job_id>')
def get_job_status(job_id: str):
    """Get job status."""
    job = get_job(job_id)
    if not job:
        return jsonify({'error': 'Job not found'}), 404

    return jsonify(job.to_dict())


@app.route('/api/jobs/<job_id>/manifest')
def get_job_manifest(job_id: str):
    """Return the module manifest written by a completed job."""
    job = get_job(job_id)
    if not job:
        return jsonify({'error': 'Job not found'}), 404

    if job.status != 'completed':
        return jsonify({'error': 'Job not completed'}), 400

    manifest_path = Path(job.output_dir) / MANIFEST_NAME
    if not manifest_path.exists():
        return jsonify({'error': 'No manifest'}), 404

    return Response(manifest_path.read_text(encoding='utf-8'), mimetype='application/json')


@app.route('/api/download/<job_id>/all.zip')
def download_all_zip(job_id: str):
    """Download all output files as a ZIP archive."""
    job = get_job(job_id)
    if not job:
        return jsonify({'error': 'Job not found'}), 404

    if job.status != 'completed':
        return jsonify({'error': 'Job not completed'}), 400

    if not job.output_files:
        return jsonify({'error': 'No output files'}), 404

    # Create ZIP in memory
    zip_buffer = io.BytesIO()
    root = Path(job.output_dir)
    with zipfile.ZipFile(zip_buffer, 'w', zipfile.ZIP_DEFLATED) as zf:
        for relative in job.output_files:
            filepath = root / relative
            if filepath.exists():
                zf.write(filepath, relative)

    zip_buffer.seek(0)

    stem = os.path.splitext(job.filename)[0] or 'modules'
    return send_file(
        zip_buffer,
        mimetype='application/zip',
        as_attachment=True,
        download_name=f'{stem}_extracted_{job_id[:8]}.zip'
    )


@app.route('/api/docs')
def api_docs():
    """API documentation."""
    return jsonify({
        'name': 'bunload API',
        'version': __version__,
        'endpoints': {
            'POST /api/jobs': {
                'description': 'Upload an executable and create an extraction job',
                'content_type': 'multipart/form-data',
                'fields': {'file': 'compiled executable'},
                'response': {'job_id': 'uuid'}
            },
            'POST /api/jobs/{id}/start': {
                'description': 'Start processing the job'
            },
            'GET /api/jobs/{id}/stream': {
                'description': 'SSE stream for real-time job events',
                'events': ['log', 'progress', 'completed', 'failed']
            },
            'GET /api/jobs/{id}': {
                'description': 'Get job status'
            },
            'GET /api/jobs/{id}/manifest': {
                'description': 'Module manifest (JSON) of a completed job'
            },
            'GET /api/download/{id}/all.zip': {
                'description': 'Download all extracted files as ZIP'
            }
        },
        'limits': {
            'max_upload_size': '500 MB',
            'job_retention': '30 minutes'
        }
    })


# ============== Cleanup ==============

def remove_expired_jobs(now: Optional[float] = None) -> list:
    """Drop jobs older than JOB_RETENTION_SECONDS and delete their files."""
    now = time.time() if now is None else now

    with jobs_lock:
        expired = [job_id for job_id, job in jobs.items()
                   if now - job.created > JOB_RETENTION_SECONDS]
        for job_id in expired:
            del jobs[job_id]

    for job_id in expired:
        shutil.rmtree(Path(app.config['UPLOAD_FOLDER']) / job_id, ignore_errors=True)
        shutil.rmtree(Path(app.config['OUTPUT_FOLDER']) / job_id, ignore_errors=True)
        print(f"[*] Cleaned up job {job_id[:8]}...")

    return expired


def cleanup_old_jobs():
    """Periodically clean up expired jobs."""
    while True:
        time.sleep(CLEANUP_INTERVAL_SECONDS)
        expired = remove_expired_jobs()
        if expired:
            print(f"[*] Cleaned up {len(expired)} old job(s)")


if __name__ == '__main__':
    ensure_dirs()

    cleanup_thread = threading.Thread(target=cleanup_old_jobs, daemon=True)
    cleanup_thread.start()

    print("=" * 60)
    print(f"bunload server v{__version__}")
    print("=" * 60)
    print("API Docs: http://localhost:5000/api/docs")
    print("=" * 60)

    app.run(host='0.0.0.0', port=5000, debug=False, threaded=True)
