"""Tests for the Flask job API."""

import io
import json
import threading
import zipfile

import pytest

import server


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setitem(server.app.config, 'UPLOAD_FOLDER', str(tmp_path / 'uploads'))
    monkeypatch.setitem(server.app.config, 'OUTPUT_FOLDER', str(tmp_path / 'outputs'))
    server.app.config['TESTING'] = True
    with server.jobs_lock:
        server.jobs.clear()
    with server.app.test_client() as client:
        yield client
    with server.jobs_lock:
        server.jobs.clear()


def upload(client, data: bytes, filename: str = 'app'):
    return client.post(
        '/api/jobs',
        data={'file': (io.BytesIO(data), filename)},
        content_type='multipart/form-data',
    )


def completed_job(client, data: bytes):
    response = upload(client, data)
    assert response.status_code == 200
    job = server.jobs[response.get_json()['job_id']]
    server.process_extract_job(job)
    return job


def test_upload_creates_job(client, sample_container) -> None:
    response = upload(client, sample_container.data, '../../evil name')
    body = response.get_json()

    assert response.status_code == 200
    assert body['filename'] == 'evil_name'
    status = client.get(f"/api/jobs/{body['job_id']}").get_json()
    assert status['status'] == 'uploaded'


def test_upload_without_file(client) -> None:
    response = client.post('/api/jobs', data={}, content_type='multipart/form-data')
    assert response.status_code == 400


def test_unknown_job(client) -> None:
    assert client.get('/api/jobs/not-a-uuid').status_code == 404
    assert client.get('/api/jobs/00000000-0000-0000-0000-000000000000').status_code == 404


def test_extract_job_completes(client, sample_container) -> None:
    job = completed_job(client, sample_container.data)

    status = client.get(f'/api/jobs/{job.id}').get_json()
    assert status['status'] == 'completed'
    assert status['progress'] == 100
    assert 'root/cli.js.js' in status['files']
    assert 'modules.json' in status['files']
    assert status['module_errors'] == []


def test_manifest_endpoint(client, sample_container) -> None:
    job = completed_job(client, sample_container.data)

    response = client.get(f'/api/jobs/{job.id}/manifest')
    assert response.status_code == 200
    manifest = json.loads(response.get_data(as_text=True))
    assert manifest['ModuleCount'] == 4


def test_zip_download(client, sample_container) -> None:
    job = completed_job(client, sample_container.data)

    response = client.get(f'/api/download/{job.id}/all.zip')
    assert response.status_code == 200
    with zipfile.ZipFile(io.BytesIO(response.data)) as zf:
        names = zf.namelist()
        assert 'root/addon.node.node' in names
        assert zf.read('root/lib/util.ts.ts') == b"export const x = 1;\n"


def test_stream_replays_events(client, sample_container) -> None:
    job = completed_job(client, sample_container.data)

    response = client.get(f'/api/jobs/{job.id}/stream')
    events = [
        json.loads(line[len('data: '):])
        for line in response.get_data(as_text=True).splitlines()
        if line.startswith('data: ')
    ]
    assert events[0]['type'] == 'status'
    assert events[-1]['type'] == 'completed'
    assert any(e['type'] == 'progress' for e in events)


def test_invalid_upload_fails(client) -> None:
    response = upload(client, b'not an executable at all')
    job = server.jobs[response.get_json()['job_id']]
    server.process_extract_job(job)

    status = client.get(f'/api/jobs/{job.id}').get_json()
    assert status['status'] == 'failed'
    assert 'trailer' in status['error'].lower()
    assert client.get(f'/api/jobs/{job.id}/manifest').status_code == 400
    assert client.get(f'/api/download/{job.id}/all.zip').status_code == 400


def test_start_runs_job_once(client, sample_container, monkeypatch) -> None:
    started = threading.Event()
    seen = []

    def fake_process(job):
        seen.append(job.id)
        job.status = 'processing'
        started.set()

    monkeypatch.setattr(server, 'process_extract_job', fake_process)
    job_id = upload(client, sample_container.data).get_json()['job_id']

    response = client.post(f'/api/jobs/{job_id}/start')
    assert response.get_json() == {'status': 'started'}
    assert started.wait(5)
    assert seen == [job_id]

    assert client.post(f'/api/jobs/{job_id}/start').status_code == 400


def test_expired_jobs_removed(client, sample_container) -> None:
    job = completed_job(client, sample_container.data)

    assert server.remove_expired_jobs(now=job.created + 1) == []
    expired = server.remove_expired_jobs(now=job.created + server.JOB_RETENTION_SECONDS + 1)

    assert expired == [job.id]
    assert client.get(f'/api/jobs/{job.id}').status_code == 404


def test_docs(client) -> None:
    body = client.get('/api/docs').get_json()
    assert 'POST /api/jobs' in body['endpoints']
