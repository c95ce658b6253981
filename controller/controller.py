# controller.py
from flask import Flask, request, jsonify
from flask_cors import CORS
import os
import threading
import uuid
from flask import send_file

from generator.chunk_cache import GenerationContext
from generator.data_generator import MODES
from generator.orchestrator import GenerationOrchestrator
from utils.config import get_config
from utils.file_utils import build_output_path, get_checksum, sanitize_directory, sanitize_file_name
from utils.logger import get_logger
from utils.size_utils import UNITS, bytes_from_unit

logger = get_logger(__name__)


def inside_directory(path, root):
    """True when path resolves to root or somewhere below it"""
    path = os.path.realpath(path)
    root = os.path.realpath(root)
    return os.path.commonpath([path, root]) == root


def parse_job_request(data, output_dir, max_job_bytes):
    """Validate a /generate body, returning (params, error message)"""
    if not isinstance(data, dict):
        return None, "JSON body required"

    file_name = sanitize_file_name(data.get("file_name"))
    if not file_name:
        return None, "file_name required"

    try:
        size = int(data.get("size"))
    except (TypeError, ValueError):
        return None, "size must be an integer"
    if size < 0:
        return None, "size must not be negative"

    unit = str(data.get("unit", "MB")).upper()
    if unit not in UNITS:
        return None, f"unit must be one of {sorted(UNITS)}"

    mode = data.get("mode", "uniform")
    if mode not in MODES:
        return None, f"mode must be one of {list(MODES)}"

    try:
        workers = int(data.get("workers", 1))
    except (TypeError, ValueError):
        return None, "workers must be an integer"
    if workers < 1:
        return None, "workers must be at least 1"

    try:
        too_big = bytes_from_unit(size, unit) > max_job_bytes
    except ValueError:
        too_big = True
    if too_big:
        return None, f"size must not exceed {max_job_bytes} bytes"

    directory = output_dir
    if data.get("directory"):
        # Relative directories are taken from the output directory
        directory = sanitize_directory(data["directory"])
        if not directory:
            return None, "directory does not exist"
        directory = os.path.join(output_dir, directory)
        if not inside_directory(directory, output_dir):
            return None, "directory must be inside the output directory"
        if not os.path.isdir(directory):
            return None, "directory does not exist"

    return {
        "directory": directory,
        "file_name": file_name,
        "size": size,
        "unit": unit,
        "mode": mode,
        "workers": workers
    }, None


def create_app(config=None):
    app = Flask(__name__)
    CORS(app)  # Enable CORS for all routes

    settings = get_config(config)
    output_dir = settings['output_dir']
    os.makedirs(output_dir, exist_ok=True)

    # In-memory storage of jobs
    jobs = {}
    jobs_lock = threading.Lock()
    context = GenerationContext()

    def job_view(job):
        orchestrator = job["orchestrator"]
        return {
            "job_id": job["job_id"],
            "path": job["path"],
            "params": job["params"],
            "state": orchestrator.state if job["started"] else "queued",
            "cursor": orchestrator.cursor,
            "result": job["result"]
        }

    def run_job(job):
        params = job["params"]
        with jobs_lock:
            job["started"] = True
        try:
            result = job["orchestrator"].generate_file(**params)
            if result["error"] is None:
                result["sha256"] = get_checksum(result["path"])
        except Exception as e:
            logger.exception(f"Job {job['job_id']} crashed")
            result = {"state": "failed", "error": {"kind": None, "detail": str(e)}}
        with jobs_lock:
            job["result"] = result

    @app.route('/generate', methods=['POST'])
    def generate():
        params, error = parse_job_request(request.get_json(silent=True), output_dir,
                                          settings["max_job_bytes"])
        if error:
            return jsonify({"error": error}), 400

        job_id = uuid.uuid4().hex
        job = {
            "job_id": job_id,
            "params": params,
            "path": build_output_path(params["directory"], params["file_name"]),
            "orchestrator": GenerationOrchestrator(config, context=context),
            "started": False,
            "result": None
        }
        with jobs_lock:
            jobs[job_id] = job

        threading.Thread(target=run_job, args=(job,), daemon=True).start()
        logger.info(f"[JOB] {job_id} -> {job['path']}")
        return jsonify({"job_id": job_id, "path": job["path"]}), 202

    @app.route('/jobs', methods=['GET'])
    def list_jobs():
        with jobs_lock:
            return jsonify({job_id: job_view(job) for job_id, job in jobs.items()})

    @app.route('/jobs/<job_id>', methods=['GET'])
    def get_job(job_id):
        with jobs_lock:
            job = jobs.get(job_id)
            if job is None:
                return jsonify({'error': 'Job not found'}), 404
            return jsonify(job_view(job))

    @app.route('/download/<file_name>', methods=['GET'])
    def download_file(file_name):
        file_name = sanitize_file_name(file_name)
        if not file_name:
            return jsonify({'error': 'File not found'}), 404
        if not file_name.endswith(".txt"):
            file_name += ".txt"
        file_path = os.path.join(output_dir, file_name)
        if os.path.exists(file_path):
            return send_file(file_path, as_attachment=True)
        else:
            return jsonify({'error': 'File not found'}), 404

    return app


if __name__ == '__main__':
    create_app().run(port=5000, debug=True)
