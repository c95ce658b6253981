import argparse
import os
import sys
import time

import requests

# Add project root to path when run as a script
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from generator.chunk_cache import GenerationContext
from generator.data_generator import MODES
from generator.orchestrator import GenerationOrchestrator
from utils.file_utils import sanitize_directory, sanitize_file_name
from utils.size_utils import MEGABYTE

QUIT_WORDS = ("exit", "quit")
POLL_INTERVAL = 1.0


def wants_to_quit(answer):
    """exit/quit, or anything containing an 'e' or a 'q', ends the loop"""
    if not answer:
        return False
    answer = answer.strip().lower()
    return answer in QUIT_WORDS or 'e' in answer or 'q' in answer


def ask_directory(input_fn=input, output_fn=print):
    while True:
        directory = sanitize_directory(input_fn(
            "Type in the directory where the file should be created (Leave blank for current directory): "))
        if not directory:
            return os.getcwd()
        if os.path.isdir(directory):
            return directory
        output_fn("Directory does not exist, please create it and try again.")


def ask_thread_count(input_fn=input, output_fn=print):
    answer = input_fn("Type in the amount of threads the application should run on (blank for 1): ")
    try:
        thread_count = int(answer)
        if thread_count < 1:
            raise ValueError(answer)
    except (TypeError, ValueError):
        if answer and answer.strip():
            output_fn("Invalid thread count input")
        thread_count = 1

    cpus = os.cpu_count() or 1
    if thread_count > cpus:
        thread_count = cpus
        output_fn(f"Too many threads specified, using {thread_count} threads")

    output_fn(f"Running on {thread_count} threads")
    return thread_count


def ask_file_name(previous=None, input_fn=input, output_fn=print):
    if previous:
        question = f"Type in the file name without the extension (Leave blank to use \"{previous}\"): "
    else:
        question = "Type in the file name without the extension: "
    while True:
        file_name = sanitize_file_name(input_fn(question))
        if file_name:
            return file_name
        if previous:
            return previous
        output_fn("Invalid file name.")


def ask_size(previous=None, unit="MB", input_fn=input, output_fn=print):
    if previous is None:
        question = f"Type in the file size in {unit}: "
    else:
        question = f"Type in the file size in {unit} (Leave blank to use {previous}): "
    while True:
        answer = input_fn(question)
        if previous is not None and (not answer or not answer.strip()):
            return previous
        try:
            size = int(answer)
            if size >= 0:
                return size
        except (TypeError, ValueError):
            pass
        question = "File size invalid, please type in an integer number: "


def prompt_loop(generate, directory=None, workers=None, unit="MB", input_fn=input, output_fn=print):
    """
    Ask for file name and size until the user quits.

    generate is called as generate(directory, file_name, size, workers) for
    every file; the number of files generated is returned.
    """
    if directory is None:
        directory = ask_directory(input_fn, output_fn)
    if workers is None:
        workers = ask_thread_count(input_fn, output_fn)

    file_name = None
    size = None
    generated = 0
    while True:
        file_name = ask_file_name(file_name, input_fn, output_fn)
        size = ask_size(size, unit, input_fn, output_fn)
        generate(directory, file_name, size, workers)
        generated += 1

        if wants_to_quit(input_fn("Would you like to quit? (exit/quit/blank)")):
            return generated


def local_generator(unit="MB", mode="uniform", config=None, show_progress=True, output_fn=print):
    """Generate files in this process, sharing one cache across the whole session"""
    context = GenerationContext()

    def generate(directory, file_name, size, workers):
        orchestrator = GenerationOrchestrator(config, context=context, show_progress=show_progress)
        result = orchestrator.generate_file(directory, file_name, size, unit, mode, workers)
        if result['error']:
            output_fn(f"[!] {result['error']['kind']} while writing {result['path']}: "
                      f"{result['error']['detail']}")
        else:
            output_fn(f"[+] Wrote {result['bytes_written']} bytes to {result['path']} "
                      f"in {result['elapsed']:.2f}S")
        return result

    return generate


def remote_generator(base_url, unit="MB", mode="uniform", session=None, poll_interval=POLL_INTERVAL,
                     output_fn=print):
    """Submit files to a running controller and wait for each job to finish"""
    session = session or requests.Session()
    base_url = base_url.rstrip('/')

    def generate(directory, file_name, size, workers):
        payload = {
            "file_name": file_name,
            "size": size,
            "unit": unit,
            "mode": mode,
            "workers": workers
        }
        if directory:
            payload["directory"] = directory

        try:
            res = session.post(f"{base_url}/generate", json=payload)
            if res.status_code != 202:
                output_fn(f"[!] Controller refused job: {res.json().get('error')}")
                return None
            job_id = res.json()["job_id"]
            output_fn(f"[+] Submitted job {job_id}")

            while True:
                job = session.get(f"{base_url}/jobs/{job_id}").json()
                result = job.get("result")
                if result is not None:
                    break
                output_fn(f"[*] {job['state']}: {job['cursor']['bytes_written']} bytes written")
                time.sleep(poll_interval)
        except requests.RequestException as e:
            output_fn(f"[!] Error talking to controller: {e}")
            return None

        if result.get("error"):
            output_fn(f"[!] Job {job_id} failed: {result['error']['detail']}")
        else:
            output_fn(f"[+] Job {job_id} wrote {result['bytes_written']} bytes to {result['path']}")
        return result

    return generate


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Generate large text files filled with letters.")
    parser.add_argument('--directory', help="Directory for generated files (asked for when omitted)")
    parser.add_argument('--workers', type=int, help="Generation threads (asked for when omitted)")
    parser.add_argument('--unit', choices=["MB", "GB"], default="MB", help="Unit of the file size")
    parser.add_argument('--mode', choices=list(MODES), default="uniform",
                        help="uniform fills with 'a', random with random lowercase letters")
    parser.add_argument('--chunk-mb', type=int, help="Largest chunk written in one go, in MB")
    parser.add_argument('--no-progress', action='store_true', help="Hide the progress bar")
    parser.add_argument('--remote', metavar='URL', help="Send jobs to a running controller, e.g. http://localhost:5000")
    parser.add_argument('--serve', action='store_true', help="Run the HTTP controller")
    parser.add_argument('--host', default="127.0.0.1", help="Controller address for --serve")
    parser.add_argument('--port', type=int, default=5000, help="Controller port for --serve")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    config = {}
    if args.chunk_mb:
        config['max_dump_chunk_bytes'] = args.chunk_mb * MEGABYTE
        config['max_worker_bytes'] = args.chunk_mb * MEGABYTE

    if args.serve:
        from controller.controller import create_app
        create_app(config).run(host=args.host, port=args.port)
        return 0

    if args.remote:
        generate = remote_generator(args.remote, args.unit, args.mode)
    else:
        generate = local_generator(args.unit, args.mode, config, show_progress=not args.no_progress)

    directory = args.directory
    if args.remote:
        # The controller resolves and checks directories inside its output directory
        directory = sanitize_directory(directory) or ""
    elif directory is not None:
        directory = sanitize_directory(directory) or os.getcwd()
        if not os.path.isdir(directory):
            print(f"[-] Directory does not exist: {directory}")
            return 1

    prompt_loop(generate, directory, args.workers, args.unit)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
