import argparse
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import DEFAULT_JOB_FILE, build_options, load_job_file
from .context import Connection
from .env import load_env, token_from_env
from .errors import GhFetchError
from .logger import get_logger
from .ratelimit import fetch_status
from .stages import run_job

logger = get_logger()


def run_jobs(job_file, names: Optional[List[str]] = None, session=None) -> int:
    """Run jobs one after another; stop at the first hard error.

    Returns the process exit code.
    """
    names = names or job_file.names
    for name in names:
        context = job_file.context_for(name, session=session)
        error, _ = run_job(context, lambda err, ctx: (err, ctx))
        if error is not None:
            logger.record_job("failed")
            logger.record_error(type(error).__name__)
            logger.error(f"Job '{name}' failed: {error}")
            return 1
        logger.record_job("skipped" if context.skipped else "run")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    job_file = load_job_file(Path(args.config))
    code = run_jobs(job_file, args.jobs or None)
    logger.log_metrics_summary()
    return code


def cmd_rate_limit(args: argparse.Namespace) -> int:
    config_path = Path(args.config)
    if config_path.exists():
        job_file = load_job_file(config_path)
        options = build_options("rate-limit", job_file.defaults)
        connection, token = options.connection, options.token
    else:
        connection, token = Connection(), token_from_env()
    status = fetch_status(connection, token=token)
    print(f"Remaining: {status.remaining}/{status.limit}")
    print(f"Resets at: {status.reset_time}")
    return 0


def cmd_cache(args: argparse.Namespace) -> int:
    job_file = load_job_file(Path(args.config))
    names = [args.job] if args.job else job_file.names
    seen = set()
    for name in names:
        context = job_file.context_for(name)
        # Listing needs no HTTP.
        context.requests.close()
        partition = context.options.task.cache_name
        if (context.options.cache_path, partition) in seen:
            continue
        seen.add((context.options.cache_path, partition))
        entries = list(context.cache.entries(partition))
        if not entries:
            print(f"[{partition}] no cache entries")
            continue
        print(f"[{partition}] {len(entries)} entries in {context.options.cache_path}:")
        for entry in entries:
            print(f"  {entry.key}  {entry.kind}  {entry.content_id[:12]}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ghfetch", description="Fetch GitHub API resources to disk, skipping unchanged ones")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"], type=str.upper, help="Console log level (default: INFO)")

    subparsers = parser.add_subparsers(dest="command")
    run = subparsers.add_parser("run", help="Run jobs from a job file")
    run.add_argument("--config", default=DEFAULT_JOB_FILE, help=f"Path to job file (default: {DEFAULT_JOB_FILE})")
    run.add_argument("jobs", nargs="*", help="Jobs to run (default: all, in file order)")
    run.set_defaults(func=cmd_run)

    rl = subparsers.add_parser("rate-limit", help="Show the remaining API budget")
    rl.add_argument("--config", default=DEFAULT_JOB_FILE, help="Job file whose connection and token are used, if present")
    rl.set_defaults(func=cmd_rate_limit)

    cache = subparsers.add_parser("cache", help="List cached content identifiers")
    cache.add_argument("--config", default=DEFAULT_JOB_FILE, help=f"Path to job file (default: {DEFAULT_JOB_FILE})")
    cache.add_argument("--job", help="Only show this job's partition")
    cache.set_defaults(func=cmd_cache)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    # Load .env if present (GITHUB_TOKEN)
    load_env()
    parser = build_parser()
    args = parser.parse_args(argv)
    logger.set_level(args.log_level)

    if args.version:
        print(__version__)
        return 0

    if not hasattr(args, "func"):
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except GhFetchError as e:
        raise SystemExit(str(e))


if __name__ == "__main__":
    raise SystemExit(main())
