from typing import Any, Dict, List

from .context import DATA_KIND, FILE_KIND

TASK_KINDS = {DATA_KIND, FILE_KIND}
CONNECTION_STR_FIELDS = ["host", "protocol", "user_agent"]
CONNECTION_NUM_FIELDS = ["port", "timeout", "max_pages"]


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def validate_options(options: Any, where: str = "options") -> List[str]:
    """Return validation errors for one (possibly partial) options block."""
    if not isinstance(options, dict):
        return [f"'{where}' must be an object"]
    errors: List[str] = []

    conn = options.get("connection")
    if conn is not None:
        if not isinstance(conn, dict):
            errors.append(f"'{where}.connection' must be an object")
        else:
            for f in CONNECTION_STR_FIELDS:
                if f in conn and not _is_non_empty_str(conn[f]):
                    errors.append(f"'{where}.connection.{f}' must be a non-empty string")
            for f in CONNECTION_NUM_FIELDS:
                if f in conn and conn[f] is not None and not _is_number(conn[f]):
                    errors.append(f"'{where}.connection.{f}' must be a number")
            if "protocol" in conn and conn["protocol"] not in ("http", "https"):
                errors.append(f"'{where}.connection.protocol' must be http or https")
            if "headers" in conn and not isinstance(conn["headers"], dict):
                errors.append(f"'{where}.connection.headers' must be an object")

    if options.get("output") is not None and not _is_non_empty_str(options["output"]):
        errors.append(f"'{where}.output' must be a non-empty string or null")
    if "filters" in options and not isinstance(options["filters"], dict):
        errors.append(f"'{where}.filters' must be an object")
    if options.get("token") is not None and not isinstance(options["token"], str):
        errors.append(f"'{where}.token' must be a string")

    rate = options.get("rate_limit")
    if rate is not None:
        if not isinstance(rate, dict):
            errors.append(f"'{where}.rate_limit' must be an object")
        elif "warning" in rate and (not isinstance(rate["warning"], int) or isinstance(rate["warning"], bool)):
            errors.append(f"'{where}.rate_limit.warning' must be an integer")

    cache = options.get("cache")
    if cache is not None:
        if not isinstance(cache, dict):
            errors.append(f"'{where}.cache' must be an object")
        elif "path" in cache and not _is_non_empty_str(cache["path"]):
            errors.append(f"'{where}.cache.path' must be a non-empty string")

    task = options.get("task")
    if task is not None:
        if not isinstance(task, dict):
            errors.append(f"'{where}.task' must be an object")
        else:
            if "type" in task and task["type"] not in TASK_KINDS:
                errors.append(f"'{where}.task.type' must be one of: {', '.join(sorted(TASK_KINDS))}")
            for f in ("cache", "partition"):
                if f in task and not isinstance(task[f], bool):
                    errors.append(f"'{where}.task.{f}' must be true or false")

    return errors


def validate_job_file(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    if not isinstance(data, dict):
        return ["Job file must contain a JSON object"]
    errors: List[str] = []

    if "options" in data:
        errors.extend(validate_options(data["options"]))

    jobs = data.get("jobs")
    if not isinstance(jobs, dict) or not jobs:
        errors.append("Missing required field: jobs (an object of named jobs)")
        return errors

    for name, job in jobs.items():
        where = f"jobs.{name}"
        if not isinstance(job, dict):
            errors.append(f"'{where}' must be an object")
            continue
        src = job.get("src")
        if src is not None:
            if isinstance(src, list):
                if not all(_is_non_empty_str(s) for s in src):
                    errors.append(f"'{where}.src' entries must be non-empty strings")
            elif not _is_non_empty_str(src):
                errors.append(f"'{where}.src' must be a string or a list of strings")
        if job.get("dest") is not None and not _is_non_empty_str(job["dest"]):
            errors.append(f"'{where}.dest' must be a non-empty string")
        if "options" in job:
            errors.extend(validate_options(job["options"], f"{where}.options"))

    return errors
