"""
The five stages of a fetch job and the pipeline that runs them.

    check_rate_limit -> build_requests -> process_responses
        -> write_responses -> update_cache

Payload writes always happen before the cache is persisted, so the cache
never records a payload that failed to reach disk.
"""

from __future__ import annotations

from typing import Any

from . import ratelimit
from .context import JobContext, ResponseTriple
from .identity import content_id
from .logger import get_logger
from .paths import cache_key, destination_for, has_ambiguous_key, request_path
from .pipeline import DoneCallback, Pipeline
from .reducer import reduce_pages

logger = get_logger()


def check_rate_limit(context: JobContext, proceed) -> None:
    ratelimit.check(context, proceed)


def build_requests(context: JobContext, proceed) -> None:
    """Reads src, dest and options; adds one pending request per source."""
    options = context.options
    sources = context.sources
    if context.dest and len(sources) > 1:
        logger.warning("Several sources share one destination; later ones overwrite earlier ones",
                       job=context.name, dest=context.dest, sources=len(sources))
    for src in sources:
        dest = destination_for(src, context.dest, options.output)
        path = request_path(src, options.filters, options.token)
        context.requests.add(options.connection, path, dest, options.task)
    proceed(context)


def is_new(context: JobContext, payload: Any, triple: ResponseTriple) -> bool:
    """Compare ``payload`` against the cache; record it when it changed."""
    task = triple.task
    key = cache_key(triple.dest)
    if has_ambiguous_key(triple.dest):
        logger.debug("Cache key drops more than one extension", dest=triple.dest, key=key)

    identifier = content_id(payload, task.kind)
    entry = context.cache.get(task.cache_name, key)
    if entry is not None and entry.content_id == identifier:
        logger.info(f"{key} is already up-to-date. (No data has been written)")
        logger.record_cache_hit()
        return False

    context.cache.set(task.cache_name, key, task.kind, identifier)
    logger.record_cache_miss()
    return True


def process_responses(context: JobContext, proceed) -> None:
    """Reads requests and cache; writes cache entries and queues writes."""
    for triple in context.requests.send():
        if not triple.dest:
            continue
        payload = reduce_pages(triple.pages, triple.task.kind, triple.dest)
        if payload is None:
            continue
        if triple.task.cache and not is_new(context, payload, triple):
            continue
        context.writes.add(payload, triple.dest, triple.task.kind)
    proceed(context)


def write_responses(context: JobContext, proceed) -> None:
    written = context.writes.flush()
    if written:
        logger.info(f"Wrote {len(written)} file(s)", job=context.name)
    proceed(context)


def update_cache(context: JobContext, proceed) -> None:
    context.cache.flush_if_dirty()
    proceed(context)


def build_pipeline(context: JobContext) -> Pipeline:
    return (
        Pipeline.init(context)
        .step(check_rate_limit)
        .step(build_requests)
        .step(process_responses)
        .step(write_responses)
        .step(update_cache)
    )


def run_job(context: JobContext, on_done: DoneCallback):
    """Run one job to completion and report through ``on_done``."""
    logger.info("Running job", job=context.name, requests=context.request_count)
    try:
        return build_pipeline(context).execute(on_done)
    finally:
        if context.requests is not None:
            context.requests.close()
