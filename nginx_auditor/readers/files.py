"""Read Kubernetes manifests from YAML files under a directory."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import AsyncIterator, List, Optional, Tuple

from ..resource import NormalizedResource
from ..utils.fileio import read_text_file
from ..utils.globbing import match_files
from . import ReaderOptions
from .documents import ParseResult, ParseStatus, parse_documents

logger = logging.getLogger(__name__)

QUEUE_SIZE = 100
_DONE = object()


class FileResourceReader:
    """Parse matching files in worker threads and stream their resources.

    Up to ``workers`` files are parsed at once (default: CPU count). Parsed
    resources pass through a bounded queue, so a slow consumer holds the
    workers back.

    Workers are threads, so file reads overlap but the pure-Python YAML
    loader still runs under the GIL. A failure in one file becomes one
    ``errors`` entry and the worker moves on to the next path.
    """

    def __init__(self, workers: Optional[int] = None) -> None:
        self.workers = workers or os.cpu_count() or 1
        self.warnings: List[str] = []
        self.errors: List[str] = []

    async def read_resources(self, options: ReaderOptions) -> AsyncIterator[NormalizedResource]:
        self.warnings.clear()
        self.errors.clear()

        base = Path(options.path) if options.path else Path.cwd()
        if not base.is_dir():
            self.errors.append(f"Directory not found: {base}")
            return
        try:
            files = await asyncio.to_thread(match_files, base, options.include_patterns, options.exclude_patterns)
        except OSError as exc:
            self.errors.append(f"Failed to enumerate files: {exc}")
            return
        if not files:
            self.warnings.append(f"No YAML files found in {base}")
            return

        logger.info("Found %d YAML file(s) to scan", len(files))
        pending: asyncio.Queue = asyncio.Queue()
        for path in files:
            pending.put_nowait(path)
        output: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_SIZE)
        producer = asyncio.create_task(self._produce(pending, output, min(self.workers, len(files))))
        try:
            while True:
                item = await output.get()
                if item is _DONE:
                    break
                yield item
        finally:
            if not producer.done():
                producer.cancel()
            await asyncio.gather(producer, return_exceptions=True)

    async def _produce(self, pending: asyncio.Queue, output: asyncio.Queue, worker_count: int) -> None:
        workers = [asyncio.create_task(self._worker(pending, output)) for _ in range(worker_count)]
        try:
            await asyncio.gather(*workers)
        except Exception as exc:
            logger.exception("File worker failed")
            self.errors.append(f"Failed to process files: {exc}")
        finally:
            for worker in workers:
                if not worker.done():
                    worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
        await output.put(_DONE)

    async def _worker(self, pending: asyncio.Queue, output: asyncio.Queue) -> None:
        while True:
            try:
                path = pending.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                error, results = await asyncio.to_thread(_load_file, path)
            except Exception as exc:
                logger.exception("Failed to process %s", path)
                error, results = f"Failed to process file {path}: {exc}", []
            if error is not None:
                self.errors.append(error)
                continue
            for result in results:
                if result.status is ParseStatus.SUCCESS and result.resource is not None:
                    await output.put(result.resource)
                elif result.status is ParseStatus.SKIPPED:
                    logger.debug("Skipped %s: %s", result.source_path, result.skip_reason)
                else:
                    self.errors.append(f"Parse error in {result.source_path}: {result.error}")


def _load_file(path: Path) -> Tuple[Optional[str], List[ParseResult]]:
    try:
        content = read_text_file(path)
    except (OSError, UnicodeDecodeError) as exc:
        return f"Failed to read file {path}: {exc}", []
    return None, parse_documents(content, str(path))
