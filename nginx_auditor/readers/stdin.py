"""Read Kubernetes manifests piped on standard input."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import AsyncIterator, List, Optional, TextIO

from ..resource import NormalizedResource
from . import ReaderOptions
from .documents import ParseStatus, parse_documents

logger = logging.getLogger(__name__)

STDIN_SOURCE = "<stdin>"


class StdinResourceReader:
    """Parse one YAML stream from a text input, typically Helm or Kustomize output.

    Empty input is not an error: ``had_input`` stays False and nothing is
    recorded, so callers can tell "nothing piped" from "bad YAML" (an entry
    in ``errors``) and from "no resources" (``resource_count`` of 0).
    """

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream if stream is not None else sys.stdin
        self.warnings: List[str] = []
        self.errors: List[str] = []
        self.had_input = False
        self.resource_count = 0

    async def read_resources(self, options: ReaderOptions) -> AsyncIterator[NormalizedResource]:
        self.warnings.clear()
        self.errors.clear()
        self.had_input = False
        self.resource_count = 0

        try:
            content = await asyncio.to_thread(self.stream.read)
        except (OSError, UnicodeDecodeError) as exc:
            self.errors.append(f"Failed to read from stdin: {exc}")
            return

        if not content or not content.strip():
            logger.warning("No input received from stdin")
            return

        self.had_input = True
        logger.info("Reading resources from stdin (%d characters)", len(content))
        for result in parse_documents(content, STDIN_SOURCE):
            if result.status is ParseStatus.SUCCESS and result.resource is not None:
                self.resource_count += 1
                yield result.resource
            elif result.status is ParseStatus.SKIPPED:
                logger.debug("Skipped stdin document: %s", result.skip_reason)
            else:
                self.errors.append(f"Parse error in stdin: {result.error}")
