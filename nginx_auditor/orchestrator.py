"""Drive one scan: read resources, evaluate rules, aggregate and judge."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import List, Optional

from . import SCHEMA_VERSION, TOOL_NAME, __version__
from .aggregator import FindingAggregator
from .config import AuditorConfig
from .engine import RuleEngine
from .policy import determine_exit_code, evaluate_policy
from .readers import ReaderOptions, ResourceReader
from .resource import NormalizedResource
from .result import Finding, ScanMetadata, ScanResult, sort_findings

logger = logging.getLogger(__name__)

MODE_CLUSTER = "cluster"
MODE_REPO = "repo"


class ScanOrchestrator:
    """Consume a reader's stream sequentially under a single deadline."""

    def __init__(self, engine: Optional[RuleEngine] = None, config: Optional[AuditorConfig] = None) -> None:
        self.config = config or (engine.config if engine is not None else AuditorConfig())
        self.engine = engine or RuleEngine(config=self.config)

    async def scan(
        self,
        reader: ResourceReader,
        options: ReaderOptions,
        mode: str,
        cluster_context: Optional[str] = None,
        scanned_path: Optional[str] = None,
    ) -> ScanResult:
        """Run the scan and always return a result.

        A timeout, a cancellation of the calling task or a reader failure is
        recorded in ``errors`` and the findings gathered so far are kept.
        """
        started = time.perf_counter()
        timestamp = datetime.now(timezone.utc)
        aggregator = FindingAggregator(confidence_weighted=self.config.output.confidence_weighted)
        findings: List[Finding] = []
        scan_errors: List[str] = []

        logger.info("Starting %s scan", mode)
        stream = reader.read_resources(options)
        try:
            async with asyncio.timeout(options.timeout_seconds or None):
                async for resource in stream:
                    self._process(resource, aggregator, findings)
        except TimeoutError:
            logger.warning("Scan timed out after %ss", options.timeout_seconds)
            scan_errors.append(f"Scan timed out after {options.timeout_seconds}s")
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is not None:
                task.uncancel()
            logger.warning("Scan was cancelled")
            scan_errors.append("Scan was cancelled")
        except Exception as exc:
            logger.exception("Scan failed")
            scan_errors.append(f"Scan failed: {exc}")
        finally:
            await stream.aclose()

        warnings = list(reader.warnings)
        errors = list(reader.errors) + scan_errors

        policy = evaluate_policy(findings, self.config.policy.fail_on)
        policy = replace(policy, exit_code=determine_exit_code(policy, warnings, errors, bool(findings)))

        duration = time.perf_counter() - started
        metadata = ScanMetadata(
            tool=TOOL_NAME,
            version=__version__,
            schema_version=SCHEMA_VERSION,
            mode=mode,
            timestamp=timestamp,
            status="incomplete" if errors else "complete",
            cluster_context=cluster_context,
            scanned_path=scanned_path,
            duration_seconds=duration,
        )
        summary = aggregator.summary(policy)
        logger.info(
            "Scan completed in %.2fs: %d resources, %d findings",
            duration,
            summary.resources_scanned,
            len(findings),
        )
        return ScanResult(
            metadata=metadata,
            summary=summary,
            findings=sort_findings(findings),
            warnings=warnings,
            errors=errors,
        )

    def _process(self, resource: NormalizedResource, aggregator: FindingAggregator, findings: List[Finding]) -> None:
        aggregator.add_resource(resource)
        resource_findings = self.engine.evaluate(resource)
        if self.engine.is_nginx_dependent(resource_findings):
            aggregator.mark_nginx_dependent(resource.namespace)
        for finding in resource_findings:
            findings.append(finding)
            aggregator.add_finding(finding)


def run_scan(
    reader: ResourceReader,
    options: ReaderOptions,
    mode: str = MODE_REPO,
    config: Optional[AuditorConfig] = None,
    engine: Optional[RuleEngine] = None,
    cluster_context: Optional[str] = None,
    scanned_path: Optional[str] = None,
) -> ScanResult:
    """Synchronous wrapper around ``ScanOrchestrator.scan``."""

    orchestrator = ScanOrchestrator(engine=engine, config=config)
    return asyncio.run(
        orchestrator.scan(reader, options, mode, cluster_context=cluster_context, scanned_path=scanned_path)
    )
