"""
Performance-testing and resource-monitoring harness.

Three independent pipelines share this package:

- load testing: :class:`~harness.orchestrator.LoadOrchestrator` drives
  tiers of concurrent virtual users against an HTTP API;
- query benchmarking: :class:`~harness.benchmark.QueryBenchmark` times a
  catalog of record-store probes;
- resource monitoring: :class:`~harness.sampler.ResourceSampler` samples
  host and process usage until stopped.

All three hand their measurements to :mod:`harness.reporting`.
"""

import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

__version__ = "1.0.0"
