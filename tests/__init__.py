"""
Test suite for the performance harness.

This package contains:
- unit/: Harness logic against fake sessions, fake probes and tmp files
- integration/: The stand-in target, its record store and full load runs
  over real HTTP
"""
