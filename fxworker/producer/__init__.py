"""
Producer module.
Seeds currency conversion jobs into the worker tube.
"""

from fxworker.producer.main import parse_pair, run, seed_jobs

__all__ = ["parse_pair", "seed_jobs", "run"]
