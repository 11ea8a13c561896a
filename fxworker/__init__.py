"""
Currency Rate Worker

Queue consumers that fetch currency exchange rates, persist them, and drive each
job through a finish/bury/requeue lifecycle with bounded retries.
"""

__version__ = "1.0.0"
