"""Badge-claim retry engine for HamBaller.xyz.

Classifies failed badge mints, schedules backoff, decides whether to retry,
and predicts how likely the next attempt is to succeed.
"""

__version__ = "0.3.0"
