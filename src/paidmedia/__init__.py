"""
paidmedia — AI response orchestration core for paid media planning.

Streams an agent's answer turn by turn, folds the stream into ordered
segments, detects structured skill output in the finished message and
merges it into the campaign brief without overwriting user edits.
"""

__version__ = "0.1.0"
