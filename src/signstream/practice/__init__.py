"""
Practice Module
===============

Practice-level composition on top of the stream layer.

    - SessionScorer: correct/total/streak reducer
    - PracticeClient: facade for one practice mode (words or letters)
"""

from signstream.practice.scorer import SessionScorer
from signstream.practice.client import PracticeClient


__all__ = [
    "PracticeClient",
    "SessionScorer",
]
