"""
Noise-resilient active learning of cache replacement policies.

This package answers membership queries against a resettable cache model
(optionally injecting and voting away measurement noise), drives an
observation-table learner through counterexample refinement, and scores the
resulting hypothesis checkpoints against a reference model.
"""

from __future__ import annotations

__all__ = []
