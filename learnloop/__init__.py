"""
learnloop: adaptive Learn-mode scheduler for study sets.

Decides which term a learner sees next, grades answers, tracks per-term
mastery across rounds and hands mutated records to a persistence store.
"""

__version__ = "1.0.0"
