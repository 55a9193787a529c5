"""
Terminal delivery for Learn mode.

Components:
- StudySet / JsonStudySet: study-set JSON loading (TermSource)
- answers: multiple-choice options and written-answer checking
- learn_cli: typer/rich command line interface
"""

from .answers import build_choices, is_written_correct, normalize_answer
from .study_set import JsonStudySet, StudySet

__all__ = [
    "StudySet",
    "JsonStudySet",
    "build_choices",
    "is_written_correct",
    "normalize_answer",
]
