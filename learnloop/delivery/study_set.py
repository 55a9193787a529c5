"""
Study Set: JSON term loader.

Loads a study set from a JSON file:

    {
      "id": "set-1",
      "title": "Spanish verbs",
      "terms": [{"id": "t1", "word": "ser", "definition": "to be", "rank": 0}],
      "starred": ["t1"]
    }

Implements the TermSource interface for files in a directory, so a set can
be addressed by id (`<dir>/<id>.json`) as well as by path.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from learnloop.core.terms import Term


@dataclass
class StudySet:
    """A study set loaded from JSON."""

    id: str
    title: str
    terms: list[Term] = field(default_factory=list)
    starred: frozenset[str] = frozenset()

    @classmethod
    def from_dict(cls, data: dict) -> StudySet:
        terms = [Term.from_dict(t) for t in data.get("terms", [])]
        known = {t.id for t in terms}
        starred = {str(s) for s in data.get("starred", [])}
        unknown = starred - known
        if unknown:
            logger.debug(f"Ignoring {len(unknown)} starred ids not in set {data.get('id')}")
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            terms=terms,
            starred=frozenset(starred & known),
        )

    @classmethod
    def load(cls, path: Path) -> StudySet:
        """
        Load a study set file.

        Raises:
            ValueError: If the file is not a valid study set
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"{path} is not valid JSON: {e}") from e

        try:
            study_set = cls.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"{path} is not a valid study set: {e}") from e

        logger.debug(f"Loaded {len(study_set.terms)} terms from {path}")
        return study_set


class JsonStudySet:
    """TermSource reading `<set_id>.json` files from a directory."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self._cache: dict[str, StudySet] = {}

    @classmethod
    def from_file(cls, path: Path) -> tuple[JsonStudySet, StudySet]:
        """Load one file and return a source that already holds it."""
        study_set = StudySet.load(path)
        source = cls(Path(path).parent)
        source._cache[study_set.id] = study_set
        return source, study_set

    def get(self, set_id: str) -> StudySet:
        if set_id not in self._cache:
            self._cache[set_id] = StudySet.load(self.directory / f"{set_id}.json")
        return self._cache[set_id]

    def load_terms(self, set_id: str) -> list[Term]:
        return list(self.get(set_id).terms)
