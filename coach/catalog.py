"""Local catalogs: grammar concepts, engineering vocabulary and ignored page titles."""

import json
from pathlib import Path

import pandas as pd

import config
from coach.logger import get_logger
from coach.models import GrammarConcept, PhrasalVerb


def load_grammar_concepts(path: Path = config.GRAMMAR_CONCEPTS_CSV) -> list[GrammarConcept]:
    """
    Load grammar concepts from a CSV with columns section, title, example.

    Rows without a title are dropped.

    Args:
        path: Path to the concepts CSV

    Returns:
        List of GrammarConcept objects
    """
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df = df[df["title"].str.strip() != ""]

    return [
        GrammarConcept(
            section=row.get("section", "").strip(),
            title=row["title"].strip(),
            example=row.get("example", "").strip(),
        )
        for _, row in df.iterrows()
    ]


def load_engineer_vocabulary(path: Path = config.ENGINEER_VOCABULARY_CSV) -> list[PhrasalVerb]:
    """
    Load phrasal verbs from the engineering vocabulary CSV (id, verb, definition).

    A missing file yields an empty list so writing practice can fall back
    to the spreadsheet alone.
    """
    if not path.exists():
        get_logger().warning(f"Vocabulary CSV not found: {path}")
        return []

    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df = df[df["verb"].str.strip() != ""]

    return [
        PhrasalVerb(verb=row["verb"].strip(), definition=row["definition"].strip(), source="csv")
        for _, row in df.iterrows()
    ]


def load_ignored_titles(path: Path = config.IGNORED_TITLES_JSON) -> set[str]:
    """Load page titles that are never offered as topics."""
    if not path.exists():
        return set(config.DEFAULT_IGNORED_TITLES)
    with open(path, "r", encoding="utf-8") as f:
        titles = json.load(f)
    return {str(t) for t in titles}
