"""
LGPD question catalog: YAML schema, loader and sector matching.

The catalog file is validated against CATALOG_SCHEMA when loaded; a
catalog that fails validation is a startup error, never a runtime one.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import StrEnum
from functools import lru_cache
from pathlib import Path
from typing import Any

import jsonschema
import structlog
import yaml

from dpofast.core.errors import ErrorCode, ValidationError

_log = structlog.get_logger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parents[2] / "catalog" / "lgpd_catalog.yaml"


class QuestionType(StrEnum):
    SINGLE = "single"
    MULTIPLE = "multiple"
    TEXT = "text"


_SEVERITIES = ["critical", "high", "medium", "low"]

_QUESTION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["id", "text", "type"],
    "additionalProperties": False,
    "properties": {
        "id": {"type": "integer", "minimum": 1},
        "text": {"type": "string", "minLength": 5},
        "type": {"enum": [t.value for t in QuestionType]},
        "options": {"type": "array", "items": {"type": "string"}, "minItems": 1},
        "description": {"type": "string"},
        "scored": {"type": "boolean"},
        "severity": {"enum": _SEVERITIES},
        "category": {"type": "string"},
        "lgpd_article": {"type": "string"},
        "task_template": {"type": "string"},
        "evidence": {"type": "string"},
    },
}

CATALOG_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "LGPD Questionnaire Catalog",
    "type": "object",
    "required": ["version", "base_questions", "sector_sets", "generic_questions"],
    "additionalProperties": False,
    "properties": {
        "version": {"type": "string", "pattern": r"^\d+\.\d+(\.\d+)?$"},
        "task_templates": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "required": ["title", "description", "category"],
                "additionalProperties": False,
                "properties": {
                    "title": {"type": "string", "minLength": 3},
                    "description": {"type": "string"},
                    "category": {"type": "string"},
                    "steps": {"type": "array", "items": {"type": "string"}},
                },
            },
        },
        "base_questions": {"type": "array", "minItems": 1, "items": _QUESTION_SCHEMA},
        "sector_sets": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["key", "name", "keywords", "questions"],
                "additionalProperties": False,
                "properties": {
                    "key": {"type": "string", "pattern": r"^[a-z0-9_]+$"},
                    "name": {"type": "string"},
                    "keywords": {
                        "type": "array",
                        "minItems": 1,
                        "items": {"type": "string", "minLength": 2},
                    },
                    "category": {"type": "string"},
                    "recommendations": {"type": "array", "items": {"type": "string"}},
                    "questions": {"type": "array", "minItems": 1, "items": _QUESTION_SCHEMA},
                },
            },
        },
        "generic_questions": {
            "type": "object",
            "required": ["questions"],
            "additionalProperties": False,
            "properties": {
                "category": {"type": "string"},
                "recommendations": {"type": "array", "items": {"type": "string"}},
                "questions": {"type": "array", "minItems": 1, "items": _QUESTION_SCHEMA},
            },
        },
    },
}

_validator = jsonschema.Draft7Validator(CATALOG_SCHEMA)


# ── Domain objects ────────────────────────────────────────────────────── #


@dataclass(frozen=True)
class TaskTemplate:
    key: str
    title: str
    description: str
    category: str
    steps: tuple[str, ...] = ()


@dataclass(frozen=True)
class Question:
    id: int
    text: str
    type: QuestionType
    options: tuple[str, ...] = ()
    description: str = ""
    scored: bool = False
    severity: str = "medium"
    category: str | None = None
    lgpd_article: str | None = None
    task_template: str | None = None
    evidence: str | None = None
    sector_key: str = "base"

    @property
    def requires_document(self) -> bool:
        return self.evidence is not None


@dataclass(frozen=True)
class SectorQuestionSet:
    key: str
    name: str
    keywords: tuple[str, ...]
    questions: tuple[Question, ...]
    category: str = "documentation"
    recommendations: tuple[str, ...] = ()

    def matches(self, normalized_name: str) -> bool:
        padded = f" {normalized_name} "
        return any(f" {normalize_name(k)} " in padded for k in self.keywords)


@dataclass(frozen=True)
class Catalog:
    version: str
    base_questions: tuple[Question, ...]
    sector_sets: tuple[SectorQuestionSet, ...]
    generic: SectorQuestionSet
    task_templates: dict[str, TaskTemplate] = field(default_factory=dict)

    def matching_sets(self, sector_name: str) -> list[SectorQuestionSet]:
        """Sector sets whose keywords match the name, or the generic set."""
        normalized = normalize_name(sector_name)
        matched = [s for s in self.sector_sets if s.matches(normalized)]
        return matched or [self.generic]

    def questions_for_sector(self, sector_name: str) -> list[Question]:
        """Base questions followed by the questions of every matching set."""
        questions = list(self.base_questions)
        for question_set in self.matching_sets(sector_name):
            for q in question_set.questions:
                if question_set is self.generic:
                    q = _with_text(q, q.text.replace("{sector}", sector_name))
                questions.append(q)
        return questions

    def recommendations_for(self, sector_name: str) -> list[str]:
        out: list[str] = []
        for question_set in self.matching_sets(sector_name):
            out.extend(r for r in question_set.recommendations if r not in out)
        return out

    def category_for(self, sector_name: str) -> str:
        return self.matching_sets(sector_name)[0].category

    def template(self, key: str | None) -> TaskTemplate | None:
        return self.task_templates.get(key) if key else None


def _with_text(question: Question, text: str) -> Question:
    return replace(question, text=text)


def normalize_name(value: str) -> str:
    """Lower-case, strip accents and collapse punctuation into single spaces."""
    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return re.sub(r"[^a-z0-9]+", " ", stripped.lower()).strip()


# ── Loading ───────────────────────────────────────────────────────────── #


def validate_catalog_dict(data: dict[str, Any]) -> list[str]:
    """
    Validate a catalog dictionary against the schema and cross-references.

    Returns a list of validation error messages. Empty list = valid.
    """
    errors = sorted(_validator.iter_errors(data), key=lambda e: list(e.path))
    messages = [f"{'.'.join(str(p) for p in e.path) or 'root'}: {e.message}" for e in errors]
    if messages:
        return messages

    templates = data.get("task_templates", {})
    seen: set[int] = set()
    for q in _iter_raw_questions(data):
        if q["id"] in seen:
            messages.append(f"question {q['id']}: duplicate id")
        seen.add(q["id"])
        if q["type"] != QuestionType.TEXT and not q.get("options"):
            messages.append(f"question {q['id']}: options required for {q['type']} questions")
        if q.get("task_template") and q["task_template"] not in templates:
            messages.append(f"question {q['id']}: unknown task_template {q['task_template']}")
        if q.get("scored"):
            normalized = {normalize_name(o) for o in q.get("options", [])}
            if q["type"] != QuestionType.SINGLE or not {"sim", "nao"} <= normalized:
                messages.append(
                    f"question {q['id']}: scored questions must be single choice with sim/não"
                )
    return messages


def _iter_raw_questions(data: dict[str, Any]) -> Iterable[dict[str, Any]]:
    yield from data["base_questions"]
    for question_set in data["sector_sets"]:
        yield from question_set["questions"]
    yield from data["generic_questions"]["questions"]


def _build_question(raw: dict[str, Any], sector_key: str, default_category: str) -> Question:
    return Question(
        id=raw["id"],
        text=raw["text"],
        type=QuestionType(raw["type"]),
        options=tuple(raw.get("options", ())),
        description=raw.get("description", ""),
        scored=raw.get("scored", False),
        severity=raw.get("severity", "medium"),
        category=raw.get("category", default_category),
        lgpd_article=raw.get("lgpd_article"),
        task_template=raw.get("task_template"),
        evidence=raw.get("evidence"),
        sector_key=sector_key,
    )


def build_catalog(data: dict[str, Any]) -> Catalog:
    """Turn a validated catalog mapping into immutable domain objects."""
    templates = {
        key: TaskTemplate(
            key=key,
            title=t["title"],
            description=t["description"],
            category=t["category"],
            steps=tuple(t.get("steps", ())),
        )
        for key, t in data.get("task_templates", {}).items()
    }
    sector_sets = []
    for raw_set in data["sector_sets"]:
        category = raw_set.get("category", "documentation")
        sector_sets.append(
            SectorQuestionSet(
                key=raw_set["key"],
                name=raw_set["name"],
                keywords=tuple(raw_set["keywords"]),
                category=category,
                recommendations=tuple(raw_set.get("recommendations", ())),
                questions=tuple(
                    _build_question(q, raw_set["key"], category) for q in raw_set["questions"]
                ),
            )
        )
    raw_generic = data["generic_questions"]
    generic_category = raw_generic.get("category", "documentation")
    generic = SectorQuestionSet(
        key="generic",
        name="Setor personalizado",
        keywords=("*",),
        category=generic_category,
        recommendations=tuple(raw_generic.get("recommendations", ())),
        questions=tuple(
            _build_question(q, "generic", generic_category) for q in raw_generic["questions"]
        ),
    )
    return Catalog(
        version=data["version"],
        base_questions=tuple(
            _build_question(q, "base", "documentation") for q in data["base_questions"]
        ),
        sector_sets=tuple(sector_sets),
        generic=generic,
        task_templates=templates,
    )


def load_catalog(path: Path) -> Catalog:
    """
    Load and validate a YAML catalog file.

    Raises:
        ValidationError: If the file is invalid YAML or fails validation.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as err:
        raise ValidationError(
            f"Invalid YAML in catalog {path.name}: {err}",
            detail={"file": str(path)},
            code=ErrorCode.QUESTIONNAIRE_CATALOG_INVALID,
        ) from err

    if not isinstance(data, dict):
        raise ValidationError(
            f"Catalog {path.name} must be a YAML mapping",
            detail={"file": str(path)},
            code=ErrorCode.QUESTIONNAIRE_CATALOG_INVALID,
        )

    errors = validate_catalog_dict(data)
    if errors:
        raise ValidationError(
            f"Catalog {path.name} failed validation",
            detail={"errors": errors},
            code=ErrorCode.QUESTIONNAIRE_CATALOG_INVALID,
        )

    catalog = build_catalog(data)
    _log.info(
        "catalog_loaded",
        version=catalog.version,
        base_questions=len(catalog.base_questions),
        sector_sets=len(catalog.sector_sets),
    )
    return catalog


@lru_cache(maxsize=1)
def get_catalog() -> Catalog:
    """Return the packaged catalog, loaded once per process."""
    return load_catalog(DEFAULT_CATALOG_PATH)
