"""Unit tests for dpofast.services.questionnaire.catalog."""
import copy

import pytest
import yaml

from dpofast.core.errors import ErrorCode, ValidationError
from dpofast.services.questionnaire.catalog import (
    DEFAULT_CATALOG_PATH,
    QuestionType,
    get_catalog,
    load_catalog,
    normalize_name,
    validate_catalog_dict,
)


@pytest.fixture
def raw_catalog() -> dict:
    with open(DEFAULT_CATALOG_PATH, encoding="utf-8") as f:
        return yaml.safe_load(f)


# ─── Packaged catalog ─────────────────────────────────────────────────────────

def test_packaged_catalog_is_valid(raw_catalog):
    assert validate_catalog_dict(raw_catalog) == []


def test_question_ids_are_unique():
    catalog = get_catalog()
    ids = [q.id for q in catalog.base_questions]
    for question_set in (*catalog.sector_sets, catalog.generic):
        ids.extend(q.id for q in question_set.questions)
    assert len(ids) == len(set(ids))


def test_scored_questions_offer_sim_and_nao():
    for question in get_catalog().questions_for_sector("Marketing"):
        if question.scored:
            assert question.type is QuestionType.SINGLE
            assert {"sim", "nao"} <= {normalize_name(o) for o in question.options}


# ─── Sector matching ──────────────────────────────────────────────────────────

def test_normalize_name_strips_accents_and_punctuation():
    assert normalize_name("  Finanças / Contábil ") == "financas contabil"


def test_sector_set_matched_by_keyword():
    catalog = get_catalog()
    keys = [s.key for s in catalog.matching_sets("Depto. de RH")]
    assert keys == ["recursos_humanos"]


def test_keywords_match_whole_words_only():
    catalog = get_catalog()
    # "ti" must not match inside "Logística"
    keys = [s.key for s in catalog.matching_sets("Logística")]
    assert keys == ["generic"]


def test_sector_questions_follow_base_questions():
    catalog = get_catalog()
    questions = catalog.questions_for_sector("Marketing")
    base_ids = [q.id for q in catalog.base_questions]
    assert [q.id for q in questions[: len(base_ids)]] == base_ids
    assert {301, 302, 303, 304} <= {q.id for q in questions}


def test_generic_questions_mention_the_sector_name():
    questions = get_catalog().questions_for_sector("Logística")
    generic = [q for q in questions if q.sector_key == "generic"]
    assert generic
    assert all("{sector}" not in q.text for q in generic)
    assert any("Logística" in q.text for q in generic)


def test_recommendations_come_from_matched_sets():
    catalog = get_catalog()
    assert catalog.recommendations_for("Marketing")
    assert catalog.recommendations_for("Marketing") != catalog.recommendations_for("Financeiro")


# ─── Validation ───────────────────────────────────────────────────────────────

def test_duplicate_ids_are_reported(raw_catalog):
    broken = copy.deepcopy(raw_catalog)
    broken["base_questions"].append(copy.deepcopy(broken["base_questions"][0]))
    errors = validate_catalog_dict(broken)
    assert any("duplicate id" in e for e in errors)


def test_unknown_task_template_is_reported(raw_catalog):
    broken = copy.deepcopy(raw_catalog)
    broken["base_questions"][0]["task_template"] = "does_not_exist"
    errors = validate_catalog_dict(broken)
    assert any("unknown task_template" in e for e in errors)


def test_scored_text_question_is_reported(raw_catalog):
    broken = copy.deepcopy(raw_catalog)
    question = broken["base_questions"][0]
    question["type"] = "text"
    question.pop("options", None)
    errors = validate_catalog_dict(broken)
    assert any("scored questions" in e for e in errors)


def test_load_catalog_rejects_invalid_yaml(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("version: [unclosed", encoding="utf-8")
    with pytest.raises(ValidationError) as exc_info:
        load_catalog(path)
    assert exc_info.value.code == ErrorCode.QUESTIONNAIRE_CATALOG_INVALID


def test_load_catalog_rejects_schema_violations(tmp_path, raw_catalog):
    broken = copy.deepcopy(raw_catalog)
    del broken["base_questions"]
    path = tmp_path / "missing.yaml"
    path.write_text(yaml.safe_dump(broken, allow_unicode=True), encoding="utf-8")
    with pytest.raises(ValidationError) as exc_info:
        load_catalog(path)
    assert exc_info.value.detail["errors"]
