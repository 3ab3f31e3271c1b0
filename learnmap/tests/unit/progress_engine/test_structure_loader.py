"""Unit tests for structure_loader.py"""

import json
import os

import pytest

from learnmap.config import clear_conf_cache
from learnmap.tests import fixtures
from learnmap.services.catalog import StructureCatalog
from learnmap.services.progress_engine import structure_loader
from learnmap.services.progress_engine.errors import CatalogStructureError
from learnmap.tests.utils import make_course


@pytest.fixture
def content_dir(tmp_path, monkeypatch):
    """Point the content path at a temporary directory."""
    monkeypatch.setenv("LEARNMAP_SITE_CONFIG", str(tmp_path / "site_config.json"))
    monkeypatch.setenv("LEARNMAP_CONTENT_PATH", str(tmp_path))
    clear_conf_cache()
    structure_loader.clear_cache()
    yield tmp_path
    clear_conf_cache()
    structure_loader.clear_cache()


def test_load_course_structure_from_file(content_dir):
    course = make_course("COURSE-FILE", units=1, lessons=1, exercises=1)
    (content_dir / "COURSE-FILE.json").write_text(json.dumps(course), encoding="utf-8")

    structure = structure_loader.load_course_structure("COURSE-FILE")

    assert structure["id"] == "COURSE-FILE"
    assert structure_loader.load_course_structure("COURSE-FILE") is structure


def test_outline_from_fixture_file(monkeypatch, tmp_path):
    monkeypatch.setenv("LEARNMAP_SITE_CONFIG", str(tmp_path / "site_config.json"))
    monkeypatch.setenv("LEARNMAP_CONTENT_PATH", os.path.dirname(fixtures.__file__))
    clear_conf_cache()
    structure_loader.clear_cache()

    try:
        catalog = StructureCatalog(load_from_files=True)
        outline = structure_loader.build_course_outline(catalog, "COURSE-SAMPLE")
    finally:
        clear_conf_cache()
        structure_loader.clear_cache()

    assert [unit["id"] for unit in outline] == ["UNIT-INTRO", "UNIT-TRAVEL"]
    assert structure_loader.get_lesson_ids(outline) == ["LESSON-GREETINGS", "LESSON-NUMBERS", "LESSON-AIRPORT"]
    assert catalog.count_exercises("LESSON-GREETINGS") == 2


def test_course_file_path_uses_content_path(content_dir):
    assert structure_loader.course_file_path("COURSE-001") == str(content_dir / "COURSE-001.json")


def test_load_missing_course_raises(content_dir):
    with pytest.raises(FileNotFoundError):
        structure_loader.load_course_structure("COURSE-MISSING")


def test_validate_structure_requires_fields():
    with pytest.raises(ValueError):
        structure_loader.validate_structure({"id": "COURSE-001"})

    with pytest.raises(ValueError):
        structure_loader.validate_structure({"id": "COURSE-001", "units": [{"lessons": []}]})

    with pytest.raises(ValueError):
        structure_loader.validate_structure({"id": "COURSE-001", "units": [{"id": "U1", "lessons": [{}]}]})

    course = make_course()
    course["units"][0]["lessons"][0]["exercises"].append({"sort_order": 9})
    with pytest.raises(ValueError):
        structure_loader.validate_structure(course)

    with pytest.raises(ValueError):
        structure_loader.validate_structure({"id": "COURSE-001", "units": {"id": "U1"}})

    assert structure_loader.validate_structure(make_course()) is True


def test_sort_siblings_orders_by_sort_order():
    nodes = [{"id": "B", "sort_order": 20}, {"id": "A", "sort_order": 3}]

    assert [n["id"] for n in structure_loader.sort_siblings(nodes, "unit")] == ["A", "B"]


@pytest.mark.parametrize("nodes", [
    [{"id": "A"}],
    [{"id": "A", "sort_order": "1"}],
    [{"sort_order": 1}],
    [{"id": "A", "sort_order": 1}, {"id": "B", "sort_order": 1}],
])
def test_sort_siblings_rejects_bad_structure(nodes):
    with pytest.raises(CatalogStructureError):
        structure_loader.sort_siblings(nodes, "lesson")


def test_build_course_outline_skips_empty_and_unpublished_units():
    course = make_course(units=3, lessons=2)
    course["units"][0]["lessons"] = []
    course["units"][2]["is_published"] = False
    course["units"][1]["lessons"][0]["is_published"] = False
    catalog = StructureCatalog([course])

    outline = structure_loader.build_course_outline(catalog, "COURSE-001")

    assert outline == [
        {"id": "UNIT-2", "sort_order": 20, "lessons": [{"id": "LESSON-2-2", "sort_order": 20}]},
    ]
    assert structure_loader.get_lesson_ids(outline) == ["LESSON-2-2"]


def test_build_course_outline_for_unknown_course_is_empty():
    assert structure_loader.build_course_outline(StructureCatalog(), "COURSE-404") == []
