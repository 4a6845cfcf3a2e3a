#tests/test_mapping.py
from utils.mapping import record_mapping


def test_record_mapping_with_id_and_path():
    id_map = {}

    record_mapping(
        bucket="attachments",
        migration_id="I_00001_R",
        entity_id=314,
        id_map=id_map,
        path="I_00001_R/syllabus.html",
    )

    assert id_map == {
        "attachments": {"I_00001_R": 314},
        "paths": {"I_00001_R/syllabus.html": "I_00001_R"},
    }


def test_record_mapping_overwrites_with_newest_entity():
    id_map = {}
    record_mapping(bucket="modules", migration_id="m1", entity_id=1, id_map=id_map)
    record_mapping(bucket="modules", migration_id="m1", entity_id=9, id_map=id_map)
    assert id_map == {"modules": {"m1": 9}}


def test_record_mapping_coerces_types():
    id_map = {}
    record_mapping(bucket="quizzes", migration_id="q1", entity_id="12", id_map=id_map)
    assert id_map["quizzes"]["q1"] == 12


def test_record_mapping_ignores_missing_values():
    id_map = {}
    record_mapping(bucket="attachments", migration_id=None, entity_id=5, id_map=id_map, path="a.html")
    record_mapping(bucket="attachments", migration_id="a", entity_id=None, id_map=id_map)
    assert id_map == {}
