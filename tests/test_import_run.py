# tests/test_import_run.py
from pathlib import Path

import pytest

from conftest import MANIFEST, SAMPLE_FILES
from importers.import_run import TERMINAL, ImportRun, InvalidTransition
from importers.selection import SelectionSpec
from store.base import ATTACHMENTS, EXTERNAL_TOOLS, MODULES, StoreError
from store.memory import MemoryStore

COURSE = 101


class RefusingStore(MemoryStore):
    def __init__(self, refuse):
        super().__init__()
        self.refuse = set(refuse)

    def create(self, course_id, entity_type, *, migration_id, attributes, generation=1):
        if (entity_type, migration_id) in self.refuse:
            raise StoreError(f"refused {entity_type} {migration_id}")
        return super().create(course_id, entity_type, migration_id=migration_id,
                              attributes=attributes, generation=generation)


def _states(run):
    return [s for s, _ in run.history]


def test_successful_run_walks_every_state(sample_cartridge, store):
    run = ImportRun(course_id=COURSE, archive_path=sample_cartridge, store=store).execute()

    assert run.state == "completed"
    assert run.is_terminal
    assert _states(run) == ["pending", "converting", "filtering", "merging", "completed"]
    assert all(at.endswith("Z") for _, at in run.history)
    assert run.error is None
    assert run.report.counts["files"]["imported"] == 3
    assert len(store.find_all(COURSE, MODULES, state="active")) == 3
    # temp extraction dir is gone once the run is over
    assert not Path(run.course_data.archive_root).exists()


def test_run_collects_warnings(sample_cartridge, store):
    run = ImportRun(course_id=COURSE, archive_path=sample_cartridge, store=store).execute()
    assert any("security parameters" in w for w in run.warnings)


def test_work_dir_is_kept(sample_cartridge, store, tmp_path):
    work = tmp_path / "work"
    run = ImportRun(course_id=COURSE, archive_path=sample_cartridge, store=store, work_dir=work).execute()
    assert run.state == "completed"
    assert (work / "imsmanifest.xml").is_file()


def test_selection_limits_what_merges(sample_cartridge, store):
    run = ImportRun(
        course_id=COURSE,
        archive_path=sample_cartridge,
        store=store,
        selection=SelectionSpec.from_settings({"copy": {"all_files": "1"}}),
    ).execute()

    assert run.state == "completed"
    assert len(store.find_all(COURSE, ATTACHMENTS, state="active")) == 3
    assert store.find_all(COURSE, MODULES) == []
    assert store.find_all(COURSE, EXTERNAL_TOOLS) == []


def test_bad_archive_fails_without_raising(tmp_path, store):
    bad = tmp_path / "broken.imscc"
    bad.write_text("not a zip", encoding="utf-8")

    run = ImportRun(course_id=COURSE, archive_path=bad, store=store).execute()

    assert run.state == "failed"
    assert _states(run) == ["pending", "converting", "failed"]
    assert run.error.startswith("ArchiveError")
    assert run.report is None


def test_bad_manifest_fails(make_cartridge, store):
    path = make_cartridge({"imsmanifest.xml": "<manifest><organizations>"})
    run = ImportRun(course_id=COURSE, archive_path=path, store=store).execute()

    assert run.state == "failed"
    assert run.error.startswith("ManifestError")


def test_abort_on_error_fails_the_run(sample_cartridge):
    store = RefusingStore({(EXTERNAL_TOOLS, "I_00010_R")})
    run = ImportRun(
        course_id=COURSE, archive_path=sample_cartridge, store=store, continue_on_error=False,
    ).execute()

    assert run.state == "failed"
    assert _states(run)[-2:] == ["merging", "failed"]
    assert "MergeAborted" in run.error and "I_00010_R" in run.error


def test_unexpected_errors_fail_and_propagate(sample_cartridge, store, monkeypatch):
    def boom(*args, **kwargs):
        raise KeyError("unexpected")

    monkeypatch.setattr("importers.import_run.merge_into", boom)
    run = ImportRun(course_id=COURSE, archive_path=sample_cartridge, store=store)

    with pytest.raises(KeyError):
        run.execute()
    assert run.state == "failed"
    assert run.error.startswith("KeyError")


def test_invalid_transitions_raise(sample_cartridge, store):
    run = ImportRun(course_id=COURSE, archive_path=sample_cartridge, store=store)
    with pytest.raises(InvalidTransition):
        run.transition("completed")
    run.transition("failed")
    assert run.state in TERMINAL
    with pytest.raises(InvalidTransition):
        run.transition("converting")


def test_execute_only_once(sample_cartridge, store):
    run = ImportRun(course_id=COURSE, archive_path=sample_cartridge, store=store).execute()
    with pytest.raises(InvalidTransition):
        run.execute()


def test_summary(sample_cartridge, store):
    run = ImportRun(course_id=COURSE, archive_path=sample_cartridge, store=store, run_id="run42").execute()
    summary = run.summary()

    assert summary["run_id"] == "run42"
    assert summary["course_id"] == COURSE
    assert summary["state"] == "completed"
    assert [h["state"] for h in summary["history"]][-1] == "completed"
    assert summary["counts"]["content_tags"]["imported"] == 9
    assert summary["errors"] == []


def test_summary_before_merge_has_no_counts(store, tmp_path):
    run = ImportRun(course_id=COURSE, archive_path=tmp_path / "missing.imscc", store=store).execute()
    summary = run.summary()
    assert summary["state"] == "failed"
    assert summary["counts"] == {} and summary["errors"] == []


def test_latin1_manifest_imports(make_cartridge, store):
    manifest = MANIFEST.replace('encoding="UTF-8"', 'encoding="ISO-8859-1"', 1).replace(
        "Sample Course", "Café Course"
    )
    files = dict(SAMPLE_FILES, **{"imsmanifest.xml": manifest.encode("latin-1")})

    run = ImportRun(course_id=COURSE, archive_path=make_cartridge(files), store=store).execute()

    assert run.state == "completed", run.error
    assert run.report.counts["files"]["imported"] == 3
