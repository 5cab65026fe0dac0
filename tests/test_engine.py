"""End-to-end tests for the two-phase engine (orchestrator/engine.py).

Files are laid out on disk under ``tmp_path`` and loaded through the
local filesystem and the default line comparator.
"""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from incranges.config import Settings
from incranges.models import Job
from incranges.orchestrator.engine import IncrementalEngine
from support import make_record, write_unit

HEADER_V1 = "struct point { int x; int y; };\nint area(void) {\n  return 0;\n}\n"


def _engine(**overrides) -> IncrementalEngine:
    return IncrementalEngine(Settings(show_incremental_decisions=True, **overrides))


def _layout(tmp_path: Path, *, b_current: str, a_unread_for_b: tuple[str, ...] | None):
    """Unit a.c reads b.c; b.c's function body is a local scope."""
    b_path = str(tmp_path / "b.c")
    unparsed = {} if a_unread_for_b is None else {b_path: a_unread_for_b}
    a = write_unit(
        tmp_path,
        "a.c",
        previous="int main(void) { return area(); }\n",
        current="int main(void) { return area(); }\n",
        record=make_record(unparsed=unparsed),
        saved_copy_newer=True,
    )
    b = write_unit(
        tmp_path,
        "b.c",
        previous=HEADER_V1,
        current=b_current,
        record=make_record(local=("2:15-4:1",)),
    )
    return a, b


class TestSchedule:

    def test_body_edit_in_dependency_only_rebuilds_dependency(self, tmp_path: Path):
        a, b = _layout(tmp_path, b_current=HEADER_V1.replace("return 0", "return 1"), a_unread_for_b=())
        decision = _engine().schedule([a, b, Job(name="link")])
        assert decision.needed_names() == ["b.c", "link"]
        assert decision.lacking_info == []

    def test_declaration_edit_rebuilds_reader(self, tmp_path: Path):
        a, b = _layout(tmp_path, b_current=HEADER_V1.replace("int y;", "long y;"), a_unread_for_b=())
        engine = _engine()
        decision = engine.schedule([a, b])
        assert decision.needed_names() == ["a.c", "b.c"]
        assert ("a.c", "(changed: b.c:1:0-1:31)") in engine.diagnostics.notes

    def test_declaration_edit_in_unread_region_is_skipped(self, tmp_path: Path):
        a, b = _layout(
            tmp_path,
            b_current=HEADER_V1.replace("int y;", "long y;"),
            a_unread_for_b=("1:0-1:40",),
        )
        assert _engine().schedule([a, b]).needed_names() == ["b.c"]

    def test_deleted_dependency_forces_rebuild(self, tmp_path: Path):
        a, b = _layout(tmp_path, b_current=HEADER_V1, a_unread_for_b=("1:0-4:1",))
        Path(b.primary).unlink()
        decision = _engine().schedule([a, b])
        assert decision.needed_names() == ["a.c", "b.c"]
        assert not Path(f"{b.primary}.compiledsource").exists()
        assert not Path(f"{b.primary}.sourceranges").exists()

    def test_corrupt_sidecar_lacks_info(self, tmp_path: Path):
        a, b = _layout(tmp_path, b_current=HEADER_V1, a_unread_for_b=())
        Path(f"{a.primary}.sourceranges").write_text("garbage", encoding="utf-8")
        engine = _engine()
        decision = engine.schedule([a, b])
        assert decision.needed_names() == ["a.c"]
        assert decision.lacking_info_names() == ["a.c"]
        assert any(w.endswith(":bad_source_ranges_header") for w in engine.diagnostics.warnings)

    def test_nothing_changed(self, tmp_path: Path):
        a, b = _layout(tmp_path, b_current=HEADER_V1, a_unread_for_b=())
        assert _engine().schedule([a, b]).needed == []

    @pytest.mark.asyncio
    async def test_async_matches_sync(self, tmp_path: Path):
        a, b = _layout(tmp_path, b_current=HEADER_V1.replace("int y;", "long y;"), a_unread_for_b=())
        sync_decision = _engine().schedule([a, b])
        async_decision = await _engine(max_load_workers=2).schedule_async([a, b])
        assert async_decision.needed == sync_decision.needed
        assert async_decision.lacking_info == sync_decision.lacking_info


class TestDump:

    def test_dump_disabled_writes_nothing(self, tmp_path: Path):
        a, b = _layout(tmp_path, b_current=HEADER_V1, a_unread_for_b=())
        engine = _engine()
        out = io.StringIO()
        engine.dump_all_info(engine.load_states([a, b]), out)
        assert out.getvalue() == ""

    def test_dump_both(self, tmp_path: Path):
        a, b = _layout(tmp_path, b_current=HEADER_V1.replace("int y;", "long y;"), a_unread_for_b=())
        engine = _engine(dump_source_ranges=True, dump_compiled_source_diffs=True)
        out = io.StringIO()
        engine.dump_all_info(engine.load_states([a, b]), out)
        text = out.getvalue()
        assert "Source ranges file for 'a.c'" in text
        assert "*** no changed ranges in previously-compiled 'a.c' ***" in text
        assert "*** nonlocal changed ranges in previously-compiled 'b.c' ***" in text
        assert text.index("'a.c'") < text.index("'b.c'")
