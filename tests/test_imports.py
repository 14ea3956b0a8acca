"""
Import smoke tests for every firegrid subpackage.

Verifies that every public module and class can be imported without error.
Each import is isolated in its own test function so failures are independent.

Also includes H3 confinement tests that verify raw h3-py calls stay inside
the geometry helpers and the covering strategies; everything else goes
through ``firegrid.geometry``.
"""

from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Package surface
# ---------------------------------------------------------------------------


class TestPackageImports:
    """Import smoke tests for the top-level package."""

    def test_import_package(self):
        import firegrid
        assert firegrid.__version__

    @pytest.mark.parametrize("name", [
        "FireGridService",
        "FireGridConfig",
        "GridIndexer",
        "GridCache",
        "FireBinner",
        "AggregationCache",
        "ResolutionSelector",
        "Region",
        "Grid",
        "FireRecord",
        "AggregationResult",
        "FireGridError",
    ])
    def test_public_names(self, name):
        import firegrid
        assert name in firegrid.__all__
        assert getattr(firegrid, name) is not None


class TestSubpackageImports:

    def test_import_geometry(self):
        from firegrid.geometry import ResolutionSelector, cells_for_geometry
        assert callable(cells_for_geometry)
        assert ResolutionSelector is not None

    def test_import_grid(self):
        from firegrid.grid import (
            DiskStorage,
            GridCache,
            GridIndexer,
            LatticeScanStrategy,
            RegionalizerStrategy,
        )
        assert all(c is not None for c in
                   (DiskStorage, GridCache, GridIndexer, LatticeScanStrategy, RegionalizerStrategy))

    def test_import_aggregation(self):
        from firegrid.aggregation import AggregationCache, FireBinner
        assert AggregationCache is not None
        assert FireBinner is not None

    def test_import_records(self):
        from firegrid.records import JsonRecordStore, RecordStore
        assert issubclass(JsonRecordStore, RecordStore)

    def test_error_hierarchy(self):
        from firegrid.exceptions import (
            BinningError,
            CacheIOError,
            FireGridError,
            GenerationError,
            ValidationError,
        )
        for error in (BinningError, CacheIOError, GenerationError, ValidationError):
            assert issubclass(error, FireGridError)
        assert issubclass(ValidationError, ValueError)
        assert issubclass(CacheIOError, OSError)


# ---------------------------------------------------------------------------
# H3 Confinement Tests
# ---------------------------------------------------------------------------

PACKAGE_ROOT = Path(__file__).resolve().parent.parent / "firegrid"

# Modules allowed to talk to h3-py directly
H3_MODULES = {
    "geometry/h3_geometry.py",
    "grid/strategies.py",
}


class TestH3Confinement:
    """Raw h3 usage lives in the geometry helpers and covering strategies."""

    def test_h3_imported_only_where_allowed(self):
        violations = []
        for py_file in PACKAGE_ROOT.rglob("*.py"):
            rel_path = py_file.relative_to(PACKAGE_ROOT).as_posix()
            if rel_path in H3_MODULES:
                continue
            with open(py_file, "r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    stripped = line.strip()
                    if stripped.startswith("#"):
                        continue
                    if stripped == "import h3" or stripped.startswith(("import h3 ", "from h3 ")):
                        violations.append(f"{rel_path}:{line_num}: {line.rstrip()}")

        if violations:
            violation_report = "\n".join(violations)
            pytest.fail(f"Found direct h3 imports outside the geometry layer:\n{violation_report}")
