#!/usr/bin/env python3
"""Validate local campus ledger environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from campus_ledger.domain.errors import CapacityExceededError
from campus_ledger.repository.data_repository import BOOKS, FACULTY, ROOMS, DataRepository
from campus_ledger.services.allocation_service import ROOM_POOL, CapacityAllocator
from campus_ledger.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="campus-ledger-env-")

    # CHECK 1: Python version >= 3.11
    if sys.version_info >= (3, 11):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.11",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("httpx", "httpx"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    for module_name, dist_name in package_specs:
        try:
            importlib.import_module(module_name)
            version(dist_name)
        except (ImportError, PackageNotFoundError) as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        get_settings.cache_clear()
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "campus_ledger_validation.db",
        )
        repository = DataRepository(validation_settings)
        tenant_id = validation_settings.demo_tenant_id

        # CHECK 3: Database initialization
        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except RuntimeError as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Demo seeding (5 rooms, 3 books, 2 faculty)
        try:
            inserted = repository.seed_demo_data_if_empty(tenant_id)
            counts = (
                repository.count_rows(ROOMS, tenant_id),
                repository.count_rows(BOOKS, tenant_id),
                repository.count_rows(FACULTY, tenant_id),
            )
            if inserted != 10 or counts != (5, 3, 2):
                raise RuntimeError(f"unexpected demo rows: inserted={inserted} counts={counts}")
            ok, line = _print_result("Demo seeding", True, f": {inserted} rows")
        except Exception as exc:
            ok, line = _print_result("Demo seeding", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Allocate until full, then release
        allocator = CapacityAllocator(repository=repository, settings=validation_settings)
        try:
            room = allocator.list_rooms(tenant_id)[0]
            claims = [
                allocator.allocate_room(room.room_id, f"SMOKE-{index}", tenant_id)
                for index in range(room.capacity)
            ]
            try:
                allocator.allocate_room(room.room_id, "SMOKE-OVERFLOW", tenant_id)
                raise RuntimeError("allocation beyond capacity succeeded")
            except CapacityExceededError:
                pass
            for claim in claims:
                allocator.release_room(claim.allocation_id, tenant_id)
            occupied = allocator.get_pool(ROOM_POOL, room.room_id, tenant_id).occupied
            if occupied != 0:
                raise RuntimeError(f"expected empty room after release, found {occupied}")
            ok, line = _print_result(
                "Allocate/release smoke test",
                True,
                f": capacity {room.capacity}",
            )
        except Exception as exc:
            ok, line = _print_result("Allocate/release smoke test", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Campus Ledger Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
