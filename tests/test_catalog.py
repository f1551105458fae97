from __future__ import annotations

import json
from pathlib import Path

import pytest

from catalog import DEFAULT_CATALOG, build_catalog, get_catalog, load_catalog


def test_default_catalog_shape():
    assert len(DEFAULT_CATALOG) == 12
    assert [c.id for c in DEFAULT_CATALOG] == list(range(1, 13))
    assert DEFAULT_CATALOG[0].name == "Tea"
    assert DEFAULT_CATALOG[0].price == 10
    assert DEFAULT_CATALOG[-1].name == "Doughnut"


def test_load_catalog_without_path_is_default():
    assert load_catalog(None) is DEFAULT_CATALOG


def test_load_catalog_from_file(tmp_path: Path):
    path = tmp_path / "catalog.json"
    path.write_text(
        json.dumps([{"id": 5, "name": "Lassi", "price": 30}, {"id": 2, "name": "Chai", "price": 12.5}]),
        encoding="utf-8",
    )
    catalog = load_catalog(str(path))
    assert [(c.id, c.name, c.price) for c in catalog] == [(5, "Lassi", 30), (2, "Chai", 12.5)]


def test_get_catalog_reads_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps([{"id": 1, "name": "Tea", "price": 10}]), encoding="utf-8")
    monkeypatch.setenv("CATALOG_PATH", str(path))
    get_catalog.cache_clear()
    try:
        assert [c.name for c in get_catalog()] == ["Tea"]
    finally:
        get_catalog.cache_clear()


@pytest.mark.parametrize(
    "items",
    [
        [{"id": 1, "name": "Tea", "price": 10}, {"id": 1, "name": "Chai", "price": 12}],
        [{"id": 1, "name": "Tea", "price": -1}],
        [{"id": 1, "name": "Tea"}],
    ],
)
def test_build_catalog_rejects_bad_items(items):
    with pytest.raises(ValueError):
        build_catalog(items)


def test_load_catalog_requires_list(tmp_path: Path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"id": 1}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_catalog(str(path))


def test_catalog_entries_are_frozen():
    with pytest.raises(Exception):
        DEFAULT_CATALOG[0].price = 99
