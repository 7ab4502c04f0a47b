from __future__ import annotations

import pytest

from config import ConfigurationError
from pytests.common import write_csv
from utils.whitelist import load_whitelist, reconcile_map


def test_load_whitelist_uppercases_and_trims(tmp_path) -> None:
    path = tmp_path / "wl.csv"
    path.write_text("\ufeffServerName\n srv01 \nSql02\n\nAPP-03\nsrv01\n", encoding="utf-8")

    assert load_whitelist(path) == {"SRV01", "SQL02", "APP-03"}


def test_load_whitelist_missing_file_names_the_path(tmp_path) -> None:
    missing = tmp_path / "nope.csv"
    with pytest.raises(ConfigurationError, match="nope.csv"):
        load_whitelist(missing)


def test_load_whitelist_empty_file(tmp_path) -> None:
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="empty"):
        load_whitelist(path)


def test_load_whitelist_wrong_header(tmp_path) -> None:
    path = write_csv(tmp_path / "wl.csv", ["Host"], [["SRV01"]])
    with pytest.raises(ConfigurationError, match="ServerName"):
        load_whitelist(path)


def test_load_whitelist_without_values(tmp_path) -> None:
    path = write_csv(tmp_path / "wl.csv", ["ServerName"], [["  "], [""]])
    with pytest.raises(ConfigurationError, match="no server names"):
        load_whitelist(path)


@pytest.mark.parametrize("variant", ["srv01", "SRV01", "sRv01", "Srv01"])
def test_reconcile_map_is_case_insensitive(variant) -> None:
    assert reconcile_map({variant}, {"Srv01"}, set()) == {"SRV01"}


def test_reconcile_map_drops_unlisted_and_existing() -> None:
    result = reconcile_map(
        {"SRV01", "SQL02", "ROGUE-9"},
        {"srv01", "sql02", "app-03"},
        {"sql02"},
    )
    assert result == {"SRV01"}


def test_reconcile_map_empty_inputs() -> None:
    assert reconcile_map(set(), {"SRV01"}, set()) == set()
    assert reconcile_map({"SRV01"}, set(), set()) == set()
