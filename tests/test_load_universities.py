import pandas as pd

from load_universities import load_catalog, parse_rank, prepare_universities
from models import University


def raw_catalog() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "name": ["MIT ", "Technical University of Munich", "Nowhere College", None, "MIT"],
            "country": ["United States", "Germany", "Atlantis", "UK", "United States"],
            "ranking": ["1", "=30", "1001+", "5", "1"],
            "programs": ["Engineering; Computer Science", None, "Arts", "Law", "Engineering"],
        }
    )


def test_parse_rank() -> None:
    assert parse_rank("=12") == 12
    assert parse_rank("51-100") == 51
    assert parse_rank("1001+") == 1001
    assert parse_rank("unranked") is None
    assert parse_rank(None) is None


def test_prepare_universities_normalizes_rows() -> None:
    catalog = prepare_universities(raw_catalog())

    assert list(catalog["name"]) == ["MIT", "Technical University of Munich", "Nowhere College"]
    assert list(catalog["country"]) == ["USA", "Germany", "Atlantis"]
    assert list(catalog["ranking"]) == [1, 30, 1001]
    assert list(catalog["tuition_fee_min"]) == [30000, 0, 15000]
    assert list(catalog["tuition_fee_max"]) == [55000, 3000, 25000]
    assert catalog.loc[0, "programs"] == ["Engineering", "Computer Science"]
    assert catalog.loc[1, "programs"] == []
    assert set(catalog["currency"]) == {"USD"}


def test_load_catalog_skips_existing_rows(db) -> None:
    catalog = prepare_universities(raw_catalog())

    assert load_catalog(db, catalog) == 3
    assert load_catalog(db, catalog) == 0

    mit = db.query(University).filter(University.name == "MIT").one()
    assert mit.ranking == 1
    assert mit.programs == ["Engineering", "Computer Science"]
    assert mit.city is None
