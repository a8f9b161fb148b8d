"""
Seed the universities catalog.

Usage:
    python load_universities.py [path/to/universities.csv]

Without a path the latest year of the Kaggle world university rankings
dataset is downloaded and tuition is estimated per country.
"""

import os
import sys
import logging

import kagglehub
import pandas as pd
from sqlalchemy.orm import Session

from database import SessionLocal, verify_tables_exist
from models import University

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

RANKINGS_DATASET = "raymondtoo/the-world-university-rankings-2016-2024"

CATALOG_COLUMNS = [
    "name", "country", "city", "ranking", "acceptance_rate",
    "tuition_fee_min", "tuition_fee_max", "currency", "programs", "website",
]

# Rough yearly tuition band (min, max) in USD
TUITION_BY_COUNTRY = {
    "United States": (30000, 55000),
    "United Kingdom": (22000, 38000),
    "Canada": (18000, 32000),
    "Australia": (20000, 35000),
    "Germany": (0, 3000),
    "Netherlands": (9000, 20000),
    "Singapore": (17000, 30000),
    "Hong Kong": (18000, 28000),
    "Switzerland": (1500, 4000),
}
DEFAULT_TUITION = (15000, 25000)

# Rankings data spells out the country names onboarding abbreviates
COUNTRY_ALIASES = {
    "United States": "USA",
    "United Kingdom": "UK",
}

def download_rankings() -> pd.DataFrame:
    """Download the rankings dataset and keep its latest year."""
    path = kagglehub.dataset_download(RANKINGS_DATASET)
    csv_files = [f for f in os.listdir(path) if f.endswith(".csv")]
    df = pd.read_csv(os.path.join(path, csv_files[0]))
    logger.info(f"Original columns: {df.columns.tolist()}")

    latest_year = df["Year"].max()
    df = df[df["Year"] == latest_year].copy()
    df = df[["Name", "Country", "Rank"]].copy()
    df.columns = ["name", "country", "ranking"]
    return df

def parse_rank(value):
    """Turn ranks like "=12", "51-100" or "1001+" into the band's first number."""
    if pd.isna(value):
        return None
    text = str(value).split("-")[0].replace("+", "").replace("=", "").strip()
    number = pd.to_numeric(text, errors="coerce")
    return None if pd.isna(number) else int(number)

def prepare_universities(df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize a raw catalog frame into the universities table layout.
    Rows without a name or country are dropped, missing tuition is estimated
    from the country, programs are split on ';'.
    """
    df = df.copy()
    df = df.dropna(subset=["name", "country"])
    df["name"] = df["name"].astype(str).str.strip()
    df["country"] = df["country"].astype(str).str.strip()

    if "ranking" in df.columns:
        df["ranking"] = df["ranking"].apply(parse_rank).astype("Int64")
    else:
        df["ranking"] = pd.array([None] * len(df), dtype="Int64")

    for column in ("tuition_fee_min", "tuition_fee_max"):
        if column not in df.columns:
            df[column] = pd.NA
    missing_min = df["tuition_fee_min"].isna()
    missing_max = df["tuition_fee_max"].isna()
    df.loc[missing_min, "tuition_fee_min"] = df.loc[missing_min, "country"].map(
        lambda c: TUITION_BY_COUNTRY.get(c, DEFAULT_TUITION)[0]
    )
    df.loc[missing_max, "tuition_fee_max"] = df.loc[missing_max, "country"].map(
        lambda c: TUITION_BY_COUNTRY.get(c, DEFAULT_TUITION)[1]
    )
    df["tuition_fee_min"] = df["tuition_fee_min"].astype(int)
    df["tuition_fee_max"] = df["tuition_fee_max"].astype(int)

    df["country"] = df["country"].replace(COUNTRY_ALIASES)

    if "programs" in df.columns:
        df["programs"] = df["programs"].apply(
            lambda v: [p.strip() for p in str(v).split(";") if p.strip()] if pd.notna(v) else []
        )
    else:
        df["programs"] = [[] for _ in range(len(df))]

    for column in ("city", "acceptance_rate", "website"):
        if column not in df.columns:
            df[column] = None
    if "currency" not in df.columns:
        df["currency"] = "USD"

    df = df.drop_duplicates(subset=["name", "country"])
    return df[CATALOG_COLUMNS].reset_index(drop=True)

def _clean(value):
    if isinstance(value, list):
        return value
    if pd.isna(value):
        return None
    # numpy scalars -> python
    return value.item() if hasattr(value, "item") else value

def load_catalog(db: Session, df: pd.DataFrame) -> int:
    """Insert universities not yet in the table. Returns the number inserted."""
    existing = {(u.name, u.country) for u in db.query(University.name, University.country).all()}
    inserted = 0
    for record in df.to_dict(orient="records"):
        if (record["name"], record["country"]) in existing:
            continue
        university = University(**{key: _clean(value) for key, value in record.items()})
        db.add(university)
        inserted += 1
    db.commit()
    logger.info(f"Inserted {inserted} universities ({len(df) - inserted} already present)")
    return inserted

def main(argv):
    raw = pd.read_csv(argv[1]) if len(argv) > 1 else download_rankings()
    catalog = prepare_universities(raw)
    logger.info(f"Total universities after cleaning: {len(catalog)}")

    verify_tables_exist()
    db = SessionLocal()
    try:
        load_catalog(db, catalog)
    finally:
        db.close()

if __name__ == "__main__":
    main(sys.argv)
