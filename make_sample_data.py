"""Generate a synthetic incident CSV with the NYPD shooting schema for offline runs."""
import argparse
from pathlib import Path

import numpy as np
import pandas as pd

BOROS = ["BRONX", "BROOKLYN", "MANHATTAN", "QUEENS", "STATEN ISLAND"]
AGE_GROUPS = ["<18", "18-24", "25-44", "45-64", "65+"]
RACES = ["BLACK", "WHITE HISPANIC", "BLACK HISPANIC", "WHITE", "ASIAN / PACIFIC ISLANDER"]
LOCATIONS = ["MULTI DWELL - PUBLIC HOUS", "MULTI DWELL - APT BUILD", "GROCERY/BODEGA", "(null)", None]


def make_incidents(n: int = 1000, seed: int = 42) -> pd.DataFrame:
    """Synthetic incident rows; older victims are more often murder-flagged."""
    rng = np.random.default_rng(seed)

    dates = pd.Timestamp("2016-01-01") + pd.to_timedelta(rng.integers(0, 6 * 365, n), unit="D")
    seconds = rng.integers(0, 24 * 3600, n)
    times = [f"{s // 3600:02d}:{(s % 3600) // 60:02d}:{s % 60:02d}" for s in seconds]

    vic_age = rng.choice(AGE_GROUPS, n, p=[0.1, 0.3, 0.45, 0.12, 0.03])
    boro = rng.choice(BOROS, n, p=[0.3, 0.4, 0.12, 0.15, 0.03])
    logit = -2.0 + 0.6 * np.array([AGE_GROUPS.index(a) for a in vic_age]) + 0.3 * (boro == "BRONX")
    murder = rng.random(n) < 1 / (1 + np.exp(-logit))

    lat = rng.normal(40.73, 0.08, n)
    lon = rng.normal(-73.93, 0.08, n)

    df = pd.DataFrame({
        "INCIDENT_KEY": rng.integers(10_000_000, 99_999_999, n),
        "OCCUR_DATE": dates.strftime("%m/%d/%Y"),
        "OCCUR_TIME": times,
        "BORO": boro,
        "PRECINCT": rng.integers(1, 124, n),
        "JURISDICTION_CODE": rng.choice([0.0, 1.0, 2.0], n, p=[0.8, 0.05, 0.15]),
        "LOCATION_DESC": rng.choice(np.array(LOCATIONS, dtype=object), n),
        "STATISTICAL_MURDER_FLAG": np.where(murder, "true", "false"),
        "PERP_AGE_GROUP": rng.choice(AGE_GROUPS + ["(null)", "1020"], n),
        "PERP_SEX": rng.choice(["M", "F", "U", "(null)"], n, p=[0.6, 0.05, 0.15, 0.2]),
        "PERP_RACE": rng.choice(RACES + ["(null)"], n),
        "VIC_AGE_GROUP": vic_age,
        "VIC_SEX": rng.choice(["M", "F"], n, p=[0.9, 0.1]),
        "VIC_RACE": rng.choice(RACES, n),
        "Latitude": lat,
        "Longitude": lon,
        "Lon_Lat": [f"POINT ({x} {y})" for x, y in zip(lon, lat)],
    })

    # Sprinkle missing coordinates and two unusable jurisdiction codes
    missing = rng.random(n) < 0.02
    df.loc[missing, ["Latitude", "Longitude", "Lon_Lat"]] = np.nan
    df.loc[df.index[:2], "JURISDICTION_CODE"] = np.nan
    return df


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--rows", type=int, default=5000)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--out", default="data/sample_incidents.csv")
    args = parser.parse_args()

    df = make_incidents(args.rows, args.seed)
    Path(args.out).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(args.out, index=False)
    print(
        f"Saved {args.out}: {df.shape}, "
        f"murder share={(df.STATISTICAL_MURDER_FLAG == 'true').mean():.2f}"
    )


if __name__ == "__main__":
    main()
