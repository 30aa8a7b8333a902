"""
data_generator.py — Synthetic project history generator.

Populates the ``projects`` table defined in database.py with realistic
construction projects (mostly completed, with budget and actual cost) so the
cost predictor has history to learn from during development, tests and demos.

Usage:
    python src/data_generator.py
"""

import calendar
import random
import sys
from datetime import date, timedelta
from pathlib import Path

from faker import Faker
from sqlalchemy.orm import Session

# Allow direct execution from either the project root or src/
sys.path.insert(0, str(Path(__file__).parent))

from database import Project, ProjectStatus, ProjectType, get_engine, init_db

# ---------------------------------------------------------------------------
# Reproducibility & globals
# ---------------------------------------------------------------------------

SEED = 42
fake = Faker("en_US")

TODAY = date(2026, 2, 17)
DATA_START = date(2021, 1, 1)

# ---------------------------------------------------------------------------
# CATALOGS
# ---------------------------------------------------------------------------

# project_type -> (min_sqft, max_sqft, min_cost_per_sqft, max_cost_per_sqft)
SIZE_AND_RATE = {
    ProjectType.RESIDENTIAL: (2_000, 18_000, 150, 350),
    ProjectType.COMMERCIAL:  (10_000, 250_000, 200, 450),
}
# Infrastructure has no meaningful floor area: budget drawn directly
INFRA_BUDGET_RANGE = (5_000_000, 60_000_000)

LOCATIONS = [
    "St. Louis, MO", "Kansas City, MO", "Springfield, MO", "Jefferson City, MO",
    "Columbia, MO", "Joplin, MO", "St. Charles, MO", "Chesterfield, MO",
]

RES_PREFIXES = [
    "Oakwood", "Ridgeview", "Creekside", "Westbrook", "Lakeside", "Meadowland",
    "Hillcrest", "Riverside", "Pinecrest", "Stonegate", "Foxwood", "Evergreen",
]
RES_SUFFIXES = ["Residences", "Townhomes", "Commons", "Estates", "Villas", "Landing"]
COM_PREFIXES = [
    "Gateway", "Midtown", "Westport", "Northside", "Commerce", "Keystone",
    "Summit", "Premier", "Pinnacle", "Central", "Landmark", "Metro",
]
COM_SUFFIXES = ["Business Center", "Plaza", "Medical Center", "Office Park", "Trade Center"]
INFRA_TEMPLATES = [
    "{city} Bridge Reconstruction",
    "Route {num} Overpass Replacement",
    "{city} Water Treatment Plant Expansion",
    "{city} Road Widening Project",
]

# ---------------------------------------------------------------------------
# UTILITIES
# ---------------------------------------------------------------------------


def add_months(d: date, n: int) -> date:
    """Advance date d by n months, clamping to end-of-month."""
    m = d.month - 1 + n
    year = d.year + m // 12
    month = m % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _project_name(ptype: ProjectType) -> str:
    if ptype == ProjectType.RESIDENTIAL:
        return f"{random.choice(RES_PREFIXES)} {random.choice(RES_SUFFIXES)}"
    if ptype == ProjectType.COMMERCIAL:
        return f"{random.choice(COM_PREFIXES)} {random.choice(COM_SUFFIXES)}"
    city = random.choice(LOCATIONS).split(",")[0]
    return random.choice(INFRA_TEMPLATES).format(city=city, num=random.randint(47, 270))


# ---------------------------------------------------------------------------
# PROJECTS
# ---------------------------------------------------------------------------


def generate_projects(session: Session, n: int = 60, seed: int = SEED) -> list:
    """
    Insert *n* synthetic projects unless the table already has rows.

    Completed projects get actual_cost = budget × U(0.85, 1.30); active and
    planning projects leave actual_cost (and end_date) NULL.
    """
    if session.query(Project).count() > 0:
        print("  projects already populated, loading.")
        return session.query(Project).all()

    random.seed(seed)
    Faker.seed(seed)

    print(f"  Generating {n} projects ...", end=" ", flush=True)

    type_pool = [ProjectType.RESIDENTIAL, ProjectType.COMMERCIAL, ProjectType.INFRASTRUCTURE]
    type_weights = [45, 40, 15]

    objs = []
    for _ in range(n):
        ptype = random.choices(type_pool, weights=type_weights)[0]

        if ptype in SIZE_AND_RATE:
            min_sf, max_sf, min_rate, max_rate = SIZE_AND_RATE[ptype]
            sqft = round(random.uniform(min_sf, max_sf))
            budget = sqft * random.uniform(min_rate, max_rate)
        else:
            sqft = None
            budget = random.uniform(*INFRA_BUDGET_RANGE)

        duration_months = random.randint(3, 18)
        days_spread = (date(2025, 9, 1) - DATA_START).days
        start = DATA_START + timedelta(days=random.randint(0, days_spread))
        planned_end = add_months(start, duration_months)

        if start > TODAY:
            status = ProjectStatus.PLANNING
            end = actual_cost = None
        elif planned_end < TODAY and random.random() < 0.85:
            status = ProjectStatus.COMPLETED
            slip = random.uniform(0.90, 1.30)
            end = min(add_months(start, max(int(duration_months * slip), 1)), TODAY)
            actual_cost = round(budget * random.uniform(0.85, 1.30), 2)
        else:
            status = random.choices(
                [ProjectStatus.ACTIVE, ProjectStatus.ON_HOLD], weights=[90, 10]
            )[0]
            end = actual_cost = None

        objs.append(Project(
            project_name=_project_name(ptype),
            project_type=ptype.value,
            square_footage=sqft,
            location=random.choice(LOCATIONS),
            budget=round(budget, 2),
            actual_cost=actual_cost,
            start_date=start,
            end_date=end,
            status=status.value,
            client_name=fake.company(),
        ))

    session.add_all(objs)
    session.commit()
    print(f"{len(objs)} rows inserted.")
    return session.query(Project).all()


# ---------------------------------------------------------------------------
# ORCHESTRATION
# ---------------------------------------------------------------------------


def main(database_url: str = None) -> None:
    print("=" * 65)
    print("  Cost Prediction — Project History Generator")
    print("=" * 65)

    engine = get_engine(database_url) if database_url else get_engine()
    init_db(engine)   # idempotent: creates any missing tables

    with Session(engine) as session:
        projects = generate_projects(session)

        by_status: dict = {}
        for p in projects:
            by_status[p.status] = by_status.get(p.status, 0) + 1

        print("\n" + "=" * 65)
        print("  SUMMARY")
        print("=" * 65)
        for status, count in sorted(by_status.items(), key=lambda kv: str(kv[0])):
            label = status.value if isinstance(status, ProjectStatus) else str(status)
            print(f"  {label:<30} {count:>10,}")
        print(f"  {'─' * 42}")
        print(f"  {'projects':<30} {len(projects):>10,}")
        print("=" * 65)
        print(f"\n  Database: {engine.url}")
        print("  Done.\n")


if __name__ == "__main__":
    main()
