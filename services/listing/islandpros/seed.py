from datetime import timedelta

from .config import TRIAL_DAYS
from .db import SessionLocal, utcnow
from .models import (
    Area,
    Category,
    PLAN_PREMIUM,
    Provider,
    ProviderArea,
    ProviderCategory,
    SOURCE_TRIAL,
)

CATEGORIES = ["Plumbing", "Electrical", "Landscaping", "Cleaning", "Boat Repair", "Beauty"]
AREAS = {
    "STT": ["Charlotte Amalie", "Red Hook", "Frenchtown"],
    "STX": ["Christiansted", "Frederiksted"],
    "STJ": ["Cruz Bay", "Coral Bay"],
}


def run(db=None):
    own_session = db is None
    db = db or SessionLocal()
    try:
        if db.query(Category).count() == 0:
            db.add_all(Category(name=name) for name in CATEGORIES)
            db.add_all(Area(island=island, name=name) for island, names in AREAS.items() for name in names)
            db.flush()

        if db.query(Provider).count() == 0:
            now = utcnow()
            plumbing = db.query(Category).filter(Category.name == "Plumbing").one()
            red_hook = db.query(Area).filter(Area.island == "STT", Area.name == "Red Hook").one()
            p = Provider(
                name="Island Pipe Pros",
                phone="340-555-0100",
                island="STT",
                description="Residential and commercial plumbing",
                plan=PLAN_PREMIUM,
                plan_source=SOURCE_TRIAL,
                trial_end_at=now + timedelta(days=TRIAL_DAYS),
            )
            db.add(p)
            db.flush()
            db.add(ProviderCategory(provider_id=p.id, category_id=plumbing.id))
            db.add(ProviderArea(provider_id=p.id, area_id=red_hook.id))
        db.commit()
    finally:
        if own_session:
            db.close()


if __name__ == "__main__":
    run()
