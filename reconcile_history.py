# reconcile_history.py
"""Backfill order_status_history rows for orders whose status changed
without an audit entry (webhooks, manual SQL, interrupted requests)."""
from storefront import config
from storefront.db import make_engine, make_session_factory
from storefront.log import configure_logging
import storefront.models  # noqa
from storefront.services.status_history import backfill_status_history


def main():
    configure_logging()
    engine = make_engine(config.DATABASE_URL)
    db = make_session_factory(engine)()
    try:
        fixed = backfill_status_history(db)
    finally:
        db.close()
    if fixed:
        print(f"✅ History backfilled for {len(fixed)} order(s): {', '.join(fixed)}")
    else:
        print("ℹ️ History is consistent, nothing to do")


if __name__ == "__main__":
    main()
