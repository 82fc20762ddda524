# ipd_core/db/init_db.py
from __future__ import annotations

import argparse
import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ipd_core.db.base import Base
from ipd_core.db.session import engine as default_engine

# Import all models so metadata is complete
from ipd_core import models  # noqa: F401

logger = logging.getLogger(__name__)


def create_all(eng: Engine | None = None) -> None:
    eng = eng or default_engine
    Base.metadata.create_all(bind=eng)


def print_tables(eng: Engine) -> set[str]:
    names = set(inspect(eng).get_table_names())
    print("Existing tables:", sorted(names))
    return names


def main() -> None:
    parser = argparse.ArgumentParser(description="Create IPD tables")
    parser.add_argument("--show", action="store_true", help="list tables after create")
    args = parser.parse_args()

    try:
        create_all()
    except SQLAlchemyError as e:
        logger.error("create_all failed: %s", e)
        raise SystemExit(1)

    if args.show:
        print_tables(default_engine)


if __name__ == "__main__":
    main()
