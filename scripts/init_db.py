#!/usr/bin/env python3
"""
Database initialization script
Creates all tables and optionally seeds a development model version
"""

import logging
import sys

from sqlalchemy import inspect

from edgeloop.config import Settings
from edgeloop.database import Database
from edgeloop.services.model_registry import DuplicateModelVersion, ModelRegistry

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEV_MODEL_VERSION = "v0.1.0-dev"


def init_database(database: Database, drop_existing: bool = False):
    """
    Initialize database tables

    Args:
        drop_existing: If True, drops all tables first (DANGER: data loss!)
    """
    logger.info("Initializing EdgeLoop database...")

    if drop_existing:
        logger.warning("Dropping all existing tables!")
        response = input("Are you sure? This will delete all data. Type 'yes' to confirm: ")
        if response.lower() != 'yes':
            logger.info("Aborted.")
            return False

        database.drop_all()
        logger.info("Existing tables dropped")

    database.create_all()
    logger.info("Database tables created successfully")

    tables = inspect(database.engine).get_table_names()
    logger.info(f"Tables: {', '.join(tables)}")

    return True


def seed_test_data(database: Database):
    """Register and activate a placeholder model version for development"""
    logger.info("Seeding test data...")

    registry = ModelRegistry(database)
    try:
        registry.create_version(
            DEV_MODEL_VERSION,
            model_type="logistic",
            hyperparameters={"C": 1.0, "max_iter": 200},
        )
    except DuplicateModelVersion:
        logger.info("%s already registered, skipping seed", DEV_MODEL_VERSION)
        return

    registry.start_validation(DEV_MODEL_VERSION)
    registry.record_metrics(DEV_MODEL_VERSION, {"log_loss": 0.693, "brier_score": 0.25})
    registry.activate(DEV_MODEL_VERSION)
    logger.info("Test data seeded")


def check_connection(database: Database):
    """Test database connection"""
    try:
        database.ping()
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Initialize EdgeLoop database")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables (DANGER!)")
    parser.add_argument("--seed", action="store_true", help="Seed a development model version")
    parser.add_argument("--check", action="store_true", help="Only check connection")

    args = parser.parse_args()

    database = Database(Settings.from_env().database_url)

    if args.check:
        check_connection(database)
    else:
        if check_connection(database):
            if init_database(database, drop_existing=args.drop) and args.seed:
                seed_test_data(database)

            logger.info("Database initialization complete!")
        else:
            logger.error("Cannot initialize database - connection failed")
            sys.exit(1)
