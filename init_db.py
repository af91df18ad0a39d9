"""
Database initialization script for deployments
Run with: python init_db.py
"""

from app import app, db
from models import Game, init_default_data


def initialize_database():
    """Initialize database tables and default data"""
    with app.app_context():
        app.logger.info("Creating database tables...")
        db.create_all()

        app.logger.info("Initializing default data...")
        init_default_data()

        app.logger.info("Database initialized with %d games", Game.query.count())
        app.logger.info("Default admin credentials: admin / admin123")


if __name__ == "__main__":
    initialize_database()
