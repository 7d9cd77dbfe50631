# database.py
import os
import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from dotenv import load_dotenv
from paths import DATA_DIR, data_file

logger = logging.getLogger(__name__)

# Load environment variables from .env
load_dotenv()

# Make sure the Data directory exists
DATA_DIR.mkdir(exist_ok=True)

# Database URL from .env
database_url = os.getenv('DATABASE_URL', f"sqlite:///{data_file('dealership.db')}")

logger.info(f"Environment: {os.getenv('ENVIRONMENT', 'development')}")
logger.info(f"Database URL: {database_url}")

# SQLite needs check_same_thread off; other drivers reject the argument
connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}

engine = create_engine(database_url, connect_args=connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def init_db(bind=None):
    from Models import Base
    Base.metadata.create_all(bind=bind or engine)
    logger.info(f"Database initialized at: {database_url if bind is None else bind.url}")
