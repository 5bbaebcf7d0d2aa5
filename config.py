import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    SECRET_KEY = os.getenv("FLASK_SECRET", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URI", "sqlite:///amber.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    AMBER_BASE_URL = os.getenv("AMBER_BASE_URL", "https://api.amber.com.au/v1")
    REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "30"))
    TIMEZONE = os.getenv("TIMEZONE", "Australia/Sydney")

    # Amber rejects usage/price windows wider than a week
    OVERVIEW_DAYS = int(os.getenv("OVERVIEW_DAYS", "30"))
    CHUNK_DAYS = int(os.getenv("CHUNK_DAYS", "7"))
    PRICE_RESOLUTION = int(os.getenv("PRICE_RESOLUTION", "30"))
    FETCH_WORKERS = int(os.getenv("FETCH_WORKERS", "8"))

    AUTO_REFRESH_MINUTES = int(os.getenv("AUTO_REFRESH_MINUTES", "5"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()
