# ==========================================================================================================
# -------------- Configuration file for the Octa ledger Flask application -----------------------------------
# ==========================================================================================================
import os
from dotenv import load_dotenv


if os.environ.get("FLASK_ENV") != "production":
    load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))


class Config:

    FLASK_ENV = os.getenv("FLASK_ENV", "production")
    DEBUG = os.getenv("DEBUG", "False").lower() in ("true", "1", "t")

    SECRET_KEY = os.getenv("SECRET_KEY")
    if not SECRET_KEY and FLASK_ENV == "production":
        raise ValueError("SECRET_KEY must be set in production")

    _database_url = os.getenv("DATABASE_URL")
    if not _database_url:
        _database_url = f"sqlite:///{os.path.join(basedir, 'instance', 'octa.db')}"

    if _database_url.startswith("postgres://"):
        _database_url = _database_url.replace("postgres://", "postgresql+pg8000://", 1)

    SQLALCHEMY_DATABASE_URI = _database_url
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    if _database_url.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30}}
    else:
        SQLALCHEMY_ENGINE_OPTIONS = {
            "pool_size": 10,
            "max_overflow": 20,
            "pool_pre_ping": True,
            "pool_recycle": 300,
        }

    LOG_DIR = os.getenv("LOG_DIR", "logs")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", "1048576"))
    LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "10"))

    # ------------------------------------------------------------------------------------------
    # Ledger rules
    # ------------------------------------------------------------------------------------------
    MIN_WITHDRAWAL = os.getenv("MIN_WITHDRAWAL", "1.00")
    REFERRAL_BONUS_RATE = os.getenv("REFERRAL_BONUS_RATE", "0.05")
    RECENT_TRANSACTIONS_LIMIT = int(os.getenv("RECENT_TRANSACTIONS_LIMIT", "10"))

    # Holding period is expressed in hours; 168 = one week.
    INVESTMENT_PLANS = [
        {"name": "Amateur Plan", "rate": "0.05", "holding_hours": 168},
        {"name": "Exclusive Plan", "rate": "0.08", "holding_hours": 168},
        {"name": "Diamond Plan", "rate": "0.12", "holding_hours": 168},
    ]

    # Positions opened on a plan that is no longer offered settle on these terms,
    # at the rate recorded on the position when there is one.
    LEGACY_PLAN = {"name": "Legacy Plan", "rate": "0.05", "holding_hours": 168}
