import os

from config.config import AUTO_ISSUE_RECEIPTS, LOG_LEVEL, RECEIPT_PREFIX_FALLBACK, db_config_from_env, env_flag

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = db_config_from_env()

DEBUG = False

AUTO_INIT_DB = env_flag("AUTO_INIT_DB", "0")
