from config.config import LOG_LEVEL, RECEIPT_PREFIX_FALLBACK, db_config_from_env, env_flag

SECRET_KEY = "test-secret"

DB_CONFIG = db_config_from_env()

DEBUG = False
TESTING = True

AUTO_INIT_DB = env_flag("AUTO_INIT_DB", "0")
AUTO_ISSUE_RECEIPTS = False
