from __future__ import annotations

import importlib
import logging
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .batch_structures.controller import register as register_batch_structures
from .common.http import register_error_handlers
from .components.controller import register as register_components
from .container import build_container
from .database.bootstrap import apply_schema, list_tables
from .installments.controller import register as register_installments
from .receipts.controller import register as register_receipts
from .reports.controller import register as register_reports
from .scholarships.controller import register as register_scholarships
from .student_structures.controller import register as register_student_structures

logger = logging.getLogger(__name__)


def create_app() -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))

    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logger.info(
        "settings=%s db=%s@%s:%s/%s",
        settings_module,
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
    )

    if bool(getattr(settings, "AUTO_INIT_DB", False)):
        schema_path = Path(__file__).resolve().parents[3] / "database" / "schema.sql"
        apply_schema(db_config, schema_path=schema_path)
        logger.info("Schema ready (tables=%d)", len(list_tables(db_config)))

    container = build_container(
        db_config=db_config,
        auto_issue_receipts=bool(getattr(settings, "AUTO_ISSUE_RECEIPTS", True)),
        receipt_prefix_fallback=getattr(settings, "RECEIPT_PREFIX_FALLBACK", "REC"),
    )

    register_error_handlers(app)
    register_components(app, container)
    register_batch_structures(app, container)
    register_student_structures(app, container)
    register_scholarships(app, container)
    register_installments(app, container)
    register_receipts(app, container)
    register_reports(app, container)

    return app
