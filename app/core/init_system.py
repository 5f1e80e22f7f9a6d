import logging
from app.core.config import settings
from app.database import SessionLocal
from app.services import payroll_service

logger = logging.getLogger(__name__)

def init_system_data():
    """
    Checks if the system needs initialization.
    If no organisation salary structure exists, installs the default one.
    """
    if not settings.payroll.seed_default_components:
        logger.info("Default salary structure seeding disabled.")
        return

    db = SessionLocal()
    try:
        if not payroll_service.seed_default_components(db):
            logger.info("System initialization check: salary structure already configured.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error during system initialization check: {str(e)}", exc_info=True)
    finally:
        db.close()
