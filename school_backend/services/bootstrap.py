import logging

from sqlalchemy.orm import Session

from school_backend.core import config
from school_backend.models.user import Admin
from school_backend.services.accounts import create_account, find_by_username

logger = logging.getLogger(__name__)


def ensure_default_admin(db: Session) -> Admin | None:
    """Create the configured default administrator unless it already exists."""
    if find_by_username(db, config.DEFAULT_ADMIN_USERNAME) is not None:
        logger.info('Default administrator %s already exists.', config.DEFAULT_ADMIN_USERNAME)
        return None

    admin = create_account(
        db,
        Admin(
            username=config.DEFAULT_ADMIN_USERNAME,
            email=config.DEFAULT_ADMIN_EMAIL,
            password=config.DEFAULT_ADMIN_PASSWORD,
        ),
    )
    db.commit()
    logger.info('Created default administrator %s.', admin.username)
    return admin
