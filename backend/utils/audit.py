import logging

from sqlalchemy.orm import Session
from models.log import Log

logger = logging.getLogger(__name__)

def write_log(db: Session, *, action, resource, status="SUCCESS", ip=None, meta=None):
    entry = Log(action=action, resource=resource, status=status, ip=ip, meta=meta or {})
    db.add(entry)
    db.commit()
    logger.info("%s %s %s %s", action, resource, status, meta or {})
