"""
Transaction Helper Service

Wraps service writes in a single database transaction:
- commit on success, rollback on any failure
- retry only on connection-level errors
- stale version and duplicate key errors surface as conflicts
- rollback actions undo side effects outside the database (written files)
"""

from functools import wraps
from typing import Callable, List
import logging
import time

from sqlalchemy.exc import OperationalError, IntegrityError, DisconnectionError
from sqlalchemy.orm.exc import StaleDataError

from app import db
from errors import ConflictError, PortalError

logger = logging.getLogger(__name__)

_ROLLBACK_ACTIONS_KEY = 'rollback_actions'


class TransactionHelper:
    """Helper class for managing database transactions safely"""

    max_retries = 3
    backoff = 0.2

    @staticmethod
    def register_rollback_action(action: Callable[[], None]) -> None:
        """Run ``action`` if the surrounding transaction rolls back"""
        db.session.info.setdefault(_ROLLBACK_ACTIONS_KEY, []).append(action)

    @staticmethod
    def _pop_rollback_actions() -> List[Callable[[], None]]:
        return db.session.info.pop(_ROLLBACK_ACTIONS_KEY, [])

    @classmethod
    def _rollback(cls) -> None:
        db.session.rollback()
        for action in reversed(cls._pop_rollback_actions()):
            try:
                action()
            except OSError as e:
                logger.error(f"Rollback action failed: {str(e)}")

    @classmethod
    def with_transaction(cls, func: Callable) -> Callable:
        """
        Decorator that wraps a function in a database transaction.

        Usage:
            @TransactionHelper.with_transaction
            def close_slip(self, ds_no, payload):
                ...
        """
        @wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(cls.max_retries):
                try:
                    result = func(*args, **kwargs)
                    db.session.commit()
                    cls._pop_rollback_actions()
                    return result
                except PortalError:
                    cls._rollback()
                    raise
                except StaleDataError:
                    cls._rollback()
                    logger.warning(f"Stale write rejected in {func.__name__}")
                    raise ConflictError("Record was modified by someone else. Reload and try again.")
                except IntegrityError as e:
                    cls._rollback()
                    logger.warning(f"Integrity error in {func.__name__}: {str(e.orig)}")
                    raise ConflictError("A record with the same identifier already exists.")
                except (OperationalError, DisconnectionError) as e:
                    cls._rollback()
                    if attempt < cls.max_retries - 1:
                        sleep_time = cls.backoff * (2 ** attempt)
                        logger.warning(f"Database connection error in {func.__name__} "
                                       f"(attempt {attempt + 1}/{cls.max_retries}): {str(e)}. "
                                       f"Retrying in {sleep_time}s...")
                        time.sleep(sleep_time)
                        continue
                    logger.error(f"Transaction failed after {cls.max_retries} attempts: {str(e)}")
                    raise
                except Exception as e:
                    cls._rollback()
                    logger.error(f"Transaction error in {func.__name__}: {str(e)}")
                    raise
            return None
        return wrapper
