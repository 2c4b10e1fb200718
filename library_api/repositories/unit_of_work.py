from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from library_api.errors import ConflictError, StorageError
from library_api.extensions import db


@contextmanager
def unit_of_work(action: str = "operation"):
    """Run the block as one transaction on the request's session.

    Commits when the block finishes. Any exception rolls back everything
    staged so far. A constraint violation comes out as ``ConflictError``
    (retrying the same request would fail again); other database errors come
    out as ``StorageError``.
    """
    try:
        yield db.session
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.warning(f"[db] {action} violated a constraint, rolled back: {e.orig}")
        raise ConflictError(f"{action} conflicts with existing data; nothing was changed") from e
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"[db] {action} failed, rolled back: {e}")
        raise StorageError(f"Storage failure during {action}; nothing was changed, please retry") from e
    except Exception:
        db.session.rollback()
        raise
