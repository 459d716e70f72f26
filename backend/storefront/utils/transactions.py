from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session


@contextmanager
def smart_transaction(session: Session) -> Iterator[Session]:
    """
    Run the block as one all-or-nothing unit of work and commit it.

    If a transaction is already active on the session (e.g. autobegun by
    earlier reads), the block runs inside a SAVEPOINT (begin_nested) and the
    enclosing transaction is committed afterwards. Otherwise a normal
    transaction is begun and committed on exit.
    Any exception rolls the work back and propagates.
    Usage:
        with smart_transaction(db):
            ... DB work ...
    """
    if session.in_transaction():
        try:
            with session.begin_nested():
                yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
    else:
        with session.begin():
            yield session
