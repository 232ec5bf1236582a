from sqlalchemy.orm import Session


def next_number(db: Session, column, prefix: str, width: int) -> str:
    """Next human-readable number for a column holding values like INV-0001."""
    seq = 0
    for (value,) in db.query(column).filter(column.like(f"{prefix}%")).all():
        try:
            seq = max(seq, int(value[len(prefix):]))
        except (TypeError, ValueError):
            continue
    return f"{prefix}{seq + 1:0{width}d}"
