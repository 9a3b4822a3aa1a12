from sqlalchemy.orm import Query


def paginate(query: Query, page: int, limit: int) -> dict:
    """Count ``query`` and fetch the ``page``-th window of ``limit`` rows."""
    total = query.count()
    total_pages = max(1, (total + limit - 1) // limit)
    items = query.offset((page - 1) * limit).limit(limit).all()
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": total_pages,
        "items": items,
    }
