"""Read helpers over Protean querysets."""

PAGE_SIZE = 100


def fetch_all(queryset, page_size: int = PAGE_SIZE) -> list:
    """Return every record matched by ``queryset``, paging past the provider's row limit."""
    records = []
    offset = 0
    while True:
        items = queryset.offset(offset).limit(page_size).all().items
        records.extend(items)
        if len(items) < page_size:
            return records
        offset += page_size
