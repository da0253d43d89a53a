"""Overlapping, sentence-aware text chunking for embedding."""

CHUNK_SIZE = 1000   # characters per chunk window
CHUNK_OVERLAP = 200 # characters shared by consecutive chunks


def chunk_spans(content: str, chunk_size: int = CHUNK_SIZE, overlap: int = CHUNK_OVERLAP) -> list[tuple[int, int]]:
    """Compute the (start, end) character spans of every chunk window.

    A window that does not reach the end of the content is cut after its last
    "." or newline, provided that boundary lies past the middle of the
    window. The next window starts `overlap` characters before the cut.

    Args:
        content (str): Full text.
        chunk_size (int): Window size in characters.
        overlap (int): Characters repeated at the start of the next window.

    Returns:
        list[tuple[int, int]]: Spans in document order; their union is the whole content.

    Raises:
        ValueError: If chunk_size is not positive, or overlap is negative or not smaller than chunk_size.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}.")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError(f"overlap must be in [0, chunk_size), got {overlap} for chunk_size {chunk_size}.")

    spans: list[tuple[int, int]] = []
    start = 0
    length = len(content)
    while start < length:
        end = min(start + chunk_size, length)
        if end >= length:
            spans.append((start, end))
            break

        window = content[start:end]
        boundary = max(window.rfind("."), window.rfind("\n"))
        if boundary > chunk_size * 0.5:
            cut = start + boundary + 1
            next_start = cut - overlap
        else:
            cut = end
            next_start = end - overlap
        # a late boundary with a large overlap must still move forward
        if next_start <= start:
            next_start = end - overlap
        spans.append((start, cut))
        start = next_start
    return spans


def split_into_chunks(content: str, chunk_size: int = CHUNK_SIZE, overlap: int = CHUNK_OVERLAP) -> list[str]:
    """Split text into stripped, non-empty chunks.

    Args:
        content (str): Full text.
        chunk_size (int): Window size in characters.
        overlap (int): Characters shared by consecutive chunks.

    Returns:
        list[str]: Chunks in document order.
    """
    chunks: list[str] = []
    for start, end in chunk_spans(content, chunk_size, overlap):
        chunk = content[start:end].strip()
        if chunk:
            chunks.append(chunk)
    return chunks
