from pydantic import BaseModel

from shared.clients.rag.models.VectorPoint import QueryMatch


class ScrollResult(BaseModel):
    """One page of a metadata-filtered listing, or a fully collected listing.

    Attributes:
        result:           Records on this page (score is 0 for listings).
        next_page_offset: Cursor for the next page, or None when all pages
                          have been consumed. Always None on results returned
                          by do_list_by_filter().
    """

    result: list[QueryMatch]
    next_page_offset: str | None = None
