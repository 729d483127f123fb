"""Library item models returned by the search collaborator."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class LibraryItem(BaseModel):
    """A content item previously saved by the user.

    Identity is ``id``; the candidate gatherer guarantees uniqueness.
    Instances are frozen: content normalization produces a copy.

    Attributes:
        id: Library item identifier
        title: Item title
        author: Author name when known
        readable_content: Article body (HTML from search, markdown after gathering)
        original_url: Source URL, used for chapter links
        thumbnail: Optional image URL
        word_count: Word count reported by the library
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    title: str
    author: str | None = None
    readable_content: str = ""
    original_url: str = ""
    thumbnail: str | None = None
    word_count: int = Field(default=0, ge=0)

    def __str__(self) -> str:
        return f"LibraryItem({self.id[:8]}, '{self.title[:50]}')"


class SearchSpec(BaseModel):
    """Arguments of a single library search."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    query: str
    size: int
    include_content: bool = False
