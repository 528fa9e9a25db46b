"""Parser strategy protocol."""

from typing import Protocol, runtime_checkable

from content_parser.engines.models import Extraction, ParseRequest


@runtime_checkable
class ParserStrategy(Protocol):
    """Protocol every parser strategy implements.

    Strategies only extract: validation of limits and offsets, rate limiting,
    pagination and result packaging are handled by the pipeline. A strategy
    signals failure by raising; the pipeline converts the exception into a
    failure result.

    Attributes:
        name: Registry name (e.g., "feeds")
        description: One-line human-readable description
        supported_types: Values of ``ParseRequest.type`` the strategy understands
    """

    name: str
    description: str
    supported_types: tuple[str, ...]

    def extract(self, request: ParseRequest) -> Extraction:
        """Produce the complete, unpaginated item sequence for ``request``.

        Args:
            request: Validated parse request

        Returns:
            Extraction with items in source order and strategy metadata

        Raises:
            ParserError: Or any other exception on fetch or parse failure.
        """
        ...
