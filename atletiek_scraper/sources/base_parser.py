from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

import soupsieve as sv
import structlog
from bs4 import BeautifulSoup, Tag

from atletiek_scraper.exceptions import StructureNotFound
from atletiek_scraper.utils.html import normalize_space

Document = str | bytes | Tag


class BaseParser(ABC):
    """Abstract base class for atletiek.nu page parsers.

    Subclasses compile their selectors once at class level and implement
    ``parse``. Fatal shape problems raise StructureNotFound; field level
    problems are raised as FieldParseError inside helpers and recovered at
    row level.
    """

    page: str = "unknown"

    @property
    def logger(self) -> Any:
        # Bound per use so logging configuration changes are picked up
        return structlog.get_logger(type(self).__module__).bind(page=self.page)

    @staticmethod
    def make_soup(document: Document) -> Tag:
        """Returns a parsed tree; already parsed documents are used as-is."""
        if isinstance(document, Tag):
            return document
        return BeautifulSoup(document, "lxml")

    def require(self, root: Tag, selector: sv.SoupSieve, message: str) -> Tag:
        """Resolves an anchor query.

        Raises:
            StructureNotFound: If nothing matches the selector.
        """
        node = selector.select_one(root)
        if node is None:
            raise StructureNotFound(message, page=self.page, selector=selector.pattern)
        return node

    def read_header_map(
        self,
        header_cells: list[Tag],
        aliases: Mapping[str, frozenset[str]],
    ) -> dict[str, int]:
        """Maps canonical column names to their index in a table.

        Header texts are lower-cased and matched against the aliases of each
        canonical name. Unknown headers are logged and ignored.

        Args:
            header_cells: The ``th`` cells of the header row.
            aliases: Canonical column name to the accepted header texts.

        Returns:
            Canonical column name to column index. When a header occurs
            twice, the first occurrence wins.
        """
        columns: dict[str, int] = {}
        for index, cell in enumerate(header_cells):
            text = header_text(cell)
            canonical = next(
                (name for name, names in aliases.items() if text in names), None
            )
            if canonical is None:
                self.logger.debug("unknown_column_ignored", header=text, index=index)
                continue
            columns.setdefault(canonical, index)
        return columns

    @abstractmethod
    def parse(self, document: Document) -> Any:
        """Parses a page into its record.

        Args:
            document: Raw HTML or an already parsed tree.
        """
        pass


def header_text(cell: Tag) -> str:
    """Normalized lower-case text of a header cell."""
    return normalize_space(cell.get_text(" ", strip=True)).lower().rstrip(":")


def attr(node: Tag | None, name: str) -> str | None:
    """Returns an attribute as a single string.

    BeautifulSoup returns multi-valued attributes (``class``) as lists.
    """
    if node is None:
        return None
    value = node.get(name)
    if value is None:
        return None
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


def cell_text(node: Tag | None) -> str:
    if node is None:
        return ""
    return normalize_space(node.get_text(" ", strip=True))
