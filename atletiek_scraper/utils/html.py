from bs4 import BeautifulSoup, Comment, Tag


def clean_html(fragment: Tag | str) -> str:
    """Keeps only the top-level plain text of an element.

    Text nested inside any child element is dropped, as are comments.
    Strings are parsed as the inner HTML of an element first.

    Args:
        fragment: A parsed element, typically a table cell, or raw inner HTML.

    Returns:
        The concatenated direct text children with entities unescaped.

    Example:
        >>> clean_html('Venlo <span class="subtext">NED</span>')
        'Venlo '
    """
    if isinstance(fragment, Tag):
        node = fragment
    else:
        node = BeautifulSoup(f"<div>{fragment}</div>", "lxml").div
        if node is None:
            return ""
    return "".join(
        text
        for text in node.find_all(string=True, recursive=False)
        if not isinstance(text, Comment)
    )


def normalize_space(text: str) -> str:
    """Collapses runs of whitespace (including nbsp) into single spaces."""
    return " ".join(text.replace("\xa0", " ").split())
