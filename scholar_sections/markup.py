import re

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

# Tags that start a new line in rendered text, roughly what a browser's innerText does.
BLOCK_TAGS = {
    "address", "article", "aside", "blockquote", "body", "caption", "center", "dd", "div",
    "dl", "dt", "fieldset", "figcaption", "figure", "footer", "form", "h1", "h2", "h3",
    "h4", "h5", "h6", "header", "hr", "html", "li", "main", "nav", "ol", "p", "pre",
    "section", "table", "tbody", "td", "tfoot", "th", "thead", "tr", "ul",
}
SKIP_TAGS = {"script", "style", "head", "title", "template", "noscript"}

_SPACES_RE = re.compile(r"\s+")


def parse_markup(markup):
    """
    Parses email markup into a BeautifulSoup tree.
    Empty input, or markup the parser chokes on, gives an empty tree instead of an error.
    """
    if not markup or not isinstance(markup, str):
        return BeautifulSoup("", "html.parser")
    try:
        return BeautifulSoup(markup, "html.parser")
    except Exception as e:
        print(f"Could not parse email markup, treating it as empty: {e}")
        return BeautifulSoup("", "html.parser")


def iter_elements(tree):
    """Depth-first element nodes of the tree (tag name in .name, attributes in .attrs)."""
    return tree.find_all(True)


def parent_of(node):
    parent = node.parent if node is not None else None
    # The BeautifulSoup object itself is the document root, not an element.
    if parent is None or isinstance(parent, BeautifulSoup):
        return None
    return parent


def rendered_text(node):
    """
    Visible text of a node: text nodes with whitespace collapsed, a line break around
    every block element and <br>, script/style and comments skipped, blank lines removed.
    """
    if node is None:
        return ""
    if isinstance(node, NavigableString):
        return "" if isinstance(node, PreformattedString) else _SPACES_RE.sub(" ", str(node)).strip()

    parts = []
    # None on the stack marks the end of a block element.
    stack = list(reversed(list(node.children)))
    while stack:
        item = stack.pop()
        if item is None:
            parts.append("\n")
            continue
        if isinstance(item, PreformattedString):
            continue
        if isinstance(item, NavigableString):
            parts.append(_SPACES_RE.sub(" ", str(item)))
            continue
        if not isinstance(item, Tag) or item.name in SKIP_TAGS:
            continue
        if item.name == "br":
            parts.append("\n")
            continue
        if item.name in BLOCK_TAGS:
            parts.append("\n")
            stack.append(None)
        stack.extend(reversed(list(item.children)))

    lines = (re.sub(r" {2,}", " ", line).strip() for line in "".join(parts).split("\n"))
    return "\n".join(line for line in lines if line)


def document_text(tree):
    body = tree.body if tree is not None else None
    return rendered_text(body if body is not None else tree)
