"""Markdown to HTML rendering for user-authored text."""
import markdown

# Comment-friendly subset: fenced code, tables, and single newlines as <br>.
EXTENSIONS = ["fenced_code", "tables", "nl2br", "sane_lists"]


class MarkdownRenderer:
    """
    Thin wrapper over Python-Markdown.

    A fresh ``markdown.Markdown`` instance is used per call; instances keep
    per-document state (footnotes, references) between ``convert`` calls.
    """

    def __init__(self, extensions: list[str] | None = None) -> None:
        self._extensions = list(EXTENSIONS if extensions is None else extensions)

    def to_html(self, text: str) -> str:
        return markdown.Markdown(extensions=self._extensions, output_format="html").convert(text)
