"""Page materials and extraction request models.

These are transient, per-run values: they are rebuilt at the start of every
run and never persisted.  Like the other plain value types in this package
they are stdlib dataclasses rather than Pydantic models.
"""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class PageMaterials:
    """Content captured from a web page.

    Attributes:
        url: Address of the page the content came from.
        html: Raw (or distilled) page markup.
        text: Visible text of the page.
        screenshot: Optional ``data:image/...;base64,`` URL.
    """

    url: str
    html: str
    text: str = ""
    screenshot: str | None = None

    def with_html(self, html: str) -> PageMaterials:
        """Return a copy whose markup is replaced by *html*."""
        return replace(self, html=html)


@dataclass(frozen=True)
class ExtractionRequest:
    """Everything the extractor needs for one run.

    Attributes:
        materials: The page materials to analyse.
        instructions: Free-text hints entered by the user.
        model_id: Completion model to use for extraction.
        tentative: Whether the resulting events are tentative.
        multiday: Whether several events may be extracted.
        pre_distill: Whether to shrink the markup before extraction.
    """

    materials: PageMaterials
    instructions: str = ""
    model_id: str = ""
    tentative: bool = False
    multiday: bool = False
    pre_distill: bool = False
