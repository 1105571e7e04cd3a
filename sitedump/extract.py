"""HTML to ordered content blocks.

:func:`extract` walks the page body in document order and returns an
:class:`ExtractedPage`: headings, paragraphs, lists and forms as final
blocks, images as :class:`ImageCandidate` placeholders that the caller
resolves through the image pipeline, and every outbound link found on the
page. It never raises on bad markup; whatever could be read is returned.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple, Union
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import CData, Comment, Declaration, Doctype, NavigableString, ProcessingInstruction, Tag

from sitedump.models import (
    ContentBlock,
    FormBlock,
    FormField,
    Heading,
    ImageBlock,
    ListBlock,
    PageResult,
    Paragraph,
    block_words,
)
from sitedump.urls import absolute_url

_log = logging.LoggerAdapter(logging.getLogger("sitedump.extract"), extra={"site": "-"})

SKIP_TAGS = frozenset({
    "script", "style", "noscript", "template", "svg", "iframe", "object",
    "embed", "canvas", "head", "title", "meta", "link", "base",
})
CHROME_TAGS = frozenset({"nav", "header", "footer"})
SECTIONING_TAGS = frozenset({"main", "article", "section"})
HEADING_TAGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})
PARAGRAPH_TAGS = frozenset({"p", "blockquote", "pre", "figcaption", "address"})
LIST_TAGS = frozenset({"ul", "ol", "menu"})
INLINE_TAGS = frozenset({
    "a", "abbr", "b", "bdi", "bdo", "br", "cite", "code", "data", "del", "dfn",
    "em", "font", "i", "img", "ins", "kbd", "label", "mark", "picture", "q", "s",
    "samp", "small", "span", "strong", "sub", "sup", "time", "u", "var", "wbr",
})
BLOCK_TAGS = frozenset({
    "address", "article", "aside", "blockquote", "dd", "details", "div", "dl",
    "dt", "fieldset", "figcaption", "figure", "footer", "form", "h1", "h2", "h3",
    "h4", "h5", "h6", "header", "hr", "li", "main", "menu", "nav", "ol", "p",
    "pre", "section", "summary", "table", "tbody", "td", "tfoot", "th", "thead",
    "tr", "ul", "legend", "caption",
})
FIELD_TAGS = frozenset({"input", "select", "textarea", "button"})
CONTROL_TAGS = FIELD_TAGS | {"option", "optgroup", "datalist"}
# kept out of the text of the block that contains them
EMBEDDED_TAGS = CONTROL_TAGS | {"form"}
# a paragraph-like container holding any of these is walked, not flattened
STRUCTURAL_TAGS = HEADING_TAGS | LIST_TAGS | PARAGRAPH_TAGS | {"form"}
NON_FIELD_INPUT_TYPES = frozenset({"hidden", "submit", "reset", "button", "image"})

_NON_TEXT_STRINGS = (Comment, CData, ProcessingInstruction, Declaration, Doctype)
_HIDDEN_STYLE_RE = re.compile(
    r"display\s*:\s*none|visibility\s*:\s*hidden|(?:^|;)\s*(?:width|height)\s*:\s*0(?:px|%|em|rem)?\s*(?:!important\s*)?(?:;|$)",
    re.I,
)
_DIMENSION_RE = re.compile(r"\s*(\d+)")


@dataclasses.dataclass(frozen=True)
class ImageCandidate:
    """An ``<img>`` seen in the markup, not yet downloaded."""

    sources: Tuple[str, ...]
    alt_text: str = ""
    width: Optional[int] = None
    height: Optional[int] = None


PageItem = Union[ContentBlock, ImageCandidate]


@dataclasses.dataclass
class ExtractedPage:
    url: str
    title: str = ""
    meta_title: str = ""
    meta_description: str = ""
    items: List[PageItem] = dataclasses.field(default_factory=list)
    links: List[str] = dataclasses.field(default_factory=list)

    @property
    def images(self) -> List[ImageCandidate]:
        return [item for item in self.items if isinstance(item, ImageCandidate)]

    def build(self, resolved: Optional[Mapping[ImageCandidate, Optional[ImageBlock]]] = None) -> PageResult:
        """Freeze into a :class:`PageResult`, swapping each image candidate for its resolved block.

        Candidates that resolved to ``None`` (or were not resolved at all) are dropped.
        """
        resolved = resolved or {}
        blocks: List[ContentBlock] = []
        for item in self.items:
            if isinstance(item, ImageCandidate):
                block = resolved.get(item)
                if block is not None:
                    blocks.append(block)
            else:
                blocks.append(item)
        return PageResult(
            url=self.url,
            title=self.title,
            meta_title=self.meta_title,
            meta_description=self.meta_description,
            content_blocks=tuple(blocks),
            total_words=sum(block_words(b) for b in blocks),
        )


# ----------------------------- Text helpers -------------------------------- #


def normalize_space(text: Optional[str]) -> str:
    return " ".join((text or "").split())


def _attr(el: Tag, name: str) -> str:
    value = el.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return (value or "").strip()


def _is_hidden(el: Tag) -> bool:
    if el.has_attr("hidden"):
        return True
    if _attr(el, "aria-hidden").lower() == "true":
        return True
    style = _attr(el, "style")
    return bool(style and _HIDDEN_STYLE_RE.search(style))


def _is_skipped(el: Tag) -> bool:
    return el.name in SKIP_TAGS or _is_hidden(el)


def _is_chrome(el: Tag) -> bool:
    """Site-wide navigation, page header or page footer."""
    if el.name not in CHROME_TAGS:
        return False
    if el.name == "nav":
        return True
    # a header/footer inside an article or section belongs to that content
    return el.find_parent(list(SECTIONING_TAGS)) is None


def _text_of(node: Tag, exclude: FrozenSet[str] = frozenset()) -> str:
    """Visible, whitespace-normalized text of ``node``."""
    parts: List[str] = []

    def walk(el: Tag) -> None:
        for child in el.children:
            if isinstance(child, NavigableString):
                if not isinstance(child, _NON_TEXT_STRINGS):
                    parts.append(str(child))
            elif isinstance(child, Tag):
                if child.name == "br":
                    parts.append(" ")
                elif _is_skipped(child) or child.name in exclude:
                    continue
                elif child.name in BLOCK_TAGS:
                    parts.append(" ")
                    walk(child)
                    parts.append(" ")
                else:
                    walk(child)

    walk(node)
    return normalize_space("".join(parts))


def _dimension(value: str) -> Optional[int]:
    m = _DIMENSION_RE.match(value or "")
    return int(m.group(1)) if m else None


# ------------------------------- Forms ------------------------------------- #


def _label_for(control: Tag, labels_by_for: Mapping[str, Tag]) -> str:
    control_id = _attr(control, "id")
    if control_id and control_id in labels_by_for:
        text = _text_of(labels_by_for[control_id], exclude=FIELD_TAGS)
        if text:
            return text
    wrapping = control.find_parent("label")
    if wrapping is not None:
        text = _text_of(wrapping, exclude=FIELD_TAGS)
        if text:
            return text
    return normalize_space(_attr(control, "aria-label"))


def _hidden_within(el: Tag, stop: Tag) -> bool:
    node: Optional[Tag] = el
    while node is not None and node is not stop:
        if _is_skipped(node):
            return True
        node = node.parent
    return False


def _group_label(radio: Tag) -> str:
    fieldset = radio.find_parent("fieldset")
    if fieldset is not None:
        legend = fieldset.find("legend")
        if legend is not None:
            return _text_of(legend)
    return ""


def extract_form(form: Tag, base_url: str, labels_by_for: Mapping[str, Tag]) -> FormBlock:
    raw_action = _attr(form, "action")
    action = (absolute_url(raw_action, base_url) or raw_action) if raw_action else base_url
    method = _attr(form, "method").upper() or "GET"

    fields: List[dict] = []
    radio_groups: Dict[str, dict] = {}
    submit_text: Optional[str] = None

    for control in form.find_all(list(FIELD_TAGS)):
        if _hidden_within(control, form):
            continue
        tag = control.name
        if tag == "button":
            if (_attr(control, "type").lower() or "submit") == "submit" and submit_text is None:
                submit_text = _text_of(control) or _attr(control, "value")
            continue
        if tag == "input":
            field_type = _attr(control, "type").lower() or "text"
            if field_type in ("submit", "image"):
                if submit_text is None:
                    submit_text = _attr(control, "value") or _attr(control, "alt")
                continue
            if field_type in NON_FIELD_INPUT_TYPES:
                continue
        else:
            field_type = tag

        name = _attr(control, "name")
        label = _label_for(control, labels_by_for)
        required = control.has_attr("required")

        if field_type == "radio" and name:
            choice = label or _attr(control, "value")
            group = radio_groups.get(name)
            if group is not None:
                if choice:
                    group["options"].append(choice)
                group["required"] = group["required"] or required
                continue
            group = {
                "field_type": "radio",
                "name": name,
                "label": _group_label(control),
                "placeholder": "",
                "required": required,
                "options": [choice] if choice else [],
            }
            radio_groups[name] = group
            fields.append(group)
            continue

        options: List[str] = []
        if tag == "select":
            options = [t for t in (_text_of(o) for o in control.find_all("option")) if t]
        fields.append({
            "field_type": field_type,
            "name": name,
            "label": label,
            "placeholder": normalize_space(_attr(control, "placeholder")),
            "required": required,
            "options": options,
        })

    return FormBlock(
        action=action,
        method=method,
        fields=tuple(FormField(**{**f, "options": tuple(f["options"])}) for f in fields),
        submit_text=submit_text or "",
    )


# ------------------------------ Page walk ---------------------------------- #


class _PageWalker:
    def __init__(self, base_url: str, labels_by_for: Mapping[str, Tag]) -> None:
        self.base_url = base_url
        self.labels_by_for = labels_by_for
        self.items: List[PageItem] = []
        self._seen_images: set = set()

    def walk_children(self, parent: Tag) -> None:
        run: list = []
        for child in parent.children:
            if isinstance(child, NavigableString):
                if not isinstance(child, _NON_TEXT_STRINGS):
                    run.append(child)
                continue
            if not isinstance(child, Tag) or _is_skipped(child) or _is_chrome(child):
                continue
            if child.name in CONTROL_TAGS:
                # controls outside a form carry no content
                continue
            if child.name in INLINE_TAGS and child.find(list(BLOCK_TAGS)) is None:
                run.append(child)
                continue
            self._flush(run)
            run = []
            self._visit(child)
        self._flush(run)

    def _flush(self, run: list) -> None:
        if not run:
            return
        pieces = []
        for piece in run:
            if isinstance(piece, Tag):
                pieces.append(" " if piece.name == "br" else _text_of(piece, exclude=EMBEDDED_TAGS))
            else:
                pieces.append(str(piece))
        text = normalize_space("".join(pieces))
        if text:
            self.items.append(Paragraph(text))
        for piece in run:
            if isinstance(piece, Tag):
                self._collect_embedded(piece)

    def _visit(self, el: Tag) -> None:
        name = el.name
        if name in HEADING_TAGS:
            text = _text_of(el, exclude=EMBEDDED_TAGS)
            if text:
                self.items.append(Heading(level=int(name[1]), text=text))
            self._collect_embedded(el)
        elif name in PARAGRAPH_TAGS and el.find(list(STRUCTURAL_TAGS)) is None:
            text = _text_of(el, exclude=EMBEDDED_TAGS)
            if text:
                self.items.append(Paragraph(text))
            self._collect_embedded(el)
        elif name in LIST_TAGS:
            entries = [
                _text_of(li, exclude=EMBEDDED_TAGS)
                for li in el.find_all("li", recursive=False)
                if not _is_skipped(li)
            ]
            entries = [e for e in entries if e]
            if entries:
                self.items.append(ListBlock(tuple(entries)))
            self._collect_embedded(el)
        elif name == "img":
            self._add_image(el)
        elif name == "form":
            self.items.append(extract_form(el, self.base_url, self.labels_by_for))
        else:
            self.walk_children(el)

    def _collect_embedded(self, el: Tag) -> None:
        """Emit the images and forms nested in a block that was read as text."""
        if el.name == "img":
            self._add_image(el)
            return
        if el.name == "form":
            self.items.append(extract_form(el, self.base_url, self.labels_by_for))
            return
        for child in el.children:
            if isinstance(child, Tag) and not _is_skipped(child):
                self._collect_embedded(child)

    def _add_image(self, img: Tag) -> None:
        sources: List[str] = []
        for attr in ("src", "data-src"):
            url = absolute_url(_attr(img, attr), self.base_url)
            if url:
                sources.append(url)
        srcset = _attr(img, "srcset")
        if srcset:
            first = srcset.split(",", 1)[0].split()
            url = absolute_url(first[0], self.base_url) if first else None
            if url:
                sources.append(url)
        sources = list(dict.fromkeys(sources))
        if not sources or sources[0] in self._seen_images:
            return
        self._seen_images.add(sources[0])
        self.items.append(ImageCandidate(
            sources=tuple(sources),
            alt_text=normalize_space(_attr(img, "alt")),
            width=_dimension(_attr(img, "width")),
            height=_dimension(_attr(img, "height")),
        ))


def _meta_content(soup: BeautifulSoup, attr: str, value: str) -> str:
    tag = soup.find("meta", attrs={attr: re.compile(rf"^\s*{re.escape(value)}\s*$", re.I)})
    if tag is None:
        return ""
    return normalize_space(_attr(tag, "content"))


def _content_root(soup: BeautifulSoup) -> Tag:
    for selector in ("main", '[role="main"]'):
        el = soup.select_one(selector)
        if el is not None and not _is_hidden(el):
            return el
    return soup.body or soup


def extract_links(soup: BeautifulSoup, base_url: str) -> List[str]:
    links: List[str] = []
    for a in soup.find_all(["a", "area"], href=True):
        url = absolute_url(_attr(a, "href"), base_url)
        if url:
            links.append(url)
    return list(dict.fromkeys(links))


def extract(html: Union[str, bytes], page_url: str) -> ExtractedPage:
    """Parse ``html`` fetched from ``page_url`` into an :class:`ExtractedPage`."""
    soup = BeautifulSoup(html or "", "lxml")

    base_url = page_url
    base_tag = soup.find("base", href=True)
    if base_tag is not None:
        base_url = urljoin(page_url, _attr(base_tag, "href")) or page_url

    title_tag = soup.find("title")
    title = normalize_space(title_tag.get_text()) if title_tag is not None else ""
    meta_title = (
        _meta_content(soup, "property", "og:title")
        or _meta_content(soup, "name", "title")
        or title
    )
    meta_description = (
        _meta_content(soup, "name", "description")
        or _meta_content(soup, "property", "og:description")
    )

    labels_by_for: Dict[str, Tag] = {}
    for label in soup.find_all("label", attrs={"for": True}):
        labels_by_for.setdefault(_attr(label, "for"), label)

    walker = _PageWalker(base_url, labels_by_for)
    try:
        walker.walk_children(_content_root(soup))
    except RecursionError:
        _log.warning(f"Markup of {page_url} nested too deeply; keeping {len(walker.items)} block(s)")

    return ExtractedPage(
        url=page_url,
        title=title,
        meta_title=meta_title,
        meta_description=meta_description,
        items=walker.items,
        links=extract_links(soup, base_url),
    )
