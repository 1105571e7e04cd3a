"""Result types: pages, their content blocks and image assets."""

from __future__ import annotations

import dataclasses
from typing import Any, Callable, Dict, List, Optional, Tuple, Union


@dataclasses.dataclass(frozen=True)
class Heading:
    level: int
    text: str


@dataclasses.dataclass(frozen=True)
class Paragraph:
    text: str


@dataclasses.dataclass(frozen=True)
class ListBlock:
    items: Tuple[str, ...]


@dataclasses.dataclass(frozen=True)
class ImageBlock:
    original_url: str
    local_path: str
    alt_text: str


@dataclasses.dataclass(frozen=True)
class FormField:
    field_type: str
    name: str
    label: str = ""
    placeholder: str = ""
    required: bool = False
    options: Tuple[str, ...] = ()


@dataclasses.dataclass(frozen=True)
class FormBlock:
    action: str
    method: str
    fields: Tuple[FormField, ...]
    submit_text: str


ContentBlock = Union[Heading, Paragraph, ListBlock, ImageBlock, FormBlock]
PathMapper = Callable[[str], str]


@dataclasses.dataclass(frozen=True)
class ImageAsset:
    original_url: str
    sha256: str
    local_path: str
    size: int


@dataclasses.dataclass(frozen=True)
class PageResult:
    url: str
    title: str
    meta_title: str
    meta_description: str
    content_blocks: Tuple[ContentBlock, ...]
    total_words: int


@dataclasses.dataclass
class ScrapeResult:
    """Everything a run produced. ``failures`` maps skipped URLs to a reason."""

    pages: List[PageResult] = dataclasses.field(default_factory=list)
    failures: Dict[str, str] = dataclasses.field(default_factory=dict)
    mode: str = ""

    @property
    def total_pages(self) -> int:
        return len(self.pages)

    def to_dict(self, path_mapper: Optional[PathMapper] = None) -> Dict[str, Any]:
        return {
            "total_pages": self.total_pages,
            "pages": [page_to_dict(p, path_mapper) for p in self.pages],
        }


def count_words(text: str) -> int:
    return len(text.split())


def block_words(block: ContentBlock) -> int:
    if isinstance(block, (Heading, Paragraph)):
        return count_words(block.text)
    if isinstance(block, ListBlock):
        return sum(count_words(item) for item in block.items)
    return 0


def block_to_dict(block: ContentBlock, path_mapper: Optional[PathMapper] = None) -> Dict[str, Any]:
    """Tagged JSON form of a block; ``path_mapper`` rewrites image paths."""
    if isinstance(block, Heading):
        return {"type": "heading", "level": block.level, "text": block.text}
    if isinstance(block, Paragraph):
        return {"type": "paragraph", "text": block.text}
    if isinstance(block, ListBlock):
        return {"type": "list", "items": list(block.items)}
    if isinstance(block, ImageBlock):
        local_path = path_mapper(block.local_path) if path_mapper else block.local_path
        return {
            "type": "image",
            "original_url": block.original_url,
            "local_path": local_path,
            "alt_text": block.alt_text,
        }
    if isinstance(block, FormBlock):
        return {
            "type": "form",
            "action": block.action,
            "method": block.method,
            "fields": [
                {
                    "field_type": f.field_type,
                    "name": f.name,
                    "label": f.label,
                    "placeholder": f.placeholder,
                    "required": f.required,
                    "options": list(f.options),
                }
                for f in block.fields
            ],
            "submit_text": block.submit_text,
        }
    raise TypeError(f"Unknown content block: {block!r}")


def page_to_dict(page: PageResult, path_mapper: Optional[PathMapper] = None) -> Dict[str, Any]:
    return {
        "url": page.url,
        "title": page.title,
        "meta_title": page.meta_title,
        "meta_description": page.meta_description,
        "content_blocks": [block_to_dict(b, path_mapper) for b in page.content_blocks],
        "total_words": page.total_words,
    }
