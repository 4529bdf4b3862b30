"""Minimal Markdown document builder used by both reports."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, List, Optional

import pandas as pd


class MarkdownReport:
    """
    Accumulates report sections and writes them as one Markdown file.

    Figure links are written relative to the report's own directory so the
    report stays valid when the reports folder is moved.

    Example:
        >>> report = MarkdownReport('NYC Shootings')
        >>> report.heading('Results').paragraph('...')
        >>> report.write('reports/nyc_shootings.md')
    """

    def __init__(self, title: str) -> None:
        self.title = title
        self._blocks: List[str] = [f"# {title}"]
        self._figures: List[tuple] = []

    def heading(self, text: str, level: int = 2) -> "MarkdownReport":
        self._blocks.append(f"{'#' * level} {text}")
        return self

    def paragraph(self, text: str) -> "MarkdownReport":
        self._blocks.append(text.strip())
        return self

    def bullets(self, items: Iterable[str]) -> "MarkdownReport":
        lines = [f"- {item}" for item in items]
        if lines:
            self._blocks.append("\n".join(lines))
        return self

    def table(self, df: pd.DataFrame, floatfmt: str = ".3f", index: bool = True) -> "MarkdownReport":
        if df.empty:
            self._blocks.append("_No rows._")
        else:
            self._blocks.append(df.to_markdown(index=index, floatfmt=floatfmt))
        return self

    def figure(self, path: Path, caption: str) -> "MarkdownReport":
        marker = f"@@figure{len(self._figures)}@@"
        self._figures.append((marker, Path(path), caption))
        self._blocks.append(marker)
        return self

    def render(self, base_dir: Optional[Path] = None) -> str:
        text = "\n\n".join(self._blocks) + "\n"
        for marker, path, caption in self._figures:
            target = Path(os.path.relpath(path, base_dir)) if base_dir else path
            text = text.replace(marker, f"![{caption}]({target.as_posix()})")
        return text

    def write(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render(base_dir=path.parent), encoding="utf-8")
        return path
