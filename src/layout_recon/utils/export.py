"""
Export module for layout reconstruction.

Provides:
- Plain text export
- Markdown export
- HTML export (layout-preserving inline styles)
- DOCX export (using python-docx)
- JSON envelope export
"""

import logging
from pathlib import Path
from typing import Dict, Any, Optional, List, Union

from ..config import ExportConfig
from .io import save_json
from .layout import Alignment, ParagraphBlock, TableBlock, plain_text
from .tables import Table, escape_html

logger = logging.getLogger(__name__)


def _write_text(output_path: Union[str, Path], content: str) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(content)
    return output_path


# ============================================================================
# Plain Text Exporter
# ============================================================================

class PlainTextExporter:
    """Export document to plain text."""

    def __init__(self, include_tables: bool = False):
        self.include_tables = include_tables

    def render(self, document: Any) -> str:
        chunks = [
            plain_text(page.blocks, include_tables=self.include_tables)
            for page in document.pages
        ]
        return "\n\n".join(chunk for chunk in chunks if chunk)

    def export(self, document: Any, output_path: Union[str, Path]) -> Path:
        output_path = _write_text(output_path, self.render(document))
        logger.info(f"Exported text to: {output_path}")
        return output_path


# ============================================================================
# Markdown Exporter
# ============================================================================

class MarkdownExporter:
    """Export document to Markdown format."""

    def export(self, document: Any, output_path: Union[str, Path]) -> Path:
        """
        Export document to Markdown file.

        Args:
            document: Document object with pre-generated markdown
            output_path: Output file path

        Returns:
            Path to the generated Markdown file
        """
        output_path = _write_text(output_path, document.markdown)
        logger.info(f"Exported Markdown to: {output_path}")
        return output_path


# ============================================================================
# HTML Exporter
# ============================================================================

_HTML_ALIGN = {
    Alignment.LEFT: "left",
    Alignment.CENTER: "center",
    Alignment.RIGHT: "right",
}


class HtmlExporter:
    """Export document to a standalone HTML page keeping block styling."""

    def __init__(self, title: str = "Reconstructed Document"):
        self.title = title

    def _paragraph_html(self, block: ParagraphBlock) -> str:
        # Twips and half-points to CSS points
        style = (
            f"margin: 0 0 {block.spacing_after / 20:g}pt {block.indent / 20:g}pt; "
            f"text-align: {_HTML_ALIGN[block.alignment]}; "
            f"font-size: {block.font_size / 2:g}pt"
        )
        text = escape_html(block.text)
        if block.bold:
            text = f"<strong>{text}</strong>"
        if block.italic:
            text = f"<em>{text}</em>"
        return f'<p style="{style}">{text}</p>'

    def render(self, document: Any) -> str:
        lines = [
            '<!DOCTYPE html>',
            '<html>',
            '<head>',
            '<meta charset="utf-8">',
            f'<title>{escape_html(self.title)}</title>',
            '<style>table { border-collapse: collapse; margin: 8pt 0; } '
            'td, th { border: 1px solid #444; padding: 2pt 6pt; }</style>',
            '</head>',
            '<body>',
        ]

        for i, page in enumerate(document.pages):
            if i > 0:
                lines.append('<hr>')
            lines.append(f'<section class="page" data-page="{page.page_number}">')
            for block in page.blocks:
                if isinstance(block, TableBlock):
                    lines.append(block.table.to_html())
                else:
                    lines.append(self._paragraph_html(block))
            lines.append('</section>')

        lines.extend(['</body>', '</html>'])
        return "\n".join(lines)

    def export(self, document: Any, output_path: Union[str, Path]) -> Path:
        output_path = _write_text(output_path, self.render(document))
        logger.info(f"Exported HTML to: {output_path}")
        return output_path


# ============================================================================
# DOCX Exporter
# ============================================================================

class DocxExporter:
    """Export document to DOCX format using python-docx."""

    def __init__(self, config: Optional[ExportConfig] = None):
        self.config = config or ExportConfig()

    def export(self, document: Any, output_path: Union[str, Path]) -> Path:
        """
        Export document to DOCX file.

        Args:
            document: Document object
            output_path: Output file path

        Returns:
            Path to the generated DOCX file
        """
        try:
            from docx import Document as DocxDocument
        except ImportError:
            raise ImportError(
                "python-docx is required for DOCX export. "
                "Install with: pip install python-docx"
            )

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        doc = DocxDocument()
        self._setup_page(doc)

        for i, page in enumerate(document.pages):
            if i > 0:
                self._add_separator(doc)
            for block in page.blocks:
                if isinstance(block, TableBlock):
                    self._add_table(doc, block.table)
                else:
                    self._add_paragraph(doc, block)

        doc.save(str(output_path))
        logger.info(f"Exported DOCX to: {output_path}")

        return output_path

    def _setup_page(self, doc: Any):
        from docx.shared import Twips

        section = doc.sections[0]
        section.page_width = Twips(self.config.docx_page_width)
        section.page_height = Twips(self.config.docx_page_height)
        margin = Twips(self.config.docx_margin)
        section.top_margin = margin
        section.bottom_margin = margin
        section.left_margin = margin
        section.right_margin = margin

    def _add_separator(self, doc: Any):
        from docx.shared import Twips
        from docx.enum.text import WD_ALIGN_PARAGRAPH

        p = doc.add_paragraph(self.config.docx_page_separator)
        p.alignment = WD_ALIGN_PARAGRAPH.CENTER
        p.paragraph_format.space_before = Twips(240)
        p.paragraph_format.space_after = Twips(240)

    def _add_paragraph(self, doc: Any, block: ParagraphBlock):
        """Add one styled line as a DOCX paragraph."""
        from docx.shared import Pt, Twips
        from docx.enum.text import WD_ALIGN_PARAGRAPH

        alignments = {
            Alignment.LEFT: WD_ALIGN_PARAGRAPH.LEFT,
            Alignment.CENTER: WD_ALIGN_PARAGRAPH.CENTER,
            Alignment.RIGHT: WD_ALIGN_PARAGRAPH.RIGHT,
        }

        p = doc.add_paragraph()
        p.alignment = alignments[block.alignment]
        fmt = p.paragraph_format
        fmt.left_indent = Twips(block.indent)
        fmt.space_before = Twips(0)
        fmt.space_after = Twips(block.spacing_after)

        run = p.add_run(block.text)
        run.font.size = Pt(block.font_size / 2)
        run.bold = block.bold
        run.italic = block.italic

    def _add_table(self, doc: Any, table: Table):
        """Add a table to the DOCX document."""
        rows: List[List[str]] = ([table.headers] if table.headers else []) + table.rows
        if not rows:
            return

        num_cols = max(len(r) for r in rows)
        if num_cols == 0:
            return

        docx_table = doc.add_table(rows=len(rows), cols=num_cols)
        docx_table.style = 'Table Grid'

        for i, row_data in enumerate(rows):
            row = docx_table.rows[i]
            for j, cell_text in enumerate(row_data):
                row.cells[j].text = str(cell_text)
                if table.headers and i == 0:
                    for run in row.cells[j].paragraphs[0].runs:
                        run.bold = True


# ============================================================================
# JSON Exporter
# ============================================================================

class JsonExporter:
    """Export the document JSON envelope."""

    def export(self, document: Any, output_path: Union[str, Path]) -> Path:
        output_path = save_json(document.to_dict(), output_path)
        logger.info(f"Exported JSON to: {output_path}")
        return output_path


# ============================================================================
# Multi-format Exporter
# ============================================================================

FORMAT_EXTENSIONS = {
    "json": "json",
    "text": "txt",
    "markdown": "md",
    "html": "html",
    "docx": "docx",
}


class DocumentExporter:
    """Convenience class for exporting to multiple formats."""

    def __init__(
        self,
        output_dir: Union[str, Path],
        base_name: str = "document",
        config: Optional[ExportConfig] = None
    ):
        self.output_dir = Path(output_dir)
        self.base_name = base_name
        self.config = config or ExportConfig()

        self.exporters = {
            "json": JsonExporter(),
            "text": PlainTextExporter(include_tables=self.config.plain_text_include_tables),
            "markdown": MarkdownExporter(),
            "html": HtmlExporter(),
            "docx": DocxExporter(self.config),
        }

    def export(self, document: Any, formats: Optional[List[str]] = None) -> Dict[str, Path]:
        """
        Export document to multiple formats.

        Args:
            document: Document object
            formats: List of formats ('json', 'text', 'markdown', 'html', 'docx', 'all')

        Returns:
            Dictionary mapping format to output path
        """
        if formats is None:
            formats = ["json", "markdown"]

        if "all" in formats:
            formats = list(FORMAT_EXTENSIONS)

        unknown = [f for f in formats if f not in self.exporters]
        if unknown:
            raise ValueError(f"Unknown export format(s): {', '.join(unknown)}")

        self.output_dir.mkdir(parents=True, exist_ok=True)

        results = {}
        for fmt in formats:
            path = self.output_dir / f"{self.base_name}.{FORMAT_EXTENSIONS[fmt]}"
            results[fmt] = self.exporters[fmt].export(document, path)

        return results
