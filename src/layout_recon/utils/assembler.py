"""
Document assembler module for layout reconstruction.

Provides:
- Page and document data model (PageResult, Document)
- Per-page pipeline orchestration with an explicit PageContext
- Multi-page processing with optional worker threads and cancellation
- JSON envelope and Markdown generation
- Metrics calculation
"""

import logging
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Dict, Any, Sequence, Union, Mapping

import numpy as np

from ..config import PipelineConfig, JSON_SCHEMA_VERSION
from .ingest import PageInput, ingest_page
from .lines import Line, cluster_lines
from .tables import Table, TableReconstructor
from .exclusion import exclude_consumed_lines
from .layout import LayoutBlock, ParagraphBlock, TableBlock, LayoutDocumentBuilder, plain_text

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_EMPTY = "empty"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class PageContext:
    """Everything one page invocation needs; no state outlives the call."""
    config: PipelineConfig = field(default_factory=PipelineConfig)
    page_number: int = 1


@dataclass
class PageResult:
    """Reconstruction result for a single page."""
    page_number: int
    status: str = STATUS_SUCCESS
    word_count: int = 0
    mean_confidence: float = 0.0
    lines: List[Line] = field(default_factory=list)
    excluded_lines: List[Line] = field(default_factory=list)
    tables: List[Table] = field(default_factory=list)
    blocks: List[LayoutBlock] = field(default_factory=list)
    consumed_words: int = 0
    table_strategy: str = ""
    skipped_regions: int = 0
    processing_time: float = 0.0
    error: Optional[str] = None

    @property
    def plain_text(self) -> str:
        return plain_text(self.blocks)

    @property
    def paragraph_count(self) -> int:
        return len({b.paragraph_index for b in self.blocks if isinstance(b, ParagraphBlock)})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page_number": self.page_number,
            "status": self.status,
            "word_count": self.word_count,
            "line_count": len(self.lines),
            "excluded_line_count": len(self.excluded_lines),
            "table_strategy": self.table_strategy,
            "skipped_table_regions": self.skipped_regions,
            "blocks": [b.to_dict() for b in self.blocks],
            "plain_text": self.plain_text,
            "processing_time_seconds": round(self.processing_time, 4),
            "error": self.error
        }


@dataclass
class DocumentMetrics:
    """Metrics about document processing."""
    global_confidence: float = 0.0

    words_total: int = 0
    words_in_tables: int = 0
    lines_total: int = 0
    lines_excluded: int = 0
    paragraphs_total: int = 0
    tables_total: int = 0
    table_regions_skipped: int = 0

    pages_processed: int = 0
    pages_failed: int = 0
    pages_cancelled: int = 0
    processing_time_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "global_confidence": round(self.global_confidence, 3),
            "words": {
                "total": self.words_total,
                "in_tables": self.words_in_tables
            },
            "lines": {
                "total": self.lines_total,
                "excluded": self.lines_excluded
            },
            "paragraphs_total": self.paragraphs_total,
            "tables": {
                "total": self.tables_total,
                "regions_skipped": self.table_regions_skipped
            },
            "pages_processed": self.pages_processed,
            "pages_failed": self.pages_failed,
            "pages_cancelled": self.pages_cancelled,
            "processing_time_seconds": round(self.processing_time_seconds, 2)
        }


@dataclass
class Document:
    """Complete reconstructed document."""
    task_id: str = ""
    source_file: str = ""
    pages: List[PageResult] = field(default_factory=list)
    metrics: Optional[DocumentMetrics] = None

    markdown: str = ""

    created_at: str = ""
    schema_version: str = JSON_SCHEMA_VERSION

    def __post_init__(self):
        if not self.task_id:
            self.task_id = str(uuid.uuid4())
        if not self.created_at:
            self.created_at = datetime.now().isoformat()

    @property
    def blocks(self) -> List[LayoutBlock]:
        return [block for page in self.pages for block in page.blocks]

    @property
    def plain_text(self) -> str:
        return "\n\n".join(page.plain_text for page in self.pages if page.blocks)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "schema_version": self.schema_version,
            "source_file": self.source_file,
            "created_at": self.created_at,
            "pages": [p.to_dict() for p in self.pages],
            "metrics": self.metrics.to_dict() if self.metrics else {},
            "markdown": self.markdown
        }


# ============================================================================
# Document Assembler
# ============================================================================

class DocumentAssembler:
    """
    Orchestrates the layout reconstruction pipeline.

    Coordinates:
    - Word ingestion
    - Line clustering
    - Table reconstruction and word exclusion
    - Layout block building
    - Document assembly
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()

    def process_page(
        self,
        page: Union[PageInput, Mapping[str, Any]],
        context: Optional[PageContext] = None
    ) -> PageResult:
        """
        Process a single page.

        Args:
            page: Canonical PageInput or a raw provider payload
            context: Per-invocation config and page number

        Returns:
            PageResult with lines, tables and layout blocks

        Raises:
            PayloadError: If a raw payload cannot be interpreted
        """
        context = context or PageContext(config=self.config)
        config = context.config
        start = time.time()

        page_input = page if isinstance(page, PageInput) else ingest_page(page)
        result = PageResult(page_number=context.page_number)
        result.word_count = len(page_input.words)

        if not page_input.words and not page_input.tables:
            logger.info(f"Page {context.page_number}: no text found")
            result.status = STATUS_EMPTY
            result.processing_time = time.time() - start
            return result

        if page_input.words:
            result.mean_confidence = float(np.mean([w.confidence for w in page_input.words]))

        lines = cluster_lines(page_input.words, config.line.tolerance)
        detection = TableReconstructor(config.table).reconstruct(lines, page_input.tables)
        kept, excluded = exclude_consumed_lines(lines, detection.consumed)

        builder = LayoutDocumentBuilder(config.layout, config.paragraph)
        result.lines = lines
        result.excluded_lines = excluded
        result.tables = detection.tables
        result.consumed_words = len(detection.consumed)
        result.table_strategy = detection.strategy
        result.skipped_regions = detection.skipped_regions
        result.blocks = builder.build(kept, detection.tables)
        if not result.blocks:
            result.status = STATUS_EMPTY
        result.processing_time = time.time() - start

        logger.info(
            f"Page {context.page_number}: {len(lines)} lines, {len(detection.tables)} tables, "
            f"{len(result.blocks)} blocks in {result.processing_time:.3f}s"
        )
        return result

    def _process_guarded(
        self,
        page: Union[PageInput, Mapping[str, Any]],
        page_number: int,
        cancel_event: Optional[threading.Event]
    ) -> PageResult:
        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"Page {page_number} cancelled")
            return PageResult(page_number=page_number, status=STATUS_CANCELLED)

        try:
            return self.process_page(page, PageContext(config=self.config, page_number=page_number))
        except Exception as e:
            logger.error(f"Page {page_number} failed: {e}")
            return PageResult(page_number=page_number, status=STATUS_FAILED, error=str(e))

    def process_document(
        self,
        pages: Sequence[Union[PageInput, Mapping[str, Any]]],
        source_file: str = "",
        max_workers: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> Document:
        """
        Process a complete document.

        Args:
            pages: Page payloads in page order
            source_file: Original source file path
            max_workers: Worker threads; None or 1 processes sequentially
            cancel_event: When set, pages not yet started are cancelled

        Returns:
            Document object with all pages in input order
        """
        start_time = time.time()
        doc = Document(source_file=source_file)

        pages = list(pages)
        if self.config.max_pages is not None:
            pages = pages[:self.config.max_pages]

        workers = max_workers if max_workers is not None else self.config.max_workers
        numbered = list(enumerate(pages, 1))

        if workers and workers > 1 and len(pages) > 1:
            logger.info(f"Processing {len(pages)} pages with {workers} workers")
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = [
                    executor.submit(self._process_guarded, page, number, cancel_event)
                    for number, page in numbered
                ]
                doc.pages = [f.result() for f in futures]
        else:
            doc.pages = [
                self._process_guarded(page, number, cancel_event)
                for number, page in numbered
            ]

        elapsed = time.time() - start_time
        doc.metrics = self._calculate_metrics(doc, elapsed)
        doc.markdown = self._generate_markdown(doc)

        return doc

    def _calculate_metrics(self, doc: Document, processing_time: float) -> DocumentMetrics:
        """Calculate document-wide metrics."""
        metrics = DocumentMetrics()
        metrics.processing_time_seconds = processing_time

        confidences = []
        for page in doc.pages:
            if page.status == STATUS_FAILED:
                metrics.pages_failed += 1
                continue
            if page.status == STATUS_CANCELLED:
                metrics.pages_cancelled += 1
                continue

            metrics.pages_processed += 1
            metrics.words_total += page.word_count
            metrics.words_in_tables += page.consumed_words
            metrics.lines_total += len(page.lines)
            metrics.lines_excluded += len(page.excluded_lines)
            metrics.paragraphs_total += page.paragraph_count
            metrics.tables_total += len(page.tables)
            metrics.table_regions_skipped += page.skipped_regions
            if page.word_count:
                confidences.extend([page.mean_confidence] * page.word_count)

        if confidences:
            metrics.global_confidence = float(np.mean(confidences))

        return metrics

    def _generate_markdown(self, doc: Document) -> str:
        """Generate Markdown representation of document."""
        lines = []
        page_breaks = self.config.export.include_page_breaks

        for page in doc.pages:
            if page_breaks and len(doc.pages) > 1:
                lines.append(f"\n---\n*Page {page.page_number}*\n")

            previous_index = None
            for block in page.blocks:
                if isinstance(block, TableBlock):
                    if previous_index is not None:
                        lines.append("")
                    lines.append(block.table.to_markdown())
                    lines.append("")
                    previous_index = None
                    continue

                if previous_index is not None and block.paragraph_index != previous_index:
                    lines.append("")
                previous_index = block.paragraph_index

                if block.bold:
                    lines.append(f"## {block.text}")
                elif block.italic:
                    lines.append(f"*{block.text}*")
                else:
                    lines.append(block.text)

            if previous_index is not None:
                lines.append("")

        return "\n".join(lines)
