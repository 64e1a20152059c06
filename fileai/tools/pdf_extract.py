"""Read text out of PDF uploads and render generated text into new PDFs."""
from pathlib import Path
from typing import List, Optional

import fitz

from fileai.models.extracted_text import ExtractedText

# A4 in points
PAGE_WIDTH = 595
PAGE_HEIGHT = 842
MARGIN = 40
# Noto Sans from pymupdf-fonts; covers Latin, Cyrillic and Greek
OUTPUT_FONT = "notos"


def extract_text_from_pdf(file_path: Path) -> tuple[Optional[ExtractedText], Optional[str]]:
    """
    Extract text from a PDF file.

    Uses PyMuPDF (fitz) as primary method, falls back to pdfplumber if needed.

    Returns:
        (ExtractedText, None) on success, (None, error_message) on failure
    """
    pages = _pages_with_pymupdf(file_path)
    if pages is None:
        pages = _pages_with_pdfplumber(file_path)
    if pages is None:
        return None, f"Failed to extract text from {file_path.name} with both PyMuPDF and pdfplumber"

    return ExtractedText(num_pages=len(pages), full_text="\n".join(pages)), None


def _pages_with_pymupdf(file_path: Path) -> Optional[List[str]]:
    """Page texts via PyMuPDF. Returns None on failure."""
    try:
        with fitz.open(file_path) as doc:
            return [page.get_text() for page in doc]
    except Exception:
        return None


def _pages_with_pdfplumber(file_path: Path) -> Optional[List[str]]:
    """Page texts via pdfplumber. Returns None on failure."""
    try:
        import pdfplumber

        with pdfplumber.open(file_path) as pdf:
            return [page.extract_text() or "" for page in pdf.pages]
    except Exception:
        return None


def wrap_line(line: str, font: fitz.Font, font_size: float, width: float) -> List[str]:
    """Break one line into rows no wider than width, splitting overlong words by character."""
    rows: List[str] = []
    current = ""
    for word in line.split(" "):
        candidate = f"{current} {word}" if current else word
        if font.text_length(candidate, fontsize=font_size) <= width:
            current = candidate
            continue
        if current:
            rows.append(current)
            current = ""
        while len(word) > 1 and font.text_length(word, fontsize=font_size) > width:
            cut = len(word) - 1
            while cut > 1 and font.text_length(word[:cut], fontsize=font_size) > width:
                cut -= 1
            rows.append(word[:cut])
            word = word[cut:]
        current = word
    rows.append(current)
    return rows


def write_text_pdf(text: str, output_path: Path, font_size: int = 12) -> int:
    """
    Render plain text into a new A4 PDF with a Unicode font.

    Lines are wrapped to the page width and pages are added as rows run out.

    Returns:
        Number of pages written
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    font = fitz.Font(OUTPUT_FONT)
    line_height = font_size * 1.3
    width = PAGE_WIDTH - 2 * MARGIN

    doc = fitz.open()
    page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
    writer = fitz.TextWriter(page.rect)
    pending = False
    y = MARGIN + font_size

    for line in text.split("\n"):
        for row in wrap_line(line, font, font_size, width):
            if y > PAGE_HEIGHT - MARGIN:
                if pending:
                    writer.write_text(page)
                page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
                writer = fitz.TextWriter(page.rect)
                pending = False
                y = MARGIN + font_size
            if row:
                writer.append((MARGIN, y), row, font=font, fontsize=font_size)
                pending = True
            y += line_height

    if pending:
        writer.write_text(page)
    num_pages = doc.page_count
    doc.save(output_path)
    doc.close()
    return num_pages
