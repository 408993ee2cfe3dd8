from abc import ABC, abstractmethod
from pathlib import Path
from xml.sax.saxutils import escape
import io
import logging
import os
import subprocess
import tempfile
from reportlab.lib.pagesizes import A4
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib import colors
from invoiceflow.core.config import Settings
from invoiceflow.core.errors import ExternalToolFailure
from invoiceflow.core.renderer import LABELS
from invoiceflow.schemas.document import PartyBlock, RenderedInvoice

logger = logging.getLogger(__name__)

NAVY = colors.HexColor("#000066")
HEADER_BLUE = colors.HexColor("#6a6aff")
LIGHT_BLUE = colors.HexColor("#e6e6ff")

class PdfConverter(ABC):
    """Turns a rendered invoice into PDF bytes. Single shot, never retried."""

    @abstractmethod
    def convert(self, document: RenderedInvoice) -> bytes:
        pass

class ReportLabConverter(PdfConverter):
    """Lays out the rendered blocks in-process with ReportLab."""

    def _party(self, block: PartyBlock, style, bold_style) -> list:
        lines = [Paragraph(escape(block.name), bold_style)]
        for value in (block.tax_id, block.address, block.locality):
            lines.append(Paragraph(escape(value), style))
        return lines

    def convert(self, document: RenderedInvoice) -> bytes:
        buffer = io.BytesIO()
        # invariant=1 keeps the output byte-stable (no timestamps or random ids)
        doc = SimpleDocTemplate(buffer, pagesize=A4, title=document.title, invariant=1)
        styles = getSampleStyleSheet()
        bold = ParagraphStyle(name='PartyName', parent=styles['Normal'], fontName='Helvetica-Bold', fontSize=12)
        elements = []

        # 1. Issuer & recipient
        elements.extend(self._party(document.issuer, styles['Normal'], bold))
        elements.append(Spacer(1, 18))
        elements.extend(self._party(document.recipient, styles['Normal'], bold))
        elements.append(Spacer(1, 18))

        # 2. Document header
        header_table = Table(
            [[LABELS["document"], LABELS["number"], LABELS["date"]],
             [LABELS["invoice"], document.number, document.date]],
            colWidths=[150, 150, 150]
        )
        header_table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), HEADER_BLUE),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
            ('LINEBELOW', (0, 1), (-1, 1), 1.5, NAVY)
        ]))
        elements.append(header_table)
        elements.append(Spacer(1, 12))

        # 3. Line items
        item_data = [["#", LABELS["concept"], LABELS["quantity"], LABELS["price"], LABELS["subtotal"]]]
        for index, row in enumerate(document.rows, start=1):
            item_data.append([str(index), Paragraph(escape(row.concept), styles['Normal']), row.quantity, row.price, row.subtotal])
        items_table = Table(item_data, colWidths=[25, 235, 50, 70, 70], repeatRows=1)
        items_table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), NAVY),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('BACKGROUND', (0, 1), (-1, -1), LIGHT_BLUE),
            ('ALIGN', (2, 1), (-1, -1), 'RIGHT'),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE')
        ]))
        elements.append(items_table)
        elements.append(Spacer(1, 12))

        # 4. Totals
        totals_table = Table(
            [[LABELS["base"], LABELS["tax"], LABELS["retention"], LABELS["total"]],
             [document.totals.subtotal, document.totals.tax, document.totals.retention, document.totals.total]],
            colWidths=[112, 112, 112, 112]
        )
        totals_table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), NAVY),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('ALIGN', (0, 1), (-1, -1), 'RIGHT'),
            ('GRID', (0, 0), (-1, -1), 0.5, NAVY)
        ]))
        elements.append(totals_table)
        elements.append(Spacer(1, 12))
        elements.append(Paragraph(
            f"<b>{LABELS['total']}: {escape(document.totals.total)}</b>",
            ParagraphStyle(name='GrandTotal', parent=styles['Normal'], fontSize=14, alignment=2)
        ))
        elements.append(Spacer(1, 24))

        # 5. Payment
        account_text = document.payment.iban
        if document.payment.swift:
            account_text = f"{account_text} / {document.payment.swift}"
        payment_table = Table(
            [[LABELS["due"], LABELS["account"]], [document.payment.due_date, account_text]],
            colWidths=[150, 300]
        )
        payment_table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), NAVY),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.grey)
        ]))
        elements.append(payment_table)

        try:
            doc.build(elements)
        except Exception as e:
            logger.error(f"PDF Build Failed: {str(e)}")
            raise ExternalToolFailure("PDF generation failed during document build.") from e

        return buffer.getvalue()

class HeadlessBrowserConverter(PdfConverter):
    """Prints the rendered HTML with a headless Chromium-family browser."""

    def __init__(self, binary: str, timeout: float):
        self.binary = binary
        self.timeout = timeout

    def command(self, html_path: Path, pdf_path: Path) -> list:
        return [
            self.binary,
            "--headless",
            "--disable-gpu",
            "--no-pdf-header-footer",
            f"--print-to-pdf={pdf_path}",
            html_path.as_uri(),
        ]

    def convert(self, document: RenderedInvoice) -> bytes:
        # Everything lives in a scratch directory that is removed on every exit path
        with tempfile.TemporaryDirectory(prefix="invoiceflow-") as workdir:
            html_path = Path(workdir) / "invoice.html"
            pdf_path = Path(workdir) / "invoice.pdf"
            html_path.write_text(document.html, encoding="utf-8")

            try:
                subprocess.run(
                    self.command(html_path, pdf_path),
                    check=True,
                    capture_output=True,
                    timeout=self.timeout
                )
            except FileNotFoundError as e:
                raise ExternalToolFailure(f"PDF converter not found: {self.binary}") from e
            except subprocess.TimeoutExpired as e:
                raise ExternalToolFailure(f"PDF converter timed out after {self.timeout}s") from e
            except subprocess.CalledProcessError as e:
                stderr = (e.stderr or b"").decode("utf-8", errors="replace").strip()
                raise ExternalToolFailure(f"PDF converter exited with status {e.returncode}: {stderr}") from e
            except OSError as e:
                raise ExternalToolFailure(f"PDF converter could not be started: {e}") from e

            if not pdf_path.exists() or pdf_path.stat().st_size == 0:
                raise ExternalToolFailure("PDF converter produced no output")
            return pdf_path.read_bytes()

def get_converter(settings: Settings) -> PdfConverter:
    if settings.PDF_CONVERTER == "browser":
        return HeadlessBrowserConverter(settings.PDF_BROWSER_PATH, settings.PDF_TIMEOUT_SECONDS)
    return ReportLabConverter()

def write_atomic(content: bytes, destination: Path) -> Path:
    """Write atomically: the destination either holds the full content or is left as it was."""
    destination = Path(destination)
    fd, tmp_name = tempfile.mkstemp(prefix=".invoiceflow-", suffix=destination.suffix, dir=str(destination.parent))
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
        os.replace(tmp_name, destination)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    return destination

def save_pdf(pdf: bytes, destination: Path) -> Path:
    return write_atomic(pdf, destination)
