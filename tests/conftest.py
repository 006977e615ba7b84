import io

import pytest
from openpyxl import Workbook

from backend.ingest.categorize import CategoryMapper
from backend.ingest.models import Rule
from backend.ingest.pipeline import IngestPipeline


TWO_ROW_CSV = b"""Date,Description,Amount,Merchant,Category
2024-01-15,"Coffee Purchase",-4.50,"Starbucks","Food & Dining"
2024-01-16,"Salary Deposit",3000.00,"ABC Company","Income"
"""

FIVE_ROW_CSV = b"""Date,Description,Amount
2024-01-10,Rent January,-1200.00
2024-01-11,Grocery Store,-54.20
2024-01-12,Uber Trip,-18.75
2024-01-13,Salary ACME,4200.00
2024-01-14,Netflix Subscription,-15.99
"""


@pytest.fixture
def sample_csv():
    return TWO_ROW_CSV


@pytest.fixture
def five_row_csv():
    return FIVE_ROW_CSV


@pytest.fixture
def pipeline():
    return IngestPipeline()


@pytest.fixture
def mapper():
    return CategoryMapper()


@pytest.fixture
def netflix_rule():
    return Rule(id="r1", conditions="contains: netflix", target_category="Subscriptions", gst_rate=18)


@pytest.fixture
def make_xlsx():
    """Build an .xlsx file in memory from lists of cell values, one list per row."""
    def _make(rows, title="Statement", extra_sheets=()):
        wb = Workbook()
        ws = wb.active
        ws.title = title
        for row in rows:
            ws.append(row)
        for name in extra_sheets:
            wb.create_sheet(name).append(["ignored"])
        buf = io.BytesIO()
        wb.save(buf)
        return buf.getvalue()
    return _make


class FakePage:
    def __init__(self, text):
        self.text = text

    def extract_text(self):
        return self.text


class FakePDF:
    def __init__(self, page_texts, title=None):
        self.pages = [FakePage(t) for t in page_texts]
        self.metadata = {"Title": title} if title else {}

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


@pytest.fixture
def fake_pdf():
    """Stand-in for the object pdfplumber.open returns."""
    return FakePDF
