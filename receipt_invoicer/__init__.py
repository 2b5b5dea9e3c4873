"""Receipt Invoicer: bank transfer receipt → verified line items → printable invoices."""

__version__ = "0.1.0"
