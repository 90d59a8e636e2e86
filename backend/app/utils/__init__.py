"""
Invoicerr Backend — Utilities
===============================

What:  Pure helpers with no database or HTTP dependency, plus the numbering
       helpers that the ORM flush hook and services share.

Inventory:
    - dates.py:      UTC clock and naive/aware normalization
    - numbering.py:  Document number patterns and per-company sequences
    - financial.py:  Discount clamping and discounted totals
    - formatting.py: Date formats, address parsing, contrast colour, secrets
    - sse.py:        Server-sent event stream helper
"""
