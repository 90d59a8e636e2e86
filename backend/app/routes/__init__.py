# Routes package init
"""
Invoicerr Backend — API Routes Package
========================================

What:  HTTP route handlers that accept requests and return responses.
How:   One module per resource; every router carries its own /api prefix.

Route Inventory:
    - health.py:              GET  /health
    - auth.py:                /api/auth                 (sign-up/in/out, profile)
    - invitations.py:         /api/invitations          (codes, can-register, join)
    - company.py:             /api/company              (settings, PDF, mail, members)
    - clients.py:             /api/clients
    - quotes.py:              /api/quotes               (send, mark-as-signed)
    - signatures.py:          /api/signatures           (public signing page, codes)
    - invoices.py:            /api/invoices             (from quote, paid, credit notes)
    - receipts.py:            /api/receipts             (from invoice, send)
    - recurring_invoices.py:  /api/recurring-invoices
    - payment_methods.py:     /api/payment-methods
    - webhooks.py:            /api/webhooks             (subscriptions + plugin inbound)
    - plugins.py:             /api/plugins
    - dashboard.py:           /api/dashboard, /api/stats
    - admin.py:               /api/admin                (system administrators)
    - danger.py:              /api/danger               (code-confirmed reset and deletion)

Design Principle:
    Routes are THIN. Guards (app.guards) resolve the user, the tenant and
    the role; services do the work; routes translate to HTTP.
"""
