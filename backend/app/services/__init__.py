# Services package init
"""
Invoicerr Backend — Services Layer
====================================

What:  Business logic layer sitting between routes (HTTP) and database (persistence).
Why:   Routes handle HTTP; services handle tenancy checks, numbering, totals
       and the side effects (mail, webhooks, storage) of every operation.
How:   Each module exposes one stateless singleton. Services receive the
       session and the resolved company, flush but never commit; the
       request dependency commits or rolls back.

Service Inventory:
    - auth_service / membership_service: accounts, sessions, invitations, roles
    - company_service: settings, PDF config, mail templates
    - client_service / payment_method_service: client book, payment methods
    - quote_service / invoice_service / receipt_service: the document lifecycle
    - signature_service: public quote signing with mailed one-time codes
    - danger_service: code-confirmed company reset and deletion
    - recurring_invoice_service + scheduler: scheduled invoice generation
    - stats_service: dashboard and revenue figures
    - webhooks / webhook_service: outbound event delivery and subscriptions
    - plugin_service + plugins: storage providers
    - mail_service: SMTP delivery with retries
    - resilience: per-host circuit breakers
"""
