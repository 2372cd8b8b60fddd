"""
Settlements application.

Lets a recipient request money through a shareable payment link, ingests
the gateway's signed webhooks, and settles each paid request exactly once
by splitting it into a recipient payout leg and a platform fee leg.

Components (leaves first):
    - fees: Fee calculator (pure function)
    - services.payment_link_service: Payment link issuer
    - webhooks: Webhook ingestor
    - services.reconciler: Status reconciler (atomic payout claim)
    - services.payout_orchestrator: Payout orchestrator (two payout legs)
"""
