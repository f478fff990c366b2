"""
Order fulfillment — orchestrated saga across three services

  ┌──────────┐   POST /api/orders   ┌───────────────┐
  │  Client  │ ───────────────────▶ │ Order Service │──┐ background task
  └──────────┘   201 (pending)      └───────────────┘  │
                                                       ▼
                                            ┌────────────────────┐
                                            │  Saga Coordinator  │
                                            └──┬──────────────┬──┘
                              reserve/rollback │              │ process
                                   ┌───────────▼───┐   ┌──────▼──────────┐
                                   │ Inventory Svc │   │ Payment Service │
                                   └───────────────┘   └─────────────────┘

Each service owns its own store (database per service). There is no
distributed transaction: committed steps are undone by compensations.
"""

__version__ = "0.1.0"
