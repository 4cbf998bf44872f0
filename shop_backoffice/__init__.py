"""
shop_backoffice: back-office dialogs for a point-of-sale API.

- modules.exchange: exchange / return of items from a recorded sale
- modules.installments: customer installment debt and payments
- repositories: thin clients for the remote sales API
"""

__version__ = "0.1.0"
