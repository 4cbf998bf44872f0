from .exchanges_repo import ExchangeResult, ExchangesRepo
from .http import ApiClient, extract_error_message
from .installments_repo import CustomerDebtSummary, Installment, InstallmentsRepo
from .products_repo import Product, ProductsRepo
from .sales_repo import ReturnedItem, Sale, SaleExchange, SaleItem, SalesRepo

__all__ = [
    "ApiClient",
    "extract_error_message",
    "Sale",
    "SaleItem",
    "SaleExchange",
    "ReturnedItem",
    "SalesRepo",
    "Product",
    "ProductsRepo",
    "ExchangeResult",
    "ExchangesRepo",
    "Installment",
    "CustomerDebtSummary",
    "InstallmentsRepo",
]
