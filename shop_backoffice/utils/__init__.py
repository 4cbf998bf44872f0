# shop_backoffice/utils/__init__.py
