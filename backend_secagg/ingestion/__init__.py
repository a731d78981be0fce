"""
Ingestion — bank-local client data loading.
"""

from backend_secagg.ingestion.client_csv import bank_csv_path, load_clients

__all__ = ["bank_csv_path", "load_clients"]
