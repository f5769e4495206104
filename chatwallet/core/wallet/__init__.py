from .keystore import KeyStore, KeyStoreError, WalletInfo, parse_secret_key

__all__ = ["KeyStore", "KeyStoreError", "WalletInfo", "parse_secret_key"]
