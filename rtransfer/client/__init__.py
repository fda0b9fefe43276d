from .client import TransferClient

__all__ = ['TransferClient']
