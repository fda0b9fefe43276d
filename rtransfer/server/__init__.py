from .server import TransferServer

__all__ = ['TransferServer']
