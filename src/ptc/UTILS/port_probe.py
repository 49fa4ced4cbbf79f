"""
Utilities for checking whether a network port accepts connections.
"""
import socket


def is_port_open(host: str, port: int, timeout: float = 1.0) -> bool:
    """
    Checks if something is listening on host:port.
    """
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False
