"""HTTP control API."""

from .server import BadRequestError, ControlServer

__all__ = ["BadRequestError", "ControlServer"]
