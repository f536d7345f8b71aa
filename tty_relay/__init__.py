"""Power management through a DTR/RTS driven USB serial relay board."""

__version__ = "0.3.0"

from tty_relay.util.errors import RelayError  # noqa: E402

__all__ = ["RelayError", "__version__"]
