"""Face-swap kiosk client: camera capture, catalog selection and remote swap."""

__version__ = "0.1.0"
