"""Grove - a personal relationship manager that turns notes into contacts."""

__version__ = "0.1.0"
