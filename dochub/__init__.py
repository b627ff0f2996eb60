"""Student organization document hub: data access and analytics core"""

__version__ = "0.1.0"
