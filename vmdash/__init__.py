"""Status dashboard and control panel for a multipass VM running an agent service."""

__version__ = '0.1.0'
