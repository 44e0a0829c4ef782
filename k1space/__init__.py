"""k1space - interactive configuration manager for kubefirst clusters."""

__version__ = "0.1.0"
