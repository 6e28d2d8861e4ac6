"""devdoctor — declarative developer-machine checks, fixes and known-error analysis."""

__version__ = "0.1.0"
