"""Export package - issue-guarded story export."""

from storyloom.export.json_exporter import JsonExporter

__all__ = ["JsonExporter"]
