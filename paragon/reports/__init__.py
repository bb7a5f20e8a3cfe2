from .export import ReportExporter

__all__ = ["ReportExporter"]
