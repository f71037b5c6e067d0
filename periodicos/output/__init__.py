"""Output generation modules"""

from periodicos.output.bibliographic_exporter import BibliographicExporter

__all__ = ["BibliographicExporter"]
