"""Editor package containing the document model and its helpers."""

from . import conversion, document_model, patches, selection, suggestions

__all__ = ["conversion", "document_model", "patches", "selection", "suggestions"]
