from . import canvas, documents, explanation, jobs, tasks

__all__ = ["canvas", "documents", "explanation", "jobs", "tasks"]
