"""Resume Curator: tailor a resume to a job posting through a guided LLM conversation."""

__version__ = "0.1.0"
