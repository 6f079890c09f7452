"""FastAPI server for Diff Reviewer."""
