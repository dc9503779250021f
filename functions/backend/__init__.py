"""
Backend package for the content service API.

This package provides a FastAPI application over a document store
abstraction (in-memory, SQL or Firestore), the submission guard, edit
sessions and the article/account services built on `image_pipeline`.
"""
