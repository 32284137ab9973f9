"""FastAPI service reporting statistics of user segments stored in Firestore."""
