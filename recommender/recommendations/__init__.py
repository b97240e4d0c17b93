"""
Recommendation pipeline.

Responsibilities:
- Validate a search request and derive the request-scoped user context.
- Reconcile a model-proposed ranking with the true candidate set, falling
  back to deterministic relevance scoring when the model output is unusable.
- Suggest per-place actions and infer preference profiles from feedback.
- Orchestrate one request end to end and hand history logging off the
  response path.
"""
